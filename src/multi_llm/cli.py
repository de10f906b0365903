"""CLI entrypoint."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

import yaml

from multi_llm.chain_files import ChainLibrary, LoadedChainFile, load_chain_file
from multi_llm.errors import MultiLLMError


async def run_chain_file(loaded: LoadedChainFile) -> dict[str, str]:
    chain = loaded.build_chain()
    registry = loaded.build_registry()
    return await chain.run(registry)


def format_results(results: dict[str, str], output_format: str) -> str:
    if output_format == "json":
        return json.dumps(results, indent=2, ensure_ascii=False)
    return yaml.safe_dump(
        results,
        allow_unicode=True,
        default_flow_style=False,
        sort_keys=False,
    ).rstrip()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="multi-llm", description="Run a multi-provider prompt chain.")
    parser.add_argument("--chains-dir", type=str, default="chains")
    chain_group = parser.add_mutually_exclusive_group(required=True)
    chain_group.add_argument("--chain", type=str, help="Chain id to look up under --chains-dir")
    chain_group.add_argument("--chain-file", type=str, help="Path to a chain markdown file")
    parser.add_argument("--format", choices=["yaml", "json"], default="yaml")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log each step")
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Async entrypoint
    import anyio

    try:
        if args.chain_file is not None:
            loaded = load_chain_file(Path(args.chain_file))
        else:
            loaded = ChainLibrary([Path(args.chains_dir)]).get(args.chain)
        results = anyio.run(run_chain_file, loaded)
    except (MultiLLMError, FileNotFoundError) as exc:
        parser.exit(1, f"error: {exc}\n")

    sys.stdout.write(format_results(results, args.format) + "\n")
