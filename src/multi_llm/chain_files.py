"""Chain markdown files: frontmatter config plus step template sections."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import Sequence

import frontmatter
import httpx
import yaml
from pydantic import ValidationError as PydanticValidationError

from multi_llm.chain import PromptChain
from multi_llm.errors import ConfigurationError
from multi_llm.factory import build_registry
from multi_llm.models.chain_file_spec import ChainFileSpec
from multi_llm.models.chain_step import ChainStep
from multi_llm.registry import ProviderRegistry

logger = logging.getLogger(__name__)

SECTION_HEADER_RE = re.compile(r"^(#{1,6})\s+(.+?)\s*$", re.MULTILINE)
STEP_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def classify_section_header(header_text: str) -> str | None:
    header = header_text.strip()
    if ":" not in header:
        return None
    prefix, step_id = header.split(":", 1)
    step_id = step_id.strip()
    if prefix.strip().lower() != "step" or not step_id or not STEP_ID_RE.match(step_id):
        return None
    return f"step:{step_id}"


def split_step_sections(markdown_body: str) -> dict[str, str]:
    """
    Extracts blocks that begin with headings "## step:<id>".
    Returns mapping: "step:<id>" -> content for that step (excluding heading line).
    Headings that are not step headings stay inside the surrounding section.
    """
    recognized: list[tuple[str, int, int]] = []
    for match in SECTION_HEADER_RE.finditer(markdown_body):
        key = classify_section_header(match.group(2))
        if key is not None:
            recognized.append((key, match.start(), match.end()))

    out: dict[str, str] = {}
    for index, (key, _start, end) in enumerate(recognized):
        next_index = index + 1
        section_end = recognized[next_index][1] if next_index < len(recognized) else len(markdown_body)
        if key in out:
            logger.warning("Duplicate section %s; keeping the first one", key)
            continue
        out[key] = markdown_body[end:section_end].strip()
    return out


def load_chain_frontmatter(source: Path | str) -> tuple[frontmatter.Post, str]:
    if isinstance(source, Path):
        return frontmatter.load(str(source)), str(source)
    if "\n" not in source and Path(source).exists():
        return frontmatter.load(source), source
    return frontmatter.loads(source), "<inline>"


@dataclass
class LoadedChainFile:
    spec: ChainFileSpec
    step_prompts: dict[str, str]  # prompt_section -> markdown chunk
    source: str = "<inline>"

    def build_chain(self) -> PromptChain:
        steps: list[ChainStep] = []
        for step_spec in self.spec.chain:
            template = step_spec.template
            if template is None:
                section = step_spec.section_name
                if section not in self.step_prompts:
                    raise ConfigurationError(
                        f"Step {step_spec.id!r} has no inline template and no '## {section}' section in {self.source}."
                    )
                template = self.step_prompts[section]
            steps.append(
                ChainStep(
                    id=step_spec.id,
                    provider_id=step_spec.provider_id,
                    mode=step_spec.mode,
                    template=template,
                    overrides=step_spec.overrides,
                )
            )
        return PromptChain(steps)

    def build_registry(self, *, http_client: httpx.AsyncClient | None = None) -> ProviderRegistry:
        return build_registry(self.spec.providers, http_client=http_client)


def load_chain_file(source: Path | str) -> LoadedChainFile:
    try:
        post, source_label = load_chain_frontmatter(source)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Malformed chain frontmatter: {exc}") from exc
    try:
        spec = ChainFileSpec.model_validate(post.metadata)
    except PydanticValidationError as exc:
        raise ConfigurationError(f"Invalid chain file {source_label}: {exc}") from exc
    step_prompts = split_step_sections(post.content)
    return LoadedChainFile(spec=spec, step_prompts=step_prompts, source=source_label)


class ChainLibrary:
    """Looks chain files up by id, the file name without ".md".

    Roots are searched in order, recursively. An id found under an earlier
    root shadows files with the same id further down. Parsed files are cached.
    """

    def __init__(self, chain_roots: Sequence[Path]) -> None:
        self.chain_roots: list[Path] = list(chain_roots)
        self._loaded: dict[str, LoadedChainFile] = {}

    @cached_property
    def paths(self) -> dict[str, Path]:
        found: dict[str, Path] = {}
        for root in self.chain_roots:
            if not root.is_dir():
                logger.debug("Skipping missing chain root %s", root)
                continue
            for path in sorted(root.rglob("*.md")):
                winner = found.setdefault(path.stem, path)
                if winner != path:
                    logger.info("Chain %s at %s is shadowed by %s", path.stem, path, winner)
        return found

    def __contains__(self, chain_id: object) -> bool:
        return chain_id in self.paths

    def list_chains(self) -> list[str]:
        return sorted(self.paths)

    def get(self, chain_id: str) -> LoadedChainFile:
        if chain_id not in self._loaded:
            path = self.paths.get(chain_id)
            if path is None:
                roots = ", ".join(str(root) for root in self.chain_roots)
                raise FileNotFoundError(f"Chain not found: {chain_id} (searched: {roots})")
            self._loaded[chain_id] = load_chain_file(path)
        return self._loaded[chain_id]
