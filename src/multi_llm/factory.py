"""Backend table and eager construction of providers from configuration."""

from __future__ import annotations

import importlib
import logging
import os
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

import httpx

from multi_llm.backends.anthropic import AnthropicProvider
from multi_llm.backends.openai_compatible import OpenAICompatibleProvider
from multi_llm.backends.phind import PHIND_AGENT_URL, PhindProvider
from multi_llm.errors import ConfigurationError
from multi_llm.models.provider_spec import ProviderSpec
from multi_llm.provider import LLMProvider, ValidatorFn
from multi_llm.registry import ProviderRegistry, RegistryBuilder
from multi_llm.validated import ValidatedProvider

logger = logging.getLogger(__name__)

ProviderFactory = Callable[..., LLMProvider]


@dataclass(frozen=True)
class Backend:
    factory: ProviderFactory
    default_model: str
    base_url: Optional[str]
    api_key_env: Optional[str]  # None: no credential required
    placeholder_key: str = "noop"


BACKENDS: dict[str, Backend] = {
    "openai": Backend(
        factory=OpenAICompatibleProvider,
        default_model="gpt-4o",
        base_url="https://api.openai.com/v1",
        api_key_env="OPENAI_API_KEY",
    ),
    "anthropic": Backend(
        factory=AnthropicProvider,
        default_model="claude-3-5-sonnet-latest",
        base_url=None,
        api_key_env="ANTHROPIC_API_KEY",
    ),
    "ollama": Backend(
        factory=OpenAICompatibleProvider,
        default_model="llama3.1",
        base_url="http://localhost:11434/v1",
        api_key_env=None,
        placeholder_key="ollama",
    ),
    "deepseek": Backend(
        factory=OpenAICompatibleProvider,
        default_model="deepseek-chat",
        base_url="https://api.deepseek.com/v1",
        api_key_env="DEEPSEEK_API_KEY",
    ),
    "xai": Backend(
        factory=OpenAICompatibleProvider,
        default_model="grok-2-latest",
        base_url="https://api.x.ai/v1",
        api_key_env="XAI_API_KEY",
    ),
    "google": Backend(
        factory=OpenAICompatibleProvider,
        default_model="gemini-2.0-flash",
        base_url="https://generativelanguage.googleapis.com/v1beta/openai/",
        api_key_env="GOOGLE_API_KEY",
    ),
    "phind": Backend(
        factory=PhindProvider,
        default_model="Phind-70B",
        base_url=PHIND_AGENT_URL,
        api_key_env=None,
        placeholder_key="",
    ),
}


def resolve_api_key(spec: ProviderSpec, backend: Backend) -> str:
    env_name = spec.api_key_env or backend.api_key_env
    api_key = os.environ.get(env_name, "") if env_name else ""
    if api_key:
        return api_key
    if backend.api_key_env is None:
        return backend.placeholder_key
    raise ConfigurationError(f"No API key for backend {spec.backend!r}: set {env_name}.")


def resolve_validator(spec: ProviderSpec) -> ValidatorFn:
    """
    Loads the "package.module:function" named by spec.validator.
    """
    if spec.validator is None:
        raise ConfigurationError("Provider spec has no validator configured.")
    module_name, sep, attr = spec.validator.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(f"Validator must look like 'module:function', got {spec.validator!r}")
    try:
        validator = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as exc:
        raise ConfigurationError(f"Cannot import validator {spec.validator!r}: {exc}") from exc
    if not callable(validator):
        raise ConfigurationError(f"Validator {spec.validator!r} is not callable.")
    return validator


def build_provider(spec: ProviderSpec, *, http_client: httpx.AsyncClient | None = None) -> LLMProvider:
    backend = BACKENDS.get(spec.backend)
    if backend is None:
        raise ConfigurationError(
            f"Unknown backend {spec.backend!r} (available: {', '.join(sorted(BACKENDS))})"
        )
    api_key = resolve_api_key(spec, backend)
    model_name = spec.model_name or backend.default_model
    provider = backend.factory(
        spec,
        model_name=model_name,
        base_url=spec.base_url or backend.base_url,
        api_key=api_key,
        http_client=http_client,
    )
    logger.info("Built %s provider for model %s", spec.backend, model_name)
    if spec.validator is not None:
        provider = ValidatedProvider(provider, resolve_validator(spec), spec.validator_attempts)
    return provider


def build_registry(
    specs: Mapping[str, ProviderSpec],
    *,
    http_client: httpx.AsyncClient | None = None,
) -> ProviderRegistry:
    builder = RegistryBuilder()
    for provider_id, spec in specs.items():
        builder.register(provider_id, build_provider(spec, http_client=http_client))
    return builder.build()
