"""Provider registry: accumulate, then freeze."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Iterator, Mapping

from multi_llm.errors import ConfigurationError
from multi_llm.provider import LLMProvider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Read-only lookup from provider id to provider.

    Safe to share between chains running at the same time; nothing here
    mutates after construction.
    """

    def __init__(self, providers: Mapping[str, LLMProvider]) -> None:
        self._providers: Mapping[str, LLMProvider] = MappingProxyType(dict(providers))

    def get(self, provider_id: str) -> LLMProvider:
        provider = self._providers.get(provider_id)
        if provider is None:
            raise ConfigurationError(
                f"unknown provider id: {provider_id!r} (registered: {sorted(self._providers)})"
            )
        return provider

    def ids(self) -> list[str]:
        return list(self._providers)

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._providers

    def __iter__(self) -> Iterator[str]:
        return iter(self._providers)

    def __len__(self) -> int:
        return len(self._providers)


class RegistryBuilder:
    def __init__(self) -> None:
        self._entries: list[tuple[str, LLMProvider]] = []

    def register(self, provider_id: str, provider: LLMProvider) -> "RegistryBuilder":
        self._entries.append((provider_id, provider))
        return self

    def build(self) -> ProviderRegistry:
        providers: dict[str, LLMProvider] = {}
        for provider_id, provider in self._entries:
            if provider_id in providers:
                raise ConfigurationError(f"duplicate provider id: {provider_id!r}")
            providers[provider_id] = provider
        logger.debug("Built provider registry with ids %s", list(providers))
        return ProviderRegistry(providers)
