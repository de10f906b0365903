"""Capability contract every vendor backend implements."""

from __future__ import annotations

from typing import Callable, Optional, Protocol, Sequence, runtime_checkable

from multi_llm.models.chat_message import ChatMessage
from multi_llm.models.completion import CompletionRequest, CompletionResponse
from multi_llm.models.generation_settings import GenerationSettings

# Returns None when the text is acceptable, otherwise the rejection reason.
ValidatorFn = Callable[[str], Optional[str]]
ScoringFn = Callable[[str], float]


@runtime_checkable
class LLMProvider(Protocol):
    """Chat, completion and embedding against a single vendor.

    Chat expects the conversation to end with a user turn and raises
    InvalidRequestError otherwise. Implementations raise AuthError,
    ProviderError or TransportError from multi_llm.errors on failure.
    """

    async def chat(
        self,
        messages: Sequence[ChatMessage],
        *,
        settings: GenerationSettings | None = None,
    ) -> str: ...

    async def complete(self, request: CompletionRequest) -> CompletionResponse: ...

    async def embed(self, inputs: list[str]) -> list[list[float]]: ...
