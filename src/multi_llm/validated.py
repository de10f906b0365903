"""Provider wrapper that retries until a validator accepts the output."""

from __future__ import annotations

import logging
from typing import Sequence

from multi_llm.errors import ConfigurationError, ValidationError
from multi_llm.models.chat_message import ChatMessage
from multi_llm.models.completion import CompletionRequest, CompletionResponse
from multi_llm.models.generation_settings import GenerationSettings
from multi_llm.provider import LLMProvider, ValidatorFn

logger = logging.getLogger(__name__)


def feedback_message(reason: str) -> ChatMessage:
    return ChatMessage.user(
        f"Your previous output was invalid because: {reason}\n"
        "Please try again and produce a valid response."
    )


class ValidatedProvider:
    """Wraps one provider and re-asks it until `validator` accepts the text.

    Chat retries carry the rejection reason back to the model as an extra
    user turn. Completion retries resend the identical request. Errors from
    the inner provider are not retried. Embeddings pass straight through.
    """

    def __init__(self, inner: LLMProvider, validator: ValidatorFn, max_attempts: int) -> None:
        if max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be at least 1, got {max_attempts}")
        self.inner: LLMProvider = inner
        self.validator: ValidatorFn = validator
        self.max_attempts: int = max_attempts

    async def chat(
        self,
        messages: Sequence[ChatMessage],
        *,
        settings: GenerationSettings | None = None,
    ) -> str:
        conversation = list(messages)
        attempt = 0
        while True:
            attempt += 1
            response = await self.inner.chat(conversation, settings=settings)
            reason = self.validator(response)
            if reason is None:
                return response
            self._reject(reason, attempt)
            conversation.append(feedback_message(reason))

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        attempt = 0
        while True:
            attempt += 1
            response = await self.inner.complete(request)
            reason = self.validator(response.text)
            if reason is None:
                return response
            self._reject(reason, attempt)

    async def embed(self, inputs: list[str]) -> list[list[float]]:
        return await self.inner.embed(inputs)

    def _reject(self, reason: str, attempt: int) -> None:
        logger.warning("Validation rejected attempt %d/%d: %s", attempt, self.max_attempts, reason)
        if attempt >= self.max_attempts:
            raise ValidationError(reason, attempts=attempt)


def wrap(provider: LLMProvider, validator: ValidatorFn, max_attempts: int) -> ValidatedProvider:
    return ValidatedProvider(provider, validator, max_attempts)
