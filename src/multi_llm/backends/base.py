"""Shared chat plumbing for pydantic-ai backed providers."""

from __future__ import annotations

from typing import Sequence

import httpx
from pydantic_ai import Agent
from pydantic_ai.exceptions import AgentRunError, ModelHTTPError
from pydantic_ai.messages import ModelMessage, ModelRequest, ModelResponse, TextPart, UserPromptPart
from pydantic_ai.models import Model
from pydantic_ai.settings import ModelSettings

from multi_llm.errors import AuthError, InvalidRequestError, MultiLLMError, ProviderError, TransportError
from multi_llm.models.chat_message import ChatMessage, ChatRole
from multi_llm.models.generation_settings import GenerationSettings
from multi_llm.models.provider_spec import ProviderSpec

AUTH_STATUS_CODES = (401, 403)


def require_final_user_turn(messages: Sequence[ChatMessage]) -> str:
    if not messages or messages[-1].role != ChatRole.USER:
        raise InvalidRequestError("Conversation must end with a user message.")
    return messages[-1].content


def split_conversation(
    messages: Sequence[ChatMessage],
    default_system: str | None,
) -> tuple[str | None, list[ModelMessage], str]:
    """
    Splits a conversation into (instructions, prior history, final user prompt).
    System turns are folded into the instructions so they survive a non-empty history.
    """
    user_prompt = require_final_user_turn(messages)

    system_parts: list[str] = [default_system] if default_system else []
    history: list[ModelMessage] = []
    pending: list[UserPromptPart] = []
    for message in messages[:-1]:
        if message.role == ChatRole.SYSTEM:
            system_parts.append(message.content)
        elif message.role == ChatRole.USER:
            pending.append(UserPromptPart(content=message.content))
        else:
            if pending:
                history.append(ModelRequest(parts=pending))
                pending = []
            history.append(ModelResponse(parts=[TextPart(content=message.content)]))
    if pending:
        history.append(ModelRequest(parts=pending))

    instructions = "\n\n".join(system_parts) or None
    return instructions, history, user_prompt


class PydanticAIProvider:
    connection_errors: tuple[type[BaseException], ...] = (httpx.TransportError,)

    def __init__(self, spec: ProviderSpec, *, model_name: str, model: Model) -> None:
        self.spec: ProviderSpec = spec
        self.name: str = spec.backend
        self.model_name: str = model_name
        self.model: Model = model
        self.defaults: GenerationSettings = spec.generation

    def model_settings(self, settings: GenerationSettings) -> ModelSettings:
        return settings.to_model_settings()

    async def chat(
        self,
        messages: Sequence[ChatMessage],
        *,
        settings: GenerationSettings | None = None,
    ) -> str:
        instructions, history, user_prompt = split_conversation(messages, self.spec.system)
        agent = Agent(self.model, instructions=instructions, output_type=str)
        try:
            result = await agent.run(
                user_prompt,
                message_history=history or None,
                model_settings=self.model_settings(self.defaults.merged(settings)),
            )
        except (AgentRunError, *self.connection_errors) as exc:
            raise self.translate_error(exc) from exc
        except Exception as exc:
            # Malformed payloads (an empty choices list, say) fail inside the model adapter.
            raise ProviderError(f"{self.name} returned an unusable response: {exc!r}") from exc
        return result.output

    def translate_error(self, exc: BaseException) -> MultiLLMError:
        if isinstance(exc, ModelHTTPError):
            if exc.status_code in AUTH_STATUS_CODES:
                return AuthError(f"{self.name} rejected the credentials (HTTP {exc.status_code})")
            return ProviderError(f"{self.name} returned HTTP {exc.status_code}")
        cause = exc if isinstance(exc, self.connection_errors) else exc.__cause__
        if isinstance(cause, self.connection_errors):
            return TransportError(f"{self.name} request failed: {cause}")
        return ProviderError(f"{self.name} returned an unusable response: {exc}")
