"""Provider for Anthropic Claude models."""

from __future__ import annotations

import anthropic
import httpx
from anthropic import AsyncAnthropic
from pydantic_ai.models.anthropic import AnthropicModel
from pydantic_ai.providers.anthropic import AnthropicProvider as AnthropicModelProvider
from pydantic_ai.settings import ModelSettings

from multi_llm.backends.base import PydanticAIProvider
from multi_llm.errors import ProviderError
from multi_llm.models.chat_message import ChatMessage
from multi_llm.models.completion import CompletionRequest, CompletionResponse
from multi_llm.models.generation_settings import GenerationSettings
from multi_llm.models.provider_spec import ProviderSpec


class AnthropicProvider(PydanticAIProvider):
    connection_errors = (anthropic.APIConnectionError, httpx.TransportError)

    def __init__(
        self,
        spec: ProviderSpec,
        *,
        model_name: str,
        base_url: str | None,
        api_key: str,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.client: AsyncAnthropic = AsyncAnthropic(
            api_key=api_key,
            base_url=base_url,
            timeout=spec.timeout_seconds,
            max_retries=spec.max_retries,
            http_client=http_client,
        )
        model = AnthropicModel(model_name, provider=AnthropicModelProvider(anthropic_client=self.client))
        super().__init__(spec, model_name=model_name, model=model)

    def model_settings(self, settings: GenerationSettings) -> ModelSettings:
        model_settings = settings.to_model_settings()
        if settings.top_k is not None:
            model_settings["extra_body"] = {"top_k": settings.top_k}
        return model_settings

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        # The Messages API has no raw completion endpoint; send the prompt as one user turn.
        text = await self.chat([ChatMessage.user(request.prompt)], settings=request.settings)
        return CompletionResponse(text=text)

    async def embed(self, inputs: list[str]) -> list[list[float]]:
        raise ProviderError(f"{self.name} does not offer an embeddings endpoint")
