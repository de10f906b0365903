"""Provider for OpenAI and the vendors that speak its wire format."""

from __future__ import annotations

from typing import Any

import httpx
import openai
from openai import AsyncOpenAI
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider

from multi_llm.backends.base import PydanticAIProvider
from multi_llm.errors import AuthError, MultiLLMError, ProviderError, TransportError
from multi_llm.models.completion import CompletionRequest, CompletionResponse
from multi_llm.models.provider_spec import ProviderSpec


class OpenAICompatibleProvider(PydanticAIProvider):
    connection_errors = (openai.APIConnectionError, httpx.TransportError)

    def __init__(
        self,
        spec: ProviderSpec,
        *,
        model_name: str,
        base_url: str | None,
        api_key: str,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.client: AsyncOpenAI = AsyncOpenAI(
            base_url=base_url,
            api_key=api_key,
            timeout=spec.timeout_seconds,
            max_retries=spec.max_retries,
            http_client=http_client,
        )
        model = OpenAIChatModel(model_name, provider=OpenAIProvider(openai_client=self.client))
        super().__init__(spec, model_name=model_name, model=model)

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        params = self.defaults.merged(request.settings).as_kwargs()
        try:
            response = await self.client.completions.create(
                model=self.model_name,
                prompt=request.prompt,
                **params,
            )
        except openai.APIError as exc:
            raise self._translate_sdk_error(exc) from exc
        if not response.choices:
            raise ProviderError(f"No choices returned by {self.name}")
        return CompletionResponse(text=response.choices[0].text)

    async def embed(self, inputs: list[str]) -> list[list[float]]:
        if not inputs:
            return []
        extra: dict[str, Any] = {}
        if self.spec.embedding_dimensions is not None:
            extra["dimensions"] = self.spec.embedding_dimensions
        try:
            response = await self.client.embeddings.create(
                model=self.spec.embedding_model or self.model_name,
                input=inputs,
                encoding_format="float",
                **extra,
            )
        except openai.APIError as exc:
            raise self._translate_sdk_error(exc) from exc
        if len(response.data) != len(inputs):
            raise ProviderError(
                f"{self.name} returned {len(response.data)} embeddings for {len(inputs)} inputs"
            )
        ordered = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in ordered]

    def _translate_sdk_error(self, exc: openai.APIError) -> MultiLLMError:
        if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
            return AuthError(f"{self.name} rejected the credentials: {exc.message}")
        if isinstance(exc, openai.APIConnectionError):
            return TransportError(f"{self.name} request failed: {exc.message}")
        return ProviderError(f"{self.name} request was rejected: {exc.message}")
