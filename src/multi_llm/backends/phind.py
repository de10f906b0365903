"""Provider for Phind's code-specialised models.

Phind does not expose an OpenAI-style API. Its agent endpoint takes the whole
conversation plus the final user input and streams the answer back as
server-sent events, one `data: {...}` line per delta. The endpoint accepts no
sampling parameters, so generation settings are not forwarded.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Sequence

import httpx

from multi_llm.backends.base import AUTH_STATUS_CODES, require_final_user_turn
from multi_llm.errors import AuthError, ProviderError, TransportError
from multi_llm.models.chat_message import ChatMessage
from multi_llm.models.completion import CompletionRequest, CompletionResponse
from multi_llm.models.generation_settings import GenerationSettings
from multi_llm.models.provider_spec import ProviderSpec

logger = logging.getLogger(__name__)

PHIND_AGENT_URL = "https://https.extension.phind.com/agent/"

PHIND_HEADERS = {
    "Content-Type": "application/json",
    "User-Agent": "",
    "Accept": "*/*",
    "Accept-Encoding": "Identity",
}


def parse_stream_line(line: str) -> str | None:
    if not line.startswith("data: "):
        return None
    try:
        event = json.loads(line[len("data: "):])
        return event["choices"][0]["delta"]["content"]
    except (ValueError, KeyError, IndexError, TypeError):
        return None


class PhindProvider:
    def __init__(
        self,
        spec: ProviderSpec,
        *,
        model_name: str,
        base_url: str | None,
        api_key: str,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        # Phind is keyless; api_key is accepted for a uniform factory signature.
        self.spec: ProviderSpec = spec
        self.name: str = spec.backend
        self.model_name: str = model_name
        self.url: str = base_url or PHIND_AGENT_URL
        self.timeout: float = spec.timeout_seconds
        self.client: httpx.AsyncClient = http_client or httpx.AsyncClient(
            transport=httpx.AsyncHTTPTransport(retries=spec.max_retries),
            timeout=spec.timeout_seconds,
        )

    def build_payload(self, messages: Sequence[ChatMessage]) -> dict[str, Any]:
        user_input = require_final_user_turn(messages)
        history: list[dict[str, str]] = []
        if self.spec.system:
            history.append({"role": "system", "content": self.spec.system})
        history.extend({"role": message.role.value, "content": message.content} for message in messages)
        return {
            "additional_extension_context": "",
            "allow_magic_buttons": True,
            "is_vscode_extension": True,
            "message_history": history,
            "requested_model": self.model_name,
            "user_input": user_input,
        }

    async def chat(
        self,
        messages: Sequence[ChatMessage],
        *,
        settings: GenerationSettings | None = None,
    ) -> str:
        payload = self.build_payload(messages)
        try:
            response = await self.client.post(
                self.url,
                json=payload,
                headers=PHIND_HEADERS,
                timeout=self.timeout,
            )
        except httpx.TransportError as exc:
            raise TransportError(f"{self.name} request failed: {exc}") from exc
        if response.status_code in AUTH_STATUS_CODES:
            raise AuthError(f"{self.name} rejected the request (HTTP {response.status_code})")
        if response.is_error:
            raise ProviderError(f"{self.name} returned HTTP {response.status_code}")

        chunks = [chunk for chunk in map(parse_stream_line, response.text.splitlines()) if chunk]
        if not chunks:
            raise ProviderError(f"{self.name} returned no content")
        logger.debug("Phind answered in %d chunk(s)", len(chunks))
        return "".join(chunks)

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        text = await self.chat([ChatMessage.user(request.prompt)], settings=request.settings)
        return CompletionResponse(text=text)

    async def embed(self, inputs: list[str]) -> list[list[float]]:
        raise ProviderError(f"{self.name} does not offer an embeddings endpoint")
