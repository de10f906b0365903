import json
from typing import Any, Callable

import httpx
import pytest

from multi_llm.backends.anthropic import AnthropicProvider
from multi_llm.backends.base import split_conversation
from multi_llm.backends.openai_compatible import OpenAICompatibleProvider
from multi_llm.backends.phind import PHIND_AGENT_URL, PhindProvider, parse_stream_line
from multi_llm.chain import PromptChain
from multi_llm.errors import AuthError, InvalidRequestError, ProviderError, TransportError
from multi_llm.evaluator import Evaluator
from multi_llm.factory import build_provider
from multi_llm.models import ChainStep
from multi_llm.models import ChatMessage
from multi_llm.models import CompletionRequest
from multi_llm.models import GenerationSettings
from multi_llm.models import ProviderSpec
from multi_llm.registry import RegistryBuilder


class HttpxRequestRecorder:
    def __init__(self, respond: Callable[[httpx.Request], httpx.Response]) -> None:
        self.respond = respond
        self.requests: list[httpx.Request] = []
        self.last_json: dict[str, Any] | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.content:
            self.last_json = json.loads(request.content.decode("utf-8"))
        return self.respond(request)


def _chat_completion_response(content: str) -> dict[str, Any]:
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 123,
        "model": "gpt-4o",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 1, "completion_tokens": 1, "total_tokens": 2},
    }


def _text_completion_response(choices: list[str]) -> dict[str, Any]:
    return {
        "id": "cmpl-test",
        "object": "text_completion",
        "created": 123,
        "model": "gpt-4o",
        "choices": [
            {"index": index, "text": text, "logprobs": None, "finish_reason": "stop"}
            for index, text in enumerate(choices)
        ],
    }


def _unauthorized(_: httpx.Request) -> httpx.Response:
    return httpx.Response(
        401,
        json={"error": {"message": "Incorrect API key", "type": "invalid_request_error", "code": "invalid_api_key"}},
    )


def _refuse_connection(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


def _anthropic_message_response(text: str) -> dict[str, Any]:
    return {
        "id": "msg_test",
        "type": "message",
        "role": "assistant",
        "model": "claude-3-5-sonnet-latest",
        "content": [{"type": "text", "text": text}],
        "stop_reason": "end_turn",
        "stop_sequence": None,
        "usage": {"input_tokens": 1, "output_tokens": 1},
    }


def _anthropic_unauthorized(_: httpx.Request) -> httpx.Response:
    return httpx.Response(
        401,
        json={"type": "error", "error": {"type": "authentication_error", "message": "invalid x-api-key"}},
    )


def _anthropic_texts(message: dict[str, Any]) -> str:
    content = message["content"]
    if isinstance(content, str):
        return content
    return "".join(block.get("text", "") for block in content)


def _phind_stream(*chunks: str) -> str:
    lines = [f"data: {json.dumps({'choices': [{'delta': {'content': chunk}}]})}" for chunk in chunks]
    lines.append("data: [DONE]")
    return "\n\n".join(lines) + "\n"


def _messages_by_role(messages: list[dict[str, Any]], role: str) -> list[dict[str, Any]]:
    return [message for message in messages if message.get("role") == role]


def _spec(**overrides: Any) -> ProviderSpec:
    values: dict[str, Any] = {"backend": "openai", "max_retries": 0}
    values.update(overrides)
    return ProviderSpec(**values)


def _openai(spec: ProviderSpec, client: httpx.AsyncClient) -> OpenAICompatibleProvider:
    return OpenAICompatibleProvider(
        spec,
        model_name="gpt-4o",
        base_url="https://example.test/v1",
        api_key="test",
        http_client=client,
    )


def test_split_conversation_folds_system_turns_into_instructions() -> None:
    messages = [
        ChatMessage.system("be brief"),
        ChatMessage.user("first question"),
        ChatMessage.assistant("first answer"),
        ChatMessage.user("follow up"),
    ]

    instructions, history, user_prompt = split_conversation(messages, "you are helpful")

    assert instructions == "you are helpful\n\nbe brief"
    assert user_prompt == "follow up"
    assert len(history) == 2


def test_split_conversation_requires_final_user_turn() -> None:
    with pytest.raises(InvalidRequestError):
        split_conversation([ChatMessage.user("q"), ChatMessage.assistant("a")], None)
    with pytest.raises(InvalidRequestError):
        split_conversation([], None)


@pytest.mark.anyio
async def test_chat_sends_user_content_and_merged_settings() -> None:
    recorder = HttpxRequestRecorder(lambda _: httpx.Response(200, json=_chat_completion_response("R1")))
    transport = httpx.MockTransport(recorder)

    async with httpx.AsyncClient(transport=transport) as client:
        provider = _openai(_spec(system="be brief", temperature=0.9), client)
        result = await provider.chat(
            [ChatMessage.user("prefix X suffix")],
            settings=GenerationSettings(temperature=0.3),
        )

    assert result == "R1"
    assert len(recorder.requests) == 1
    assert recorder.requests[0].url.path.endswith("/chat/completions")
    assert recorder.last_json is not None
    assert recorder.last_json["model"] == "gpt-4o"
    assert recorder.last_json["temperature"] == 0.3
    messages = recorder.last_json["messages"]
    user_messages = _messages_by_role(messages, "user")
    assert [message["content"] for message in user_messages] == ["prefix X suffix"]
    assert any(message.get("content") == "be brief" for message in messages)


@pytest.mark.anyio
async def test_chat_sends_prior_turns_as_history() -> None:
    recorder = HttpxRequestRecorder(lambda _: httpx.Response(200, json=_chat_completion_response("ok")))
    transport = httpx.MockTransport(recorder)

    async with httpx.AsyncClient(transport=transport) as client:
        provider = _openai(_spec(), client)
        await provider.chat(
            [
                ChatMessage.user("first question"),
                ChatMessage.assistant("first answer"),
                ChatMessage.user("follow up"),
            ]
        )

    assert recorder.last_json is not None
    messages = recorder.last_json["messages"]
    assert [message["content"] for message in _messages_by_role(messages, "user")] == [
        "first question",
        "follow up",
    ]
    assert [message["content"] for message in _messages_by_role(messages, "assistant")] == ["first answer"]


@pytest.mark.anyio
async def test_chat_unauthorized_maps_to_auth_error() -> None:
    transport = httpx.MockTransport(HttpxRequestRecorder(_unauthorized))

    async with httpx.AsyncClient(transport=transport) as client:
        provider = _openai(_spec(), client)
        with pytest.raises(AuthError):
            await provider.chat([ChatMessage.user("hi")])


@pytest.mark.anyio
async def test_chat_server_error_maps_to_provider_error() -> None:
    transport = httpx.MockTransport(
        HttpxRequestRecorder(lambda _: httpx.Response(400, json={"error": {"message": "bad request"}}))
    )

    async with httpx.AsyncClient(transport=transport) as client:
        provider = _openai(_spec(), client)
        with pytest.raises(ProviderError):
            await provider.chat([ChatMessage.user("hi")])


@pytest.mark.anyio
async def test_chat_connection_failure_maps_to_transport_error() -> None:
    transport = httpx.MockTransport(HttpxRequestRecorder(_refuse_connection))

    async with httpx.AsyncClient(transport=transport) as client:
        provider = _openai(_spec(), client)
        with pytest.raises(TransportError):
            await provider.chat([ChatMessage.user("hi")])


@pytest.mark.anyio
async def test_complete_posts_prompt_with_settings() -> None:
    recorder = HttpxRequestRecorder(lambda _: httpx.Response(200, json=_text_completion_response(["4"])))
    transport = httpx.MockTransport(recorder)

    async with httpx.AsyncClient(transport=transport) as client:
        provider = _openai(_spec(max_tokens=100), client)
        response = await provider.complete(
            CompletionRequest(prompt="2 + 2 =", settings=GenerationSettings(temperature=0.0))
        )

    assert response.text == "4"
    assert recorder.requests[0].url.path.endswith("/completions")
    assert recorder.last_json is not None
    assert recorder.last_json["prompt"] == "2 + 2 ="
    assert recorder.last_json["max_tokens"] == 100
    assert recorder.last_json["temperature"] == 0.0
    assert "top_p" not in recorder.last_json


@pytest.mark.anyio
async def test_complete_without_choices_raises_provider_error() -> None:
    transport = httpx.MockTransport(
        HttpxRequestRecorder(lambda _: httpx.Response(200, json=_text_completion_response([])))
    )

    async with httpx.AsyncClient(transport=transport) as client:
        provider = _openai(_spec(), client)
        with pytest.raises(ProviderError):
            await provider.complete(CompletionRequest(prompt="x"))


@pytest.mark.anyio
async def test_complete_unauthorized_maps_to_auth_error() -> None:
    transport = httpx.MockTransport(HttpxRequestRecorder(_unauthorized))

    async with httpx.AsyncClient(transport=transport) as client:
        provider = _openai(_spec(), client)
        with pytest.raises(AuthError):
            await provider.complete(CompletionRequest(prompt="x"))


@pytest.mark.anyio
async def test_complete_connection_failure_maps_to_transport_error() -> None:
    transport = httpx.MockTransport(HttpxRequestRecorder(_refuse_connection))

    async with httpx.AsyncClient(transport=transport) as client:
        provider = _openai(_spec(), client)
        with pytest.raises(TransportError):
            await provider.complete(CompletionRequest(prompt="x"))


@pytest.mark.anyio
async def test_embed_returns_vectors_in_input_order() -> None:
    body = {
        "object": "list",
        "model": "text-embedding-3-small",
        "data": [
            {"object": "embedding", "index": 1, "embedding": [0.3, 0.4]},
            {"object": "embedding", "index": 0, "embedding": [0.1, 0.2]},
        ],
        "usage": {"prompt_tokens": 2, "total_tokens": 2},
    }
    recorder = HttpxRequestRecorder(lambda _: httpx.Response(200, json=body))
    transport = httpx.MockTransport(recorder)

    async with httpx.AsyncClient(transport=transport) as client:
        provider = _openai(_spec(embedding_model="text-embedding-3-small", embedding_dimensions=2), client)
        vectors = await provider.embed(["first", "second"])

    assert vectors == [[0.1, 0.2], [0.3, 0.4]]
    assert recorder.last_json is not None
    assert recorder.last_json["model"] == "text-embedding-3-small"
    assert recorder.last_json["input"] == ["first", "second"]
    assert recorder.last_json["dimensions"] == 2


@pytest.mark.anyio
async def test_embed_empty_input_skips_request() -> None:
    recorder = HttpxRequestRecorder(lambda _: httpx.Response(500))
    transport = httpx.MockTransport(recorder)

    async with httpx.AsyncClient(transport=transport) as client:
        provider = _openai(_spec(), client)
        assert await provider.embed([]) == []

    assert recorder.requests == []


@pytest.mark.anyio
async def test_anthropic_embed_is_unsupported() -> None:
    recorder = HttpxRequestRecorder(lambda _: httpx.Response(500))
    transport = httpx.MockTransport(recorder)

    async with httpx.AsyncClient(transport=transport) as client:
        provider = AnthropicProvider(
            ProviderSpec(backend="anthropic"),
            model_name="claude-3-5-sonnet-latest",
            base_url=None,
            api_key="test",
            http_client=client,
        )
        with pytest.raises(ProviderError):
            await provider.embed(["text"])

    assert recorder.requests == []


def _anthropic(spec: ProviderSpec, client: httpx.AsyncClient) -> AnthropicProvider:
    return AnthropicProvider(
        spec,
        model_name="claude-3-5-sonnet-latest",
        base_url=None,
        api_key="test",
        http_client=client,
    )


@pytest.mark.anyio
async def test_chat_without_choices_raises_provider_error() -> None:
    body = _chat_completion_response("unused")
    body["choices"] = []
    transport = httpx.MockTransport(HttpxRequestRecorder(lambda _: httpx.Response(200, json=body)))

    async with httpx.AsyncClient(transport=transport) as client:
        provider = _openai(_spec(), client)
        with pytest.raises(ProviderError):
            await provider.chat([ChatMessage.user("hi")])


@pytest.mark.anyio
async def test_chain_step_over_empty_chat_reply_is_annotated() -> None:
    body = _chat_completion_response("unused")
    body["choices"] = []
    transport = httpx.MockTransport(HttpxRequestRecorder(lambda _: httpx.Response(200, json=body)))

    async with httpx.AsyncClient(transport=transport) as client:
        registry = RegistryBuilder().register("remote", _openai(_spec(), client)).build()
        chain = PromptChain([ChainStep(id="A", provider_id="remote", template="hello")])
        with pytest.raises(ProviderError) as excinfo:
            await chain.run(registry)

    assert excinfo.value.step_id == "A"
    assert "step 'A'" in str(excinfo.value)


@pytest.mark.anyio
async def test_evaluator_annotates_conversation_without_final_user_turn() -> None:
    recorder = HttpxRequestRecorder(lambda _: httpx.Response(200, json=_chat_completion_response("R1")))
    transport = httpx.MockTransport(recorder)

    async with httpx.AsyncClient(transport=transport) as client:
        evaluator = Evaluator([_openai(_spec(), client)])
        with pytest.raises(InvalidRequestError) as excinfo:
            await evaluator.evaluate([ChatMessage.user("q"), ChatMessage.assistant("a")])

    assert excinfo.value.provider_index == 0
    assert recorder.requests == []


@pytest.mark.anyio
async def test_openai_requests_leave_out_top_k() -> None:
    recorder = HttpxRequestRecorder(lambda _: httpx.Response(200, json=_chat_completion_response("R1")))
    transport = httpx.MockTransport(recorder)

    async with httpx.AsyncClient(transport=transport) as client:
        provider = _openai(_spec(top_k=40, top_p=0.8), client)
        await provider.chat([ChatMessage.user("hi")])

    assert recorder.last_json is not None
    assert recorder.last_json["top_p"] == 0.8
    assert "top_k" not in recorder.last_json


@pytest.mark.anyio
async def test_anthropic_chat_sends_messages_api_request() -> None:
    recorder = HttpxRequestRecorder(lambda _: httpx.Response(200, json=_anthropic_message_response("Claude says hi")))
    transport = httpx.MockTransport(recorder)

    async with httpx.AsyncClient(transport=transport) as client:
        provider = _anthropic(ProviderSpec(backend="anthropic", system="be brief", max_retries=0), client)
        result = await provider.chat(
            [
                ChatMessage.user("first question"),
                ChatMessage.assistant("first answer"),
                ChatMessage.user("follow up"),
            ],
            settings=GenerationSettings(temperature=0.2, max_tokens=64, top_k=5),
        )

    assert result == "Claude says hi"
    assert len(recorder.requests) == 1
    assert recorder.requests[0].url.path.endswith("/v1/messages")
    assert recorder.requests[0].headers["x-api-key"] == "test"
    assert recorder.last_json is not None
    assert recorder.last_json["model"] == "claude-3-5-sonnet-latest"
    assert recorder.last_json["temperature"] == 0.2
    assert recorder.last_json["max_tokens"] == 64
    assert recorder.last_json["top_k"] == 5
    assert "be brief" in json.dumps(recorder.last_json["system"])
    messages = recorder.last_json["messages"]
    assert [_anthropic_texts(message) for message in _messages_by_role(messages, "user")] == [
        "first question",
        "follow up",
    ]
    assert [_anthropic_texts(message) for message in _messages_by_role(messages, "assistant")] == ["first answer"]


@pytest.mark.anyio
async def test_anthropic_complete_is_sent_as_single_user_turn() -> None:
    recorder = HttpxRequestRecorder(lambda _: httpx.Response(200, json=_anthropic_message_response("4")))
    transport = httpx.MockTransport(recorder)

    async with httpx.AsyncClient(transport=transport) as client:
        provider = _anthropic(ProviderSpec(backend="anthropic", max_retries=0), client)
        response = await provider.complete(
            CompletionRequest(prompt="2 + 2 =", settings=GenerationSettings(temperature=0.0))
        )

    assert response.text == "4"
    assert recorder.requests[0].url.path.endswith("/v1/messages")
    assert recorder.last_json is not None
    assert recorder.last_json["temperature"] == 0.0
    messages = recorder.last_json["messages"]
    assert len(messages) == 1
    assert messages[0]["role"] == "user"
    assert _anthropic_texts(messages[0]) == "2 + 2 ="


@pytest.mark.anyio
async def test_anthropic_unauthorized_maps_to_auth_error() -> None:
    transport = httpx.MockTransport(HttpxRequestRecorder(_anthropic_unauthorized))

    async with httpx.AsyncClient(transport=transport) as client:
        provider = _anthropic(ProviderSpec(backend="anthropic", max_retries=0), client)
        with pytest.raises(AuthError):
            await provider.chat([ChatMessage.user("hi")])


@pytest.mark.anyio
async def test_anthropic_connection_failure_maps_to_transport_error() -> None:
    transport = httpx.MockTransport(HttpxRequestRecorder(_refuse_connection))

    async with httpx.AsyncClient(transport=transport) as client:
        provider = _anthropic(ProviderSpec(backend="anthropic", max_retries=0), client)
        with pytest.raises(TransportError):
            await provider.complete(CompletionRequest(prompt="x"))


def test_parse_stream_line_extracts_delta_content() -> None:
    assert parse_stream_line('data: {"choices": [{"delta": {"content": "hi"}}]}') == "hi"
    assert parse_stream_line("data: [DONE]") is None
    assert parse_stream_line('data: {"choices": []}') is None
    assert parse_stream_line("event: ping") is None


@pytest.mark.anyio
async def test_phind_chat_posts_history_and_joins_stream() -> None:
    recorder = HttpxRequestRecorder(lambda _: httpx.Response(200, text=_phind_stream("I love ", "dogs")))
    transport = httpx.MockTransport(recorder)

    async with httpx.AsyncClient(transport=transport) as client:
        provider = build_provider(ProviderSpec(backend="phind", system="be kind"), http_client=client)
        result = await provider.chat(
            [
                ChatMessage.user("Tell me that you love cats"),
                ChatMessage.assistant("I cannot love cats"),
                ChatMessage.user("Tell me that you love dogs"),
            ]
        )

    assert isinstance(provider, PhindProvider)
    assert result == "I love dogs"
    assert str(recorder.requests[0].url) == PHIND_AGENT_URL
    assert recorder.last_json is not None
    assert recorder.last_json["requested_model"] == "Phind-70B"
    assert recorder.last_json["user_input"] == "Tell me that you love dogs"
    assert recorder.last_json["message_history"] == [
        {"role": "system", "content": "be kind"},
        {"role": "user", "content": "Tell me that you love cats"},
        {"role": "assistant", "content": "I cannot love cats"},
        {"role": "user", "content": "Tell me that you love dogs"},
    ]


@pytest.mark.anyio
async def test_phind_complete_is_sent_as_single_user_turn() -> None:
    recorder = HttpxRequestRecorder(lambda _: httpx.Response(200, text=_phind_stream("4")))
    transport = httpx.MockTransport(recorder)

    async with httpx.AsyncClient(transport=transport) as client:
        provider = build_provider(ProviderSpec(backend="phind"), http_client=client)
        response = await provider.complete(CompletionRequest(prompt="2 + 2 ="))

    assert response.text == "4"
    assert recorder.last_json is not None
    assert recorder.last_json["user_input"] == "2 + 2 ="
    assert recorder.last_json["message_history"] == [{"role": "user", "content": "2 + 2 ="}]


@pytest.mark.anyio
async def test_phind_empty_stream_raises_provider_error() -> None:
    transport = httpx.MockTransport(HttpxRequestRecorder(lambda _: httpx.Response(200, text="data: [DONE]\n")))

    async with httpx.AsyncClient(transport=transport) as client:
        provider = build_provider(ProviderSpec(backend="phind"), http_client=client)
        with pytest.raises(ProviderError):
            await provider.chat([ChatMessage.user("hi")])


@pytest.mark.anyio
async def test_phind_status_and_connection_errors_are_mapped() -> None:
    async with httpx.AsyncClient(transport=httpx.MockTransport(HttpxRequestRecorder(_unauthorized))) as client:
        provider = build_provider(ProviderSpec(backend="phind"), http_client=client)
        with pytest.raises(AuthError):
            await provider.chat([ChatMessage.user("hi")])

    server_error = HttpxRequestRecorder(lambda _: httpx.Response(500, text="boom"))
    async with httpx.AsyncClient(transport=httpx.MockTransport(server_error)) as client:
        provider = build_provider(ProviderSpec(backend="phind"), http_client=client)
        with pytest.raises(ProviderError):
            await provider.chat([ChatMessage.user("hi")])

    async with httpx.AsyncClient(transport=httpx.MockTransport(HttpxRequestRecorder(_refuse_connection))) as client:
        provider = build_provider(ProviderSpec(backend="phind"), http_client=client)
        with pytest.raises(TransportError):
            await provider.chat([ChatMessage.user("hi")])
        with pytest.raises(InvalidRequestError):
            await provider.chat([ChatMessage.assistant("no question")])
