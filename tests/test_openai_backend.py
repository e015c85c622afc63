"""Tests for the OpenAI-compatible backend: request building and response parsing."""

import json

import httpx
import pytest

from rollingchat import (
    ApiError,
    ApiKeyAuth,
    ChatClientConfig,
    MalformedResponseError,
    Message,
    OpenRouterAuth,
    RefusalError,
    TokenAuth,
    TransportError,
    Usage,
)
from rollingchat.auth import ApiFlavor
from rollingchat.backends.openai import (
    OpenAIChatBackend,
    build_request_body,
    parse_completion,
    parse_error_message,
)


def completion_body(content="Hello there!", **message_fields) -> dict:
    return {
        "id": "chatcmpl-123",
        "object": "chat.completion",
        "created": 1677652288,
        "model": "gpt-4o-mini",
        "system_fingerprint": None,
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content, **message_fields},
                "logprobs": None,
                "finish_reason": "stop",
            }
        ],
        "usage": {
            "prompt_tokens": 9,
            "completion_tokens": 12,
            "total_tokens": 21,
            "completion_tokens_details": {"reasoning_tokens": 4},
        },
    }


class Recorder:
    """MockTransport handler that records requests and replays one response."""

    def __init__(self, response: httpx.Response | None = None, error: Exception | None = None):
        self.requests: list[httpx.Request] = []
        self._response = response or httpx.Response(200, json=completion_body())
        self._error = error

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._error is not None:
            raise self._error
        return self._response

    @property
    def body(self) -> dict:
        return json.loads(self.requests[-1].content)


def make_backend(recorder: Recorder, **config_kwargs) -> OpenAIChatBackend:
    config_kwargs.setdefault("auth", TokenAuth("sk-test"))
    config = ChatClientConfig(**config_kwargs)
    http_client = httpx.Client(transport=httpx.MockTransport(recorder))
    return OpenAIChatBackend(config, http_client=http_client)


class TestBuildRequestBody:
    """Tests for request body construction."""

    def test_minimal_body(self):
        """Test that unset options are absent from the body."""
        body = build_request_body("gpt-4o-mini", [Message.user("Hi")])

        assert body == {
            "model": "gpt-4o-mini",
            "messages": [{"role": "user", "content": "Hi"}],
            "stream": False,
        }

    def test_openai_reasoning_effort_and_verbosity(self):
        """Test OpenAI top-level reasoning_effort and verbosity."""
        body = build_request_body(
            "gpt-5",
            [Message.user("Hi")],
            reasoning_effort="low",
            verbosity="high",
        )

        assert body["reasoning_effort"] == "low"
        assert body["verbosity"] == "high"
        assert "reasoning" not in body

    def test_openrouter_effort(self):
        """Test that OpenRouter gets a reasoning object instead of reasoning_effort."""
        body = build_request_body(
            "openai/gpt-5",
            [Message.user("Hi")],
            flavor=ApiFlavor.OPENROUTER,
            reasoning_effort="medium",
        )

        assert body["reasoning"] == {"effort": "medium", "exclude": True}
        assert "reasoning_effort" not in body

    def test_openrouter_budget_with_reasoning_text(self):
        """Test OpenRouter reasoning budget when reasoning text is requested."""
        body = build_request_body(
            "anthropic/claude-sonnet-4",
            [Message.user("Hi")],
            flavor=ApiFlavor.OPENROUTER,
            reasoning_budget=2000,
            include_reasoning=True,
        )

        assert body["reasoning"] == {"max_tokens": 2000}

    def test_openrouter_reasoning_text_only(self):
        """Test that requesting reasoning text alone sends an empty reasoning object."""
        body = build_request_body(
            "deepseek/deepseek-r1",
            [Message.user("Hi")],
            flavor=ApiFlavor.OPENROUTER,
            include_reasoning=True,
        )

        assert body["reasoning"] == {}

    def test_openrouter_without_options(self):
        """Test that OpenRouter without reasoning options sends no reasoning object."""
        body = build_request_body("x/y", [Message.user("Hi")], flavor=ApiFlavor.OPENROUTER)

        assert "reasoning" not in body

    def test_message_order(self):
        """Test that messages keep their order and roles."""
        messages = [
            Message.system("sys"),
            Message.user("req1"),
            Message.assistant("resp1"),
            Message.user("req2"),
        ]

        body = build_request_body("m", messages)

        assert [m["role"] for m in body["messages"]] == ["system", "user", "assistant", "user"]
        assert body["messages"][-1]["content"] == "req2"


class TestParseCompletion:
    """Tests for response parsing."""

    def test_basic(self):
        """Test reply text and usage extraction."""
        completion = parse_completion(completion_body())

        assert completion.reply == "Hello there!"
        assert completion.usage == Usage(9, 12, 21, reasoning_tokens=4)
        assert completion.reasoning is None

    def test_unpacks_as_tuple(self):
        """Test that a completion unpacks as reply, usage, reasoning."""
        reply, usage, reasoning = parse_completion(completion_body())

        assert reply == "Hello there!"
        assert usage.total_tokens == 21
        assert reasoning is None

    def test_reasoning(self):
        """Test OpenRouter reasoning text extraction."""
        completion = parse_completion(completion_body(reasoning="Thinking..."))

        assert completion.reasoning == "Thinking..."

    def test_reasoning_content(self):
        """Test reasoning_content extraction."""
        completion = parse_completion(completion_body(reasoning_content="Hmm"))

        assert completion.reasoning == "Hmm"

    def test_cached_tokens(self):
        """Test cached prompt tokens extraction."""
        data = completion_body()
        data["usage"]["prompt_tokens_details"] = {"cached_tokens": 5}

        assert parse_completion(data).usage.cached_tokens == 5

    def test_missing_usage(self):
        """Test that a missing usage block yields zero usage."""
        data = completion_body()
        del data["usage"]

        assert parse_completion(data).usage == Usage.zero()

    def test_null_optional_fields(self):
        """Test that null optional fields are tolerated."""
        data = completion_body()
        data["usage"]["completion_tokens_details"] = None
        data["service_tier"] = None

        completion = parse_completion(data)

        assert completion.usage.reasoning_tokens is None

    def test_usage_count_not_an_integer(self):
        """Test that a string token count is malformed."""
        data = completion_body()
        data["usage"]["prompt_tokens"] = "10"

        with pytest.raises(MalformedResponseError, match="prompt_tokens"):
            parse_completion(data)

    @pytest.mark.parametrize("key", ["prompt_tokens", "completion_tokens", "total_tokens"])
    @pytest.mark.parametrize("value", [1.5, True, -1, [3]])
    def test_usage_count_invalid_values(self, key, value):
        """Test that non-integer or negative token counts are malformed."""
        data = completion_body()
        data["usage"][key] = value

        with pytest.raises(MalformedResponseError):
            parse_completion(data)

    def test_usage_not_an_object(self):
        """Test that a usage block of the wrong type is malformed."""
        data = completion_body()
        data["usage"] = "21 tokens"

        with pytest.raises(MalformedResponseError):
            parse_completion(data)

    def test_usage_total_derived(self):
        """Test that a missing total is the sum of prompt and completion tokens."""
        data = completion_body()
        del data["usage"]["total_tokens"]

        assert parse_completion(data).usage.total_tokens == 21

    def test_no_choices(self):
        """Test that an empty choices list is malformed."""
        data = completion_body()
        data["choices"] = []

        with pytest.raises(MalformedResponseError):
            parse_completion(data)

    def test_no_message(self):
        """Test that a choice without message is malformed."""
        data = completion_body()
        del data["choices"][0]["message"]

        with pytest.raises(MalformedResponseError):
            parse_completion(data)

    def test_no_content(self):
        """Test that a message without content is malformed."""
        with pytest.raises(MalformedResponseError):
            parse_completion(completion_body(content=None))

    def test_refusal(self):
        """Test that a refusal raises RefusalError."""
        with pytest.raises(RefusalError) as exc_info:
            parse_completion(completion_body(content=None, refusal="I can't help with that."))

        assert exc_info.value.refusal == "I can't help with that."

    def test_not_an_object(self):
        """Test that a non-object body is malformed."""
        with pytest.raises(MalformedResponseError):
            parse_completion(["not", "a", "completion"])


class TestParseErrorMessage:
    """Tests for error body parsing."""

    def test_openai_error_object(self):
        """Test extraction of error.message."""
        body = json.dumps({"error": {"message": "Invalid API key", "type": "invalid_request_error"}})

        assert parse_error_message(body) == "Invalid API key"

    def test_plain_text(self):
        """Test that a non-JSON body is returned as is."""
        assert parse_error_message("Bad Gateway") == "Bad Gateway"


class TestOpenAIChatBackend:
    """Tests for the HTTP round trip."""

    def test_post_to_endpoint_with_bearer_token(self):
        """Test URL, auth header and body of a request."""
        recorder = Recorder()
        backend = make_backend(recorder, api_url="https://api.example.com/v1")

        completion = backend.complete([Message.user("Hi")])

        request = recorder.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://api.example.com/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        assert recorder.body["messages"] == [{"role": "user", "content": "Hi"}]
        assert completion.reply == "Hello there!"

    def test_api_key_and_version(self):
        """Test Azure style api-key header and api-version query parameter."""
        recorder = Recorder()
        backend = make_backend(
            recorder,
            auth=ApiKeyAuth("azure-key", api_version="2024-10-21"),
            api_url="https://example.openai.azure.com/openai/deployments/gpt-4o/",
        )

        backend.complete([Message.user("Hi")])

        request = recorder.requests[0]
        assert request.headers["api-key"] == "azure-key"
        assert "Authorization" not in request.headers
        assert request.url.params["api-version"] == "2024-10-21"
        assert request.url.path == "/openai/deployments/gpt-4o/chat/completions"

    def test_openrouter_options_in_body(self):
        """Test that configured options reach the wire."""
        recorder = Recorder()
        backend = make_backend(
            recorder,
            auth=OpenRouterAuth("or-token"),
            api_url="https://openrouter.ai/api/v1/",
            model="openai/gpt-5",
            reasoning_effort="high",
            verbosity="low",
            include_reasoning=True,
        )

        backend.complete([Message.user("Hi")])

        assert recorder.body["model"] == "openai/gpt-5"
        assert recorder.body["reasoning"] == {"effort": "high"}
        assert recorder.body["verbosity"] == "low"

    def test_api_error(self):
        """Test that a non-2xx status raises ApiError with status and message."""
        error_body = {"error": {"message": "Rate limit reached", "type": "requests"}}
        recorder = Recorder(httpx.Response(429, json=error_body))
        backend = make_backend(recorder)

        with pytest.raises(ApiError) as exc_info:
            backend.complete([Message.user("Hi")])

        assert exc_info.value.status_code == 429
        assert exc_info.value.message == "Rate limit reached"
        assert "Rate limit reached" in exc_info.value.body

    def test_api_error_not_retried(self):
        """Test that a failed request is sent exactly once."""
        recorder = Recorder(httpx.Response(500, text="Internal Server Error"))
        backend = make_backend(recorder)

        with pytest.raises(ApiError):
            backend.complete([Message.user("Hi")])

        assert len(recorder.requests) == 1

    def test_connection_error(self):
        """Test that network failures raise TransportError."""
        recorder = Recorder(error=httpx.ConnectError("Connection refused"))
        backend = make_backend(recorder)

        with pytest.raises(TransportError) as exc_info:
            backend.complete([Message.user("Hi")])

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    def test_timeout(self):
        """Test that timeouts raise TransportError."""
        recorder = Recorder(error=httpx.ReadTimeout("timed out"))
        backend = make_backend(recorder)

        with pytest.raises(TransportError):
            backend.complete([Message.user("Hi")])

    def test_invalid_json(self):
        """Test that a non-JSON success body is malformed."""
        recorder = Recorder(httpx.Response(200, text="<html>oops</html>"))
        backend = make_backend(recorder)

        with pytest.raises(MalformedResponseError):
            backend.complete([Message.user("Hi")])

    def test_shared_client_not_closed(self):
        """Test that an injected HTTP client is left open."""
        recorder = Recorder()
        backend = make_backend(recorder)

        backend.close()

        assert not backend._http.is_closed

    def test_model_name(self):
        """Test model_name property."""
        backend = make_backend(Recorder(), model="gpt-4.1")

        assert backend.model_name == "gpt-4.1"
