"""OpenAI-compatible chat completions backend.

Converts a message list into a ``chat/completions`` request body, sends it
over HTTP and parses the response into a ``Completion``. Works with
OpenAI, Azure and OpenRouter endpoints; they differ only in auth headers
and in which optional request fields they accept.
"""

import json
import logging
from typing import Any

import httpx

from rollingchat.auth import ApiFlavor
from rollingchat.backends.base import Completion, Message, Usage
from rollingchat.config import ChatClientConfig, ReasoningEffort, Verbosity
from rollingchat.errors import ApiError, MalformedResponseError, RefusalError, TransportError

logger = logging.getLogger(__name__)


def build_request_body(
    model: str,
    messages: list[Message],
    *,
    flavor: ApiFlavor = ApiFlavor.OPENAI,
    reasoning_effort: ReasoningEffort | None = None,
    reasoning_budget: int | None = None,
    verbosity: Verbosity | None = None,
    include_reasoning: bool = False,
) -> dict[str, Any]:
    """Build the JSON body of a chat completions request.

    Optional fields are only present when configured; they are never sent
    as ``null``.

    Args:
        model: Model name.
        messages: Messages to send, system message first.
        flavor: API flavor, selects how reasoning options are encoded.
        reasoning_effort: Reasoning effort.
        reasoning_budget: Reasoning budget in tokens (OpenRouter).
        verbosity: Answer verbosity.
        include_reasoning: Request reasoning text in the response (OpenRouter).

    Returns:
        Request body ready to be serialized as JSON.
    """
    body: dict[str, Any] = {
        "model": model,
        "messages": [message.to_dict() for message in messages],
        "stream": False,
    }

    if flavor is ApiFlavor.OPENROUTER:
        # OpenRouter takes a single `reasoning` object instead of `reasoning_effort`
        if reasoning_effort is not None or reasoning_budget is not None or include_reasoning:
            reasoning: dict[str, Any] = {}
            if reasoning_effort is not None:
                reasoning["effort"] = ReasoningEffort(reasoning_effort).value
            if reasoning_budget is not None:
                reasoning["max_tokens"] = reasoning_budget
            if not include_reasoning:
                reasoning["exclude"] = True
            body["reasoning"] = reasoning
    elif reasoning_effort is not None:
        body["reasoning_effort"] = ReasoningEffort(reasoning_effort).value

    if verbosity is not None:
        body["verbosity"] = Verbosity(verbosity).value

    return body


def _optional_int(details: Any, key: str) -> int | None:
    if not isinstance(details, dict):
        return None
    value = details.get(key)
    return value if isinstance(value, int) and not isinstance(value, bool) else None


def _usage_count(raw: dict, key: str) -> int | None:
    value = raw.get(key)
    if value is None:
        return None
    # bool is an int subclass
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise MalformedResponseError(f"Invalid `usage.{key}`: {value!r}", body=raw)
    return value


def parse_usage(raw: Any) -> Usage:
    """Parse a ``usage`` block.

    A missing block or missing counts are read as zero. Counts that are
    present must be non-negative integers.

    Raises:
        MalformedResponseError: If ``usage`` is not an object or a count
            has the wrong type.
    """
    if raw is None:
        return Usage.zero()
    if not isinstance(raw, dict):
        raise MalformedResponseError("Response `usage` is not an object", body=raw)

    prompt_tokens = _usage_count(raw, "prompt_tokens") or 0
    completion_tokens = _usage_count(raw, "completion_tokens") or 0
    total_tokens = _usage_count(raw, "total_tokens")
    if total_tokens is None:
        total_tokens = prompt_tokens + completion_tokens

    return Usage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total_tokens,
        reasoning_tokens=_optional_int(raw.get("completion_tokens_details"), "reasoning_tokens"),
        cached_tokens=_optional_int(raw.get("prompt_tokens_details"), "cached_tokens"),
    )


def parse_completion(data: Any) -> Completion:
    """Parse a chat completions response body.

    Only the first choice is used. Fields the parser does not need, such as
    ``system_fingerprint``, may be missing or null.

    Args:
        data: Decoded JSON response body.

    Returns:
        Reply text, usage and optional reasoning text.

    Raises:
        MalformedResponseError: If the first choice's message or its content
            is missing.
        RefusalError: If the model returned a refusal instead of content.
    """
    if not isinstance(data, dict):
        raise MalformedResponseError("Response is not a JSON object", body=data)

    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        raise MalformedResponseError("Response contains no choices", body=data)

    choice = choices[0]
    message = choice.get("message") if isinstance(choice, dict) else None
    if not isinstance(message, dict):
        raise MalformedResponseError("Response choice contains no message", body=data)

    content = message.get("content")
    if content is None:
        refusal = message.get("refusal")
        if refusal:
            raise RefusalError(refusal)
        raise MalformedResponseError("Assistant message contains no `content`", body=data)
    if not isinstance(content, str):
        raise MalformedResponseError("Assistant message `content` is not a string", body=data)

    # OpenRouter uses `reasoning`, DeepSeek-style servers `reasoning_content`
    reasoning = message.get("reasoning") or message.get("reasoning_content") or None

    return Completion(reply=content, usage=parse_usage(data.get("usage")), reasoning=reasoning)


def parse_error_message(body: str) -> str:
    """Extract ``error.message`` from an error body, or return the body as is."""
    try:
        data = json.loads(body)
    except ValueError:
        return body

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str):
            return error
    return body


class OpenAIChatBackend:
    """Backend for OpenAI-compatible chat completions endpoints.

    Sends one request per ``complete`` call; never retries and never
    streams.

    Example:
        >>> from rollingchat import ChatClientConfig, TokenAuth
        >>> config = ChatClientConfig(auth=TokenAuth("sk-..."), model="gpt-4o-mini")
        >>> backend = OpenAIChatBackend(config)
        >>> backend.complete([Message.user("Hello")]).reply
    """

    def __init__(
        self,
        config: ChatClientConfig,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize the backend.

        Args:
            config: Client configuration (endpoint, auth, model, options).
            http_client: Optional shared ``httpx.Client``. If omitted, the
                backend creates its own and closes it in ``close``.
        """
        self._config = config
        self._owns_client = http_client is None
        self._http = http_client if http_client is not None else httpx.Client()
        self._headers = {
            "Content-Type": "application/json",
            **config.auth.headers(),
        }
        self._params = config.auth.params()

    @property
    def model_name(self) -> str:
        """Return the model name being used."""
        return self._config.model

    @property
    def endpoint(self) -> str:
        return self._config.endpoint

    def build_body(self, messages: list[Message]) -> dict[str, Any]:
        """Request body for ``messages`` with the configured options."""
        config = self._config
        return build_request_body(
            config.model,
            messages,
            flavor=config.flavor,
            reasoning_effort=config.reasoning_effort,
            reasoning_budget=config.reasoning_budget,
            verbosity=config.verbosity,
            include_reasoning=config.include_reasoning,
        )

    def complete(self, messages: list[Message]) -> Completion:
        """Send messages to the endpoint and parse the reply.

        Args:
            messages: System message, trimmed history and the new request.

        Returns:
            The parsed completion.

        Raises:
            TransportError: Network failure or timeout.
            ApiError: Non-success HTTP status.
            MalformedResponseError: Body is not a completion.
            RefusalError: The model refused to answer.
        """
        body = self.build_body(messages)
        logger.debug(
            "POST %s model=%s messages=%d", self.endpoint, self.model_name, len(messages)
        )

        try:
            response = self._http.post(
                self.endpoint,
                json=body,
                headers=self._headers,
                params=self._params,
                timeout=self._config.http_timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning("Request to %s timed out", self.model_name)
            raise TransportError(f"Request timed out: {e}") from e
        except httpx.RequestError as e:
            logger.warning("Request to %s failed: %s", self.model_name, e)
            raise TransportError(f"Request error: {e}") from e

        if not response.is_success:
            text = response.text
            logger.warning("API returned HTTP %d", response.status_code)
            raise ApiError(response.status_code, parse_error_message(text), body=text)

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"Response is not valid JSON: {e}", body=response.text
            ) from e

        completion = parse_completion(data)
        logger.debug(
            "Completion received: prompt_tokens=%d completion_tokens=%d",
            completion.usage.prompt_tokens,
            completion.usage.completion_tokens,
        )
        return completion

    def close(self) -> None:
        """Close the HTTP client if this backend created it."""
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> "OpenAIChatBackend":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
