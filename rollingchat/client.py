"""Core ChatClient implementation.

The orchestrator that owns the conversation history, selects the rolling
window for every request, calls the backend, and records the reply.
"""

import logging

import httpx

from rollingchat.backends.base import ChatBackend, Completion, Message, Usage
from rollingchat.backends.openai import OpenAIChatBackend
from rollingchat.config import ChatClientConfig
from rollingchat.history import MessageHistory
from rollingchat.token_counter import TokenCounter, Tokenizer
from rollingchat.window import ContextWindow

logger = logging.getLogger(__name__)


class ChatClient:
    """Chat API client keeping a running conversation.

    Every ``ask``:

    1. Appends the user message to the history
    2. Selects the rolling window of older history to send with it
    3. Calls the model
    4. Appends the assistant reply and returns it with token usage

    If the request fails, the user message stays in the history and the
    typed error propagates; no assistant message is added.

    The client is not synchronized: one conversation, one ``ask`` at a time.

    Example:
        >>> from rollingchat import ChatClient, ChatClientConfig, TokenAuth
        >>>
        >>> config = ChatClientConfig(
        ...     auth=TokenAuth("sk-..."),
        ...     system_message="You are a helpful assistant.",
        ...     min_history_tokens=1000,
        ...     max_history_tokens=2500,
        ... )
        >>> with ChatClient(config) as client:
        ...     reply, usage, reasoning = client.ask("Help me design a system")
    """

    def __init__(
        self,
        config: ChatClientConfig,
        *,
        backend: ChatBackend | None = None,
        tokenizer: TokenCounter | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize the ChatClient.

        Args:
            config: Client configuration.
            backend: Model backend. Defaults to ``OpenAIChatBackend`` built
                from ``config``.
            tokenizer: Token counter for the rolling window. Defaults to a
                ``Tokenizer`` for ``config.model``, created only when a
                history threshold is set. Sharing one between clients
                saves memory.
            http_client: Shared ``httpx.Client`` for the default backend.
        """
        self._config = config
        if backend is None:
            backend = OpenAIChatBackend(config, http_client=http_client)
        self._backend = backend

        if tokenizer is None and config.rolling_window_enabled:
            tokenizer = Tokenizer(config.model)
        self._tokenizer = tokenizer

        self._history = MessageHistory()
        self._system_message = (
            Message.system(config.system_message) if config.system_message else None
        )
        system_tokens = self._count(config.system_message) if self._system_message else 0
        self._window = ContextWindow(
            config.min_history_tokens, config.max_history_tokens, system_tokens
        )

        # Stats tracking
        self._requests: int = 0
        self._total_usage = Usage.zero()
        self._in_flight = False

    @property
    def config(self) -> ChatClientConfig:
        """The client configuration."""
        return self._config

    @property
    def backend(self) -> ChatBackend:
        """The model backend being used."""
        return self._backend

    @property
    def history(self) -> tuple[Message, ...]:
        """The whole conversation so far, trimmed messages included."""
        return self._history.messages()

    @property
    def total_usage(self) -> Usage:
        """Token usage summed over all successful requests."""
        return self._total_usage

    def ask(self, text: str) -> Completion:
        """Ask a new question, extending the conversation after a successful response.

        Args:
            text: User message.

        Returns:
            ``Completion(reply, usage, reasoning)``.

        Raises:
            ChatError: Transport, API or response errors. The user message
                remains in the history.
        """
        return self.request_completion(text)

    def request_completion(self, text: str) -> Completion:
        """Request completion for ``text``. See ``ask``."""
        if self._in_flight:
            raise RuntimeError("ChatClient does not support overlapping requests")

        self._in_flight = True
        try:
            self._history.append(Message.user(text), self._count(text))
            messages = self._outgoing(len(self._history) - 1)

            completion = self._backend.complete(messages)
            reply_tokens = self._count(completion.reply)

            self._record_usage(completion.usage)
            self._history.append(Message.assistant(completion.reply), reply_tokens)
            return completion
        finally:
            self._in_flight = False

    def outgoing_messages(self, text: str | None = None) -> list[Message]:
        """Messages that would be sent with the next request.

        Args:
            text: Optional new user message to append at the end.

        Returns:
            System message, rolling window and the new user message.
        """
        messages = self._outgoing(len(self._history))
        if text is not None:
            messages.append(Message.user(text))
        return messages

    def window(self) -> tuple[Message, ...]:
        """History messages currently inside the rolling window."""
        stop = len(self._history)
        start = self._window.start(self._history.entries(0, stop))
        return self._history.messages(start, stop)

    def get_token_count(self) -> int:
        """Token count of the history inside the rolling window."""
        stop = len(self._history)
        start = self._window.start(self._history.entries(0, stop))
        return self._history.tokens(start, stop)

    def get_stats(self) -> dict:
        """Get client statistics.

        Returns:
            Dictionary with stats:
            - history_messages: Messages in the whole history
            - window_messages: Messages inside the rolling window
            - window_tokens: Tokens inside the rolling window
            - requests: Successful requests so far
            - prompt_tokens / completion_tokens / total_tokens: Summed usage
        """
        return {
            "history_messages": len(self._history),
            "window_messages": len(self.window()),
            "window_tokens": self.get_token_count(),
            "requests": self._requests,
            "prompt_tokens": self._total_usage.prompt_tokens,
            "completion_tokens": self._total_usage.completion_tokens,
            "total_tokens": self._total_usage.total_tokens,
        }

    def close(self) -> None:
        """Release the backend's HTTP resources."""
        close = getattr(self._backend, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "ChatClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _count(self, text: str) -> int:
        # Counts are only needed when a threshold is set
        if self._tokenizer is None:
            return 0
        return self._tokenizer.count(text)

    def _outgoing(self, stop: int) -> list[Message]:
        """System message plus the rolling window over ``history[:stop]``,
        plus everything from ``stop`` on (the pending request)."""
        entries = self._history.entries(0, stop)
        start = self._window.start(entries)

        messages: list[Message] = []
        if self._system_message is not None:
            messages.append(self._system_message)
        messages.extend(self._history.messages(start))
        return messages

    def _record_usage(self, usage: Usage) -> None:
        total = self._total_usage
        total = Usage(
            prompt_tokens=total.prompt_tokens + usage.prompt_tokens,
            completion_tokens=total.completion_tokens + usage.completion_tokens,
            total_tokens=total.total_tokens + usage.total_tokens,
            reasoning_tokens=_add_optional(total.reasoning_tokens, usage.reasoning_tokens),
            cached_tokens=_add_optional(total.cached_tokens, usage.cached_tokens),
        )
        self._total_usage = total
        self._requests += 1


def _add_optional(left: int | None, right: int | None) -> int | None:
    if left is None and right is None:
        return None
    return (left or 0) + (right or 0)
