"""Base types and protocol for chat backends."""

from dataclasses import dataclass
from typing import Literal, NamedTuple, Protocol, runtime_checkable


Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class Message:
    """A single message in a conversation. Immutable once created."""

    role: Role
    content: str

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls("system", content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls("user", content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls("assistant", content)

    def to_dict(self) -> dict[str, str]:
        """Wire representation ``{"role": ..., "content": ...}``."""
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class Usage:
    """Token usage reported for a single request.

    Attributes:
        prompt_tokens: Input tokens.
        completion_tokens: Output tokens, reasoning included.
        total_tokens: Input plus output tokens.
        reasoning_tokens: Reasoning tokens, if returned by the API.
        cached_tokens: Cached input tokens, if returned by the API.
    """

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    reasoning_tokens: int | None = None
    cached_tokens: int | None = None

    @classmethod
    def zero(cls) -> "Usage":
        return cls(0, 0, 0)


class Completion(NamedTuple):
    """Generated completion: reply text, usage and optional reasoning."""

    reply: str
    usage: Usage
    reasoning: str | None = None


@runtime_checkable
class ChatBackend(Protocol):
    """Protocol that all chat backends must implement.

    A backend turns an already assembled message list into one completion.
    It does not keep any conversation state.
    """

    def complete(self, messages: list[Message]) -> Completion:
        """Send messages to the model and parse the reply.

        Args:
            messages: System message, trimmed history and the new request.

        Returns:
            The parsed completion.

        Raises:
            ChatError: Any transport, API or response shape failure.
        """
        ...

    @property
    def model_name(self) -> str:
        """Return the model name being used."""
        ...
