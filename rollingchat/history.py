"""In-memory conversation history.

An append-only log of messages. Nothing is ever removed: the rolling
window selects a read-only view over the log for each request.
No persistence, data is lost when the process ends.
"""

from typing import NamedTuple

from rollingchat.backends.base import Message


class HistoryEntry(NamedTuple):
    """A message together with its token count, computed once on append."""

    message: Message
    tokens: int


class MessageHistory:
    """Append-only message log owned by a single ``ChatClient``.

    Example:
        >>> history = MessageHistory()
        >>> history.append(Message.user("Hello"), tokens=1)
        >>> history.messages()
        (Message(role='user', content='Hello'),)
    """

    def __init__(self) -> None:
        self._entries: list[HistoryEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, message: Message, tokens: int = 0) -> None:
        """Append a message to the end of the log.

        Args:
            message: Message to append.
            tokens: Token count of the message content.
        """
        if tokens < 0:
            raise ValueError("tokens must not be negative")
        self._entries.append(HistoryEntry(message, tokens))

    def entries(self, start: int = 0, stop: int | None = None) -> tuple[HistoryEntry, ...]:
        """Read-only view of ``entries[start:stop]``."""
        return tuple(self._entries[start:stop])

    def messages(self, start: int = 0, stop: int | None = None) -> tuple[Message, ...]:
        """Read-only view of the messages in ``entries[start:stop]``."""
        return tuple(entry.message for entry in self._entries[start:stop])

    def tokens(self, start: int = 0, stop: int | None = None) -> int:
        """Sum of token counts in ``entries[start:stop]``."""
        return sum(entry.tokens for entry in self._entries[start:stop])
