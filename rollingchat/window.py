"""Rolling context window.

Decides which leading part of the conversation history to leave out of an
outgoing request, given two token thresholds:

- ``min_history_tokens``: keep extending the window into older history
  while the window holds fewer tokens than this.
- ``max_history_tokens``: hard ceiling, never exceeded.

Both thresholds apply to the system message plus the selected history.

Selection works on whole rounds (a user message and the assistant reply
that follows it), walked from newest to oldest, so a round is never split.
The result is a start index into the history; the history itself is never
modified.
"""

import logging
from dataclasses import dataclass
from typing import Sequence

from rollingchat.errors import ConfigError
from rollingchat.history import HistoryEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Round:
    """A contiguous run of history entries starting at a user message.

    Attributes:
        start: Index of the first entry of the round.
        stop: Index one past the last entry of the round.
        tokens: Token count of all entries in the round.
    """

    start: int
    stop: int
    tokens: int


def group_rounds(entries: Sequence[HistoryEntry]) -> list[Round]:
    """Split history entries into rounds.

    Every user message opens a new round; assistant messages join the round
    of the user message before them. A user message whose request failed
    is therefore a round of its own.

    Args:
        entries: History entries in chronological order.

    Returns:
        Rounds in chronological order, covering all entries.
    """
    rounds: list[Round] = []
    start = 0
    tokens = 0

    for index, entry in enumerate(entries):
        if entry.message.role == "user" and index > start:
            rounds.append(Round(start, index, tokens))
            start = index
            tokens = 0
        tokens += entry.tokens

    if start < len(entries):
        rounds.append(Round(start, len(entries), tokens))

    return rounds


def select_window_start(
    entries: Sequence[HistoryEntry],
    min_history_tokens: int | None = None,
    max_history_tokens: int | None = None,
    system_tokens: int = 0,
) -> int:
    """Compute the index of the oldest history entry to transmit.

    Rounds are taken from newest to oldest. The running total starts at
    ``system_tokens``: the system message is never dropped, but it uses up
    part of both thresholds. A round is kept while the total is below
    ``min_history_tokens`` and keeping it does not push the total above
    ``max_history_tokens``; the first round that fails either test ends
    the window. Both thresholds are inclusive: a window totalling exactly
    ``min`` tokens is complete, one of exactly ``max`` tokens is allowed.

    Args:
        entries: History entries in chronological order.
        min_history_tokens: Soft minimum of history tokens. None means no
            minimum, i.e. keep extending up to the maximum.
        max_history_tokens: Hard maximum of history tokens. None means no
            ceiling.
        system_tokens: Token count of the system message, 0 if there is none.

    Returns:
        Start index; ``entries[start:]`` is the window. ``len(entries)``
        means nothing from the history is sent.
    """
    if min_history_tokens is None and max_history_tokens is None:
        return 0

    start = len(entries)
    kept = system_tokens

    for round_ in reversed(group_rounds(entries)):
        if min_history_tokens is not None and kept >= min_history_tokens:
            break
        if max_history_tokens is not None and kept + round_.tokens > max_history_tokens:
            break
        kept += round_.tokens
        start = round_.start

    return start


class ContextWindow:
    """Rolling window over a conversation history.

    Holds the thresholds and the system message token count, and exposes
    the selected view. Selection is a pure function of the entries and
    thresholds, so calling ``select`` twice on the same history gives the
    same window.

    Example:
        >>> window = ContextWindow(min_history_tokens=1000, max_history_tokens=2500)
        >>> kept = window.select(history.entries())
    """

    def __init__(
        self,
        min_history_tokens: int | None = None,
        max_history_tokens: int | None = None,
        system_tokens: int = 0,
    ) -> None:
        if (
            min_history_tokens is not None
            and max_history_tokens is not None
            and min_history_tokens > max_history_tokens
        ):
            raise ConfigError("min_history_tokens must not be greater than max_history_tokens")
        if system_tokens < 0:
            raise ValueError("system_tokens must not be negative")
        self._min = min_history_tokens
        self._max = max_history_tokens
        self._system_tokens = system_tokens

    @property
    def min_history_tokens(self) -> int | None:
        return self._min

    @property
    def max_history_tokens(self) -> int | None:
        return self._max

    @property
    def system_tokens(self) -> int:
        return self._system_tokens

    @property
    def enabled(self) -> bool:
        return self._min is not None or self._max is not None

    def start(self, entries: Sequence[HistoryEntry]) -> int:
        """Index of the first entry inside the window."""
        start = select_window_start(entries, self._min, self._max, self._system_tokens)
        if start:
            logger.debug(
                "Rolling window drops %d of %d history entries", start, len(entries)
            )
        return start

    def select(self, entries: Sequence[HistoryEntry]) -> tuple[HistoryEntry, ...]:
        """Entries inside the window, oldest first."""
        return tuple(entries[self.start(entries):])
