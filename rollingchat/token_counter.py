"""Token counting utilities."""

import logging
from typing import Protocol, runtime_checkable

import tiktoken

logger = logging.getLogger(__name__)

# Vocabulary of the gpt-4o / o-series family, used for unknown models
DEFAULT_ENCODING = "o200k_base"

# Cache for tokenizer encodings
_ENCODING_CACHE: dict[str, tiktoken.Encoding] = {}


@runtime_checkable
class TokenCounter(Protocol):
    """Anything that can count tokens in a string."""

    def count(self, text: str) -> int:
        ...


def _get_encoding(model: str) -> tiktoken.Encoding:
    """Get or create a tiktoken encoding for a model.

    OpenRouter style names (``openai/gpt-4o``) are retried without the
    vendor prefix. Unknown models fall back to ``o200k_base``: counts are
    only used as a trimming heuristic, so an approximate vocabulary is fine.

    Args:
        model: Model name (e.g., "gpt-4o", "openai/gpt-4o-mini").

    Returns:
        Tiktoken encoding for the model.
    """
    if model not in _ENCODING_CACHE:
        candidates = [model]
        if "/" in model:
            candidates.append(model.rsplit("/", 1)[1])

        encoding = None
        for name in candidates:
            try:
                encoding = tiktoken.encoding_for_model(name)
                break
            except KeyError:
                continue

        if encoding is None:
            logger.debug("No known vocabulary for model %r, using %s", model, DEFAULT_ENCODING)
            encoding = tiktoken.get_encoding(DEFAULT_ENCODING)

        _ENCODING_CACHE[model] = encoding

    return _ENCODING_CACHE[model]


class Tokenizer:
    """Byte-pair-encoding token counter for a named model.

    Read-only after construction; one instance can be shared by any number
    of clients.

    Example:
        >>> tokenizer = Tokenizer("gpt-4o-mini")
        >>> tokenizer.count("Hello, world!")
        4
    """

    def __init__(self, model: str) -> None:
        self._model = model
        self._encoding = _get_encoding(model)

    @property
    def model(self) -> str:
        return self._model

    @property
    def encoding_name(self) -> str:
        return self._encoding.name

    def count(self, text: str) -> int:
        """Count tokens in a string.

        Special-token markers in user text are counted as plain text
        rather than rejected.
        """
        return len(self._encoding.encode(text, disallowed_special=()))


def count_tokens_text(text: str, model: str = "gpt-4o-mini") -> int:
    """Count tokens in a single text string.

    Args:
        text: Text to count tokens for.
        model: Model name for encoding selection.

    Returns:
        Token count.
    """
    return Tokenizer(model).count(text)
