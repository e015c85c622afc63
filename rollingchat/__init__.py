"""rollingchat - Chat completions client with a rolling context window.

Keeps a running conversation with an OpenAI-compatible chat API (OpenAI,
Azure, OpenRouter) and bounds the history sent with every request by two
token thresholds: keep at least ``min_history_tokens``, never more than
``max_history_tokens``.

Example:
    >>> from rollingchat import ChatClient, ChatClientConfig, TokenAuth
    >>>
    >>> config = ChatClientConfig(
    ...     auth=TokenAuth("sk-..."),
    ...     model="gpt-4o-mini",
    ...     min_history_tokens=1000,
    ...     max_history_tokens=2500,
    ... )
    >>> client = ChatClient(config)
    >>> reply, usage, reasoning = client.ask("Help me design a distributed system")
"""

from rollingchat.auth import ApiFlavor, ApiKeyAuth, Auth, OpenRouterAuth, TokenAuth, auth_from_credentials
from rollingchat.backends.base import ChatBackend, Completion, Message, Usage
from rollingchat.backends.openai import OpenAIChatBackend
from rollingchat.client import ChatClient
from rollingchat.config import ChatClientConfig, ReasoningEffort, Verbosity
from rollingchat.errors import (
    ApiError,
    ChatError,
    ConfigError,
    MalformedResponseError,
    RefusalError,
    TransportError,
)
from rollingchat.history import MessageHistory
from rollingchat.token_counter import Tokenizer
from rollingchat.window import ContextWindow

__version__ = "0.1.0"

__all__ = [
    # Core
    "ChatClient",
    "ChatClientConfig",
    "ContextWindow",
    "MessageHistory",
    "Tokenizer",
    # Auth
    "Auth",
    "ApiFlavor",
    "TokenAuth",
    "ApiKeyAuth",
    "OpenRouterAuth",
    "auth_from_credentials",
    # Options
    "ReasoningEffort",
    "Verbosity",
    # Backends
    "ChatBackend",
    "OpenAIChatBackend",
    "Message",
    "Usage",
    "Completion",
    # Errors
    "ChatError",
    "ConfigError",
    "TransportError",
    "ApiError",
    "MalformedResponseError",
    "RefusalError",
    # Version
    "__version__",
]
