"""Configuration dataclasses for rollingchat."""

from dataclasses import dataclass
from enum import Enum

from rollingchat.auth import ApiFlavor, Auth, ApiKeyAuth, OpenRouterAuth, TokenAuth
from rollingchat.errors import ConfigError


DEFAULT_API_URL = "https://api.openai.com/v1/"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_HTTP_TIMEOUT = 300.0  # reasoning models can take minutes

CHAT_COMPLETIONS_ENDPOINT = "chat/completions"


class ReasoningEffort(str, Enum):
    """Reasoning effort passed as is to the API."""
    NONE = "none"
    MINIMAL = "minimal"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Verbosity(str, Enum):
    """Verbosity of the answers, passed as is to the API."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def _coerce(enum_type: type[Enum], value, field_name: str):
    if value is None or isinstance(value, enum_type):
        return value
    try:
        return enum_type(str(value).lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        raise ConfigError(
            f"Invalid {field_name} {value!r}, expected one of: {allowed}"
        ) from None


@dataclass(frozen=True)
class ChatClientConfig:
    """Configuration for ``ChatClient``.

    Attributes:
        auth: Authentication variant. Also selects the API flavor.
        api_url: Base API url, everything before ``chat/completions``.
        model: Model name passed to the API.
        system_message: Optional system message to initialize the model.
            Kept outside of the rolling window and never trimmed, but its
            tokens count against both history thresholds.
        min_history_tokens: Keep at least that many history tokens.
            The context is truncated to keep at least ``min_history_tokens``,
            but no more than one request-response round above this
            threshold, and under no circumstances more than
            ``max_history_tokens``.
        max_history_tokens: Hard ceiling on history tokens sent per request.
        reasoning_effort: Reasoning effort (OpenAI ``reasoning_effort`` or
            OpenRouter ``reasoning.effort``).
        reasoning_budget: Reasoning budget in tokens. OpenRouter only.
        verbosity: Verbosity of the answers.
        include_reasoning: Ask the API to return reasoning (summary) text.
        http_timeout: Request timeout in seconds.
    """

    auth: Auth
    api_url: str = DEFAULT_API_URL
    model: str = DEFAULT_MODEL
    system_message: str | None = None
    min_history_tokens: int | None = None
    max_history_tokens: int | None = None
    reasoning_effort: ReasoningEffort | str | None = None
    reasoning_budget: int | None = None
    verbosity: Verbosity | str | None = None
    include_reasoning: bool = False
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    def __post_init__(self) -> None:
        if not isinstance(self.auth, (TokenAuth, ApiKeyAuth, OpenRouterAuth)):
            raise ConfigError(f"Unsupported auth: {type(self.auth).__name__}")
        if not self.api_url:
            raise ConfigError("api_url must not be empty")
        if not self.model:
            raise ConfigError("model must not be empty")

        # Frozen dataclass: normalise through object.__setattr__
        if self.system_message == "":
            object.__setattr__(self, "system_message", None)
        object.__setattr__(
            self,
            "reasoning_effort",
            _coerce(ReasoningEffort, self.reasoning_effort, "reasoning_effort"),
        )
        object.__setattr__(
            self, "verbosity", _coerce(Verbosity, self.verbosity, "verbosity")
        )

        for name in ("min_history_tokens", "max_history_tokens"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ConfigError(f"{name} must not be negative")
        if (
            self.min_history_tokens is not None
            and self.max_history_tokens is not None
            and self.min_history_tokens > self.max_history_tokens
        ):
            raise ConfigError(
                "min_history_tokens must not be greater than max_history_tokens"
            )

        if self.reasoning_budget is not None:
            if self.reasoning_effort is not None:
                raise ConfigError(
                    "Only one of `reasoning_effort` or `reasoning_budget` can be supplied"
                )
            if self.reasoning_budget <= 0:
                raise ConfigError("reasoning_budget must be positive")
            if self.flavor is not ApiFlavor.OPENROUTER:
                raise ConfigError("`reasoning_budget` is only supported by OpenRouter API")

        if self.http_timeout <= 0:
            raise ConfigError("http_timeout must be positive")

    @property
    def flavor(self) -> ApiFlavor:
        """API flavor implied by the auth variant."""
        return self.auth.flavor

    @property
    def rolling_window_enabled(self) -> bool:
        return self.min_history_tokens is not None or self.max_history_tokens is not None

    @property
    def endpoint(self) -> str:
        """Full chat completions URL."""
        base = self.api_url if self.api_url.endswith("/") else self.api_url + "/"
        return base + CHAT_COMPLETIONS_ENDPOINT
