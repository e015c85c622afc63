"""Authentication variants for OpenAI-compatible endpoints.

Exactly one variant is active per client. Each one knows which headers and
query parameters it contributes to a request, and which API flavor it
implies.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

from rollingchat.errors import ConfigError


class ApiFlavor(Enum):
    """Request/response dialect of the chat completions endpoint.

    OPENAI: api.openai.com and compatible servers, bearer token auth.
    AZURE: Azure OpenAI deployments, ``api-key`` header auth.
    OPENROUTER: openrouter.ai, bearer token auth plus the ``reasoning`` object.
    """
    OPENAI = "openai"
    AZURE = "azure"
    OPENROUTER = "openrouter"


def _check_header_value(name: str, value: str) -> None:
    if not value:
        raise ConfigError(f"{name} must not be empty")
    if not all(" " <= ch <= "~" for ch in value):
        raise ConfigError(f"Non ASCII / non visible characters in {name}")


@dataclass(frozen=True)
class TokenAuth:
    """Auth header ``Authorization: Bearer {token}``, used by OpenAI endpoints."""

    token: str

    def __post_init__(self) -> None:
        _check_header_value("API token", self.token)

    @property
    def flavor(self) -> ApiFlavor:
        return ApiFlavor.OPENAI

    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    def params(self) -> dict[str, str]:
        return {}

    def __repr__(self) -> str:
        return "TokenAuth(token=***)"


@dataclass(frozen=True)
class ApiKeyAuth:
    """Auth header ``api-key: {key}``, used by Azure endpoints.

    Attributes:
        key: The API key.
        api_version: Optional ``api-version`` query parameter.
    """

    key: str
    api_version: str | None = None

    def __post_init__(self) -> None:
        _check_header_value("API key", self.key)
        if self.api_version is not None and not self.api_version:
            raise ConfigError("api_version must not be empty")

    @property
    def flavor(self) -> ApiFlavor:
        return ApiFlavor.AZURE

    def headers(self) -> dict[str, str]:
        return {"api-key": self.key}

    def params(self) -> dict[str, str]:
        if self.api_version is None:
            return {}
        return {"api-version": self.api_version}

    def __repr__(self) -> str:
        return f"ApiKeyAuth(key=***, api_version={self.api_version!r})"


@dataclass(frozen=True)
class OpenRouterAuth:
    """Bearer token for OpenRouter, with optional app attribution headers."""

    token: str
    app_title: str | None = None
    referer: str | None = None

    def __post_init__(self) -> None:
        _check_header_value("API token", self.token)
        if self.app_title is not None:
            _check_header_value("app title", self.app_title)
        if self.referer is not None:
            _check_header_value("referer", self.referer)

    @property
    def flavor(self) -> ApiFlavor:
        return ApiFlavor.OPENROUTER

    def headers(self) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self.token}"}
        if self.app_title:
            headers["X-Title"] = self.app_title
        if self.referer:
            headers["HTTP-Referer"] = self.referer
        return headers

    def params(self) -> dict[str, str]:
        return {}

    def __repr__(self) -> str:
        return f"OpenRouterAuth(token=***, app_title={self.app_title!r})"


Auth = Union[TokenAuth, ApiKeyAuth, OpenRouterAuth]


def auth_from_credentials(
    api_token: str | None = None,
    api_key: str | None = None,
    *,
    api: ApiFlavor | str = ApiFlavor.OPENAI,
    api_version: str | None = None,
) -> Auth:
    """Build the auth variant matching a set of loose credentials.

    Args:
        api_token: Bearer token (OpenAI or OpenRouter).
        api_key: ``api-key`` header value (Azure).
        api: API flavor, as an ``ApiFlavor`` or its string value.
        api_version: ``api-version`` query parameter, only valid with a key.

    Returns:
        The matching ``Auth`` variant.

    Raises:
        ConfigError: If not exactly one of token and key is given, or the
            combination does not fit the flavor (a key with OpenRouter, a
            token with Azure).
    """
    try:
        flavor = ApiFlavor(api)
    except ValueError:
        raise ConfigError(f"Invalid API flavor: {api!r}") from None

    if (api_token is None) == (api_key is None):
        raise ConfigError("Exactly one of `api_key` or `api_token` must be set")

    if api_key is not None:
        if flavor is ApiFlavor.OPENROUTER:
            raise ConfigError("OpenRouter API requires `api_token`, not `api_key`")
        return ApiKeyAuth(api_key, api_version=api_version)

    if api_version is not None:
        raise ConfigError("`api_version` is only supported with `api_key` auth")
    if flavor is ApiFlavor.AZURE:
        raise ConfigError("Azure API requires `api_key`, not `api_token`")
    if flavor is ApiFlavor.OPENROUTER:
        return OpenRouterAuth(api_token)
    return TokenAuth(api_token)
