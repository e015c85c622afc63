"""Exception types raised by rollingchat.

Every error leaves the package as a subclass of ``ChatError`` so an
interactive caller can catch one type and keep the session alive after a
failed turn.
"""


class ChatError(Exception):
    """Base class for all rollingchat errors."""


class ConfigError(ChatError, ValueError):
    """Invalid or conflicting client configuration.

    Raised at construction time, before any request is attempted.
    """


class TransportError(ChatError):
    """Network, DNS, TLS failure or request timeout."""


class ApiError(ChatError):
    """The API answered with a non-success HTTP status.

    Attributes:
        status_code: HTTP status code of the response.
        message: Provider error message, or the raw body if it has none.
        body: Raw response body.
    """

    def __init__(self, status_code: int, message: str, body: str = "") -> None:
        self.status_code = status_code
        self.message = message
        self.body = body
        super().__init__(f"{status_code}: {message}")


class MalformedResponseError(ChatError):
    """The response body does not have the expected completion shape."""

    def __init__(self, message: str, body: object = None) -> None:
        self.body = body
        super().__init__(message)


class RefusalError(ChatError):
    """The model refused the request instead of producing content."""

    def __init__(self, refusal: str) -> None:
        self.refusal = refusal
        super().__init__(f'Model refused the request: "{refusal}"')
