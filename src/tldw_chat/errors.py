"""Package specific exception hierarchy."""


class ChatClientError(Exception):
    """Base exception for tldw_chat package."""


class ConfigurationError(ChatClientError):
    """Raised when client settings or strategy names are invalid."""


class TransportError(ChatClientError):
    """Represents HTTP or network failures talking to the chat server."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        suffix = f" (status {status_code})" if status_code is not None else ""
        super().__init__(f"{message}{suffix}")
        self.status_code = status_code


class ResponseShapeError(ChatClientError):
    """Raised when a completion response carries no recognizable answer text."""

    def __init__(self, detail: str = "Invalid response format from chat server") -> None:
        super().__init__(detail)


class StreamStateError(ChatClientError):
    """Raised when a stream handle is consumed more than once."""
