"""Exception taxonomy shared by every Gemini client implementation."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gemini_api.types import ErrorDetail

__all__ = [
    "ApiError",
    "ConfigurationError",
    "DecodeError",
    "GeminiError",
    "IncompleteStreamError",
    "TransportError",
]


class GeminiError(Exception):
    """Base class for all errors raised by the client."""


class ConfigurationError(GeminiError):
    """Raised when the client cannot be configured (e.g. no API key)."""


class TransportError(GeminiError):
    """The underlying HTTP connection failed.

    The original transport exception is available as ``__cause__``.
    """


class DecodeError(GeminiError):
    """Bytes received from the server could not be decoded into a response.

    Attributes:
        position: Offset (in characters, relative to the parse attempt) where decoding
            failed, when known.

    """

    def __init__(self, message: str, *, position: int | None = None) -> None:
        """Create a decode error with an optional failure position."""
        super().__init__(message)
        self.position = position


class IncompleteStreamError(GeminiError):
    """The transport ended while a streamed array was still open.

    Attributes:
        state: Name of the parser state when the transport ended.
        leftover: Number of unconsumed bytes left in the buffer.

    """

    def __init__(self, state: str, leftover: int) -> None:
        """Create an incomplete-stream error for the given parser state."""
        super().__init__(f"stream ended with {leftover} unparsed byte(s) in state {state}")
        self.state = state
        self.leftover = leftover


class ApiError(GeminiError):
    """The server answered with an error envelope.

    Attributes:
        detail: Parsed ``error`` object from the response body.

    """

    def __init__(self, detail: ErrorDetail) -> None:
        """Create an API error from the server-provided detail."""
        super().__init__(f"{detail.code} {detail.status or 'UNKNOWN'}: {detail.message}")
        self.detail = detail

    @property
    def code(self) -> int:
        """Return the HTTP-like error code reported by the server."""
        return self.detail.code

    @property
    def status(self) -> str | None:
        """Return the canonical status name (e.g. ``INVALID_ARGUMENT``)."""
        return self.detail.status
