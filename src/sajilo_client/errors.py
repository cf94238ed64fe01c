"""Error taxonomy for API calls.

Every failed request ends up as one of these, carrying the HTTP status when
there was a response and a human readable ``message``.
"""

from __future__ import annotations

from typing import Any


class ApiError(Exception):
    """Base class for normalized API failures."""

    retryable = False

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status={self.status!r}, message={self.message!r})"


class NetworkError(ApiError):
    """The request never produced an HTTP response."""

    retryable = True


class NotFoundError(ApiError):
    """HTTP 404. Never retried."""


class ValidationError(ApiError):
    """HTTP 4xx other than 404."""


class ServerError(ApiError):
    """HTTP 5xx."""

    retryable = True


class DecodeError(ApiError):
    """Response body was not valid JSON."""


def error_for_status(status: int, message: str) -> ApiError:
    """Map an HTTP error status to its error class."""
    if status == 404:
        return NotFoundError(message, status=status)
    if 400 <= status < 500:
        return ValidationError(message, status=status)
    if status >= 500:
        return ServerError(message, status=status)
    return ApiError(message, status=status)


__all__ = [
    "ApiError",
    "DecodeError",
    "NetworkError",
    "NotFoundError",
    "ServerError",
    "ValidationError",
    "error_for_status",
]
