"""Exceptions raised by the Databox client."""

from typing import Optional


class DataboxError(Exception):
    """Base class for all client errors."""


class RequestBuildError(DataboxError):
    """The request could not be built, e.g. the payload is not JSON-encodable."""


class TransportError(DataboxError):
    """The HTTP exchange failed, timed out or was cancelled."""

    def __init__(self, message: str, cancelled: bool = False):
        super().__init__(message)
        self.cancelled = cancelled


class DecodeError(DataboxError):
    """The response body is not valid JSON of the expected shape."""

    def __init__(self, message: str, body: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.body = body
        self.status_code = status_code


class APIError(DataboxError):
    """The service rejected the request."""

    def __init__(self, error_type: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{error_type}: {message}")
        self.type = error_type
        self.message = message
        self.status_code = status_code


class EmptyResultError(DataboxError):
    """A query that should return at least one record returned none."""
