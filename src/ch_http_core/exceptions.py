"""
Custom exceptions for ch_http_core.

This module defines the exception hierarchy used throughout
the library. Every failure of an exchange surfaces as one of
these types so callers can tell a rejected statement from a
broken connection or a cancellation they triggered themselves.
"""

from typing import Optional, Union


class ClickHouseClientError(Exception):
    """Base exception for all ch_http_core errors."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class TransportError(ClickHouseClientError):
    """Raised when the HTTP exchange itself fails."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"Transport error: {message}", cause)


class ConnectionError(TransportError):
    """Raised when there's an error with network connections."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"Connection error: {message}", cause)


class ProtocolError(TransportError):
    """Raised when there's an error with HTTP protocol handling."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"Protocol error: {message}", cause)


class StreamError(TransportError):
    """Raised when a request or response body pipeline fails."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"Stream error: {message}", cause)


class HTTPStatusError(TransportError):
    """
    Raised for a non-2xx response whose body is not a server error envelope.

    The raw body text and status code are kept verbatim.
    """

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"Unexpected response status {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class TimeoutError(ClickHouseClientError):
    """Raised when a socket stays idle longer than the request timeout."""

    def __init__(self, message: str, timeout: Optional[float] = None) -> None:
        if timeout is not None:
            message = f"{message} (timeout: {timeout}s)"
        super().__init__(f"Timeout error: {message}")
        self.timeout = timeout


class CancellationError(ClickHouseClientError):
    """Raised when a request is cancelled through its cancellation token."""

    def __init__(self, message: str = "The request was aborted.") -> None:
        super().__init__(message)


class ServerError(ClickHouseClientError):
    """
    Error reported by the database server.

    Parsed from the error envelope of a non-2xx response.
    """

    def __init__(
        self,
        message: str,
        code: Union[int, str],
        type: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.type = type
        self.status_code = status_code


class ValidationError(ClickHouseClientError):
    """Raised when an insert payload does not fit the chosen format."""
