"""
Error taxonomy for data-source failures.

NetworkError and ParseError fail a whole ingestion; PartialDataError marks a
single way or point that is skipped.
"""

import ssl
from typing import Optional

import httpx


class GravelFinderError(Exception):
    """Base class for all backend errors."""


class NetworkError(GravelFinderError):
    """Raised when a remote data source cannot be reached or answers with an error."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class ParseError(GravelFinderError):
    """Raised when a data-source response is malformed as a whole."""


class PartialDataError(GravelFinderError):
    """Raised for one element of a response that cannot be parsed."""


HTTP_STATUS_MESSAGES = {
    401: "Authentication required - please login again",
    403: "Access denied - data source refused the request",
    404: "Resource not found",
    429: "Too many requests - please wait and try again",
}


def readable_error_message(error: BaseException) -> str:
    """
    Convert a transport error into a message that can be shown to a rider.

    Args:
        error: Exception raised while talking to a remote service

    Returns:
        Short human-readable description
    """
    if isinstance(error, NetworkError) and error.cause is not None:
        return readable_error_message(error.cause)
    if isinstance(error, httpx.ConnectError):
        if isinstance(error.__cause__, ssl.SSLError) or "SSL" in str(error):
            return "Secure connection failed"
        return "No internet connection available"
    if isinstance(error, httpx.TimeoutException):
        return "Connection timed out - please try again"
    if isinstance(error, ssl.SSLError):
        return "Secure connection failed"
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        if status in HTTP_STATUS_MESSAGES:
            return HTTP_STATUS_MESSAGES[status]
        return f"Data source returned HTTP {status}"
    if str(error):
        return str(error)
    return "Network error occurred"
