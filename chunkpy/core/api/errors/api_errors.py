"""Upload API error types."""
from http import HTTPStatus
from typing import Optional

from ...exceptions import UploadException


def describe_status(status: int) -> str:
    """Gets a short description for an HTTP status code."""
    try:
        return f"HTTP {status} {HTTPStatus(status).phrase}"
    except ValueError:
        return f"HTTP {status}"


class APIError(UploadException):
    """
    Exception raised when an endpoint answers with a failure.

    Covers both non-2xx statuses and 2xx envelopes with ``success: false``.
    """

    def __init__(self, status: int, message: Optional[str] = None):
        self.status = status
        super().__init__(message or describe_status(status), error_code=status)
