"""
Custom exceptions for chunked upload operations.

Every error raised by chunkpy derives from UploadException, so callers can
catch the whole family at once and still tell a user-initiated
cancellation apart from a transport failure by type.
"""
from typing import Optional


class UploadException(Exception):
    """Base exception for all upload-related errors."""

    def __init__(self, message: str, error_code: Optional[int] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message
            error_code: Numeric error code (HTTP status when available)
        """
        self.message = message
        self.error_code = error_code
        super().__init__(message)


class MalformedResponseError(UploadException):
    """Raised when the server answers with something that is not a valid envelope."""
    pass


class SessionError(UploadException):
    """Raised when an upload session cannot be opened. Never retried."""
    pass


class ChunkTransferError(UploadException):
    """
    Raised when a chunk could not be delivered after every allowed attempt.

    Attributes:
        attempts: Number of attempts made
        offset: Byte offset of the chunk
        last_error: Underlying error of the final attempt
    """

    def __init__(
        self,
        message: str,
        attempts: int = 0,
        offset: Optional[int] = None,
        last_error: Optional[BaseException] = None,
        error_code: Optional[int] = None
    ) -> None:
        self.attempts = attempts
        self.offset = offset
        self.last_error = last_error
        super().__init__(message, error_code)


class FinalizeError(UploadException):
    """Raised when the server refuses to finalize an upload. Never retried."""
    pass


class CancellationError(UploadException):
    """Raised when an upload is cancelled by the caller. Not a failure."""

    def __init__(self, message: str = "Upload cancelled by user") -> None:
        super().__init__(message)


class UploadStateError(UploadException):
    """Raised for operations that are invalid in the controller's current state."""
    pass
