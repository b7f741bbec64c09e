"""
Protocol definitions for upload module.

Defines interfaces (protocols) for dependency injection, so the controller
can be driven by fakes in tests and by other transports in production.
"""
from typing import Protocol, Dict, Any, Optional, runtime_checkable

from ..cancellation import CancellationToken


@runtime_checkable
class SourceFile(Protocol):
    """
    Byte-addressable file being uploaded.

    Owned by the caller; the controller only reads one slice at a time.
    """

    @property
    def name(self) -> str:
        """File name reported to the server."""
        ...

    @property
    def size(self) -> int:
        """Total size in bytes."""
        ...

    @property
    def content_type(self) -> str:
        """MIME type reported to the server."""
        ...

    async def slice(self, start: int, end: int) -> bytes:
        """
        Read bytes ``[start, end)``.

        Args:
            start: Start position in bytes
            end: End position in bytes (exclusive)

        Returns:
            Exactly ``end - start`` bytes
        """
        ...


class UploadTransport(Protocol):
    """
    Protocol for the HTTP layer the upload services talk to.

    AsyncAPIClient is the production implementation.
    """

    async def post_json(
        self,
        endpoint: str,
        payload: Dict[str, Any],
        cancel_token: Optional[CancellationToken] = None
    ) -> Dict[str, Any]:
        """POST JSON and return the envelope's data object."""
        ...

    async def post_multipart(
        self,
        endpoint: str,
        fields: Dict[str, str],
        file_field: str,
        file_name: str,
        content: bytes,
        cancel_token: Optional[CancellationToken] = None
    ) -> Dict[str, Any]:
        """POST a multipart form and return the envelope's data object."""
        ...

    async def close(self) -> None:
        """Release connections."""
        ...
