"""
State storage protocols.

Defines the interface upload-state stores implement.
"""
from typing import Protocol, Optional, List, runtime_checkable

from ..upload.models import UploadSnapshot


def upload_key(name: str, size: int) -> str:
    """
    Key identifying one file's upload in a store.

    Args:
        name: File name (or path) as the caller knows it
        size: File size in bytes

    Returns:
        Store key
    """
    return f"{name}:{size}"


@runtime_checkable
class UploadStateStore(Protocol):
    """
    Protocol for upload state storage implementations.

    Implementations can use SQLite, JSON files, Redis, or any other backend.
    """

    def load(self, key: str) -> Optional[UploadSnapshot]:
        """
        Load the snapshot stored under ``key``.

        Returns:
            UploadSnapshot if present, None otherwise
        """
        ...

    def save(self, key: str, snapshot: UploadSnapshot) -> None:
        """Store ``snapshot`` under ``key``, replacing any previous one."""
        ...

    def delete(self, key: str) -> None:
        """Remove the snapshot stored under ``key`` (no error if absent)."""
        ...

    def exists(self, key: str) -> bool:
        """Check whether a snapshot is stored under ``key``."""
        ...

    def keys(self) -> List[str]:
        """All stored keys."""
        ...

    def close(self) -> None:
        """Close storage connection and release resources."""
        ...
