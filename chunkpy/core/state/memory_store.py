"""
In-memory state storage implementation.

Provides non-persistent storage for testing and temporary use.
"""
from typing import Dict, List, Optional

from .protocols import UploadStateStore
from ..upload.models import UploadSnapshot


class MemoryStateStore(UploadStateStore):
    """
    In-memory upload state storage.

    Data is lost when the object is destroyed.

    Example:
        >>> store = MemoryStateStore()
        >>> store.save("movie.mp4:1024", controller.get_state())
        >>> snapshot = store.load("movie.mp4:1024")
    """

    def __init__(self):
        """Initialize memory storage."""
        self._data: Dict[str, str] = {}

    def load(self, key: str) -> Optional[UploadSnapshot]:
        raw = self._data.get(key)
        return UploadSnapshot.from_json(raw) if raw is not None else None

    def save(self, key: str, snapshot: UploadSnapshot) -> None:
        if not snapshot.upload_id:
            raise ValueError("Cannot persist a snapshot without an upload id")
        # Stored serialized so later mutation of the snapshot has no effect
        self._data[key] = snapshot.to_json()

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def exists(self, key: str) -> bool:
        return key in self._data

    def keys(self) -> List[str]:
        return sorted(self._data)

    def close(self) -> None:
        """Close storage (no-op for memory storage)."""
        pass

    def __enter__(self) -> 'MemoryStateStore':
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
