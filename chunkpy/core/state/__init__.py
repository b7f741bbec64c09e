"""
Upload state persistence.

Keeps exported upload snapshots across process restarts so an interrupted
upload continues where it stopped instead of starting over.
"""
from .protocols import UploadStateStore, upload_key
from .sqlite_store import SQLiteStateStore
from .memory_store import MemoryStateStore

__all__ = [
    'UploadStateStore',
    'upload_key',
    'SQLiteStateStore',
    'MemoryStateStore',
]
