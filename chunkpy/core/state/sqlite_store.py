"""
SQLite state storage implementation.

Provides persistent upload state storage in a local SQLite database file.
"""
import sqlite3
import threading
from pathlib import Path
from datetime import datetime
from typing import Optional, Union, List
from contextlib import contextmanager

from .protocols import UploadStateStore
from ..logging import get_logger
from ..upload.models import UploadSnapshot


class SQLiteStateStore(UploadStateStore):
    """
    SQLite-based upload state storage.

    One row per upload key. Thread-safe: a single connection guarded by a
    lock.

    Example:
        >>> store = SQLiteStateStore("uploads")
        >>> # Creates uploads.state file
        >>> store.save(key, controller.get_state())
        >>> snapshot = store.load(key)
    """

    EXTENSION = '.state'
    SCHEMA_VERSION = 1

    def __init__(
        self,
        store_name: Union[str, Path],
        base_path: Optional[Path] = None
    ):
        """
        Initialize SQLite state storage.

        Args:
            store_name: Store name (without extension) or full path
            base_path: Optional base directory for store files
        """
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None
        self._logger = get_logger('chunkpy.state')

        if isinstance(store_name, Path) or store_name.endswith(self.EXTENSION):
            self._path = Path(store_name)
        elif base_path:
            self._path = base_path / f"{store_name}{self.EXTENSION}"
        else:
            self._path = Path(f"{store_name}{self.EXTENSION}")

        self._path.parent.mkdir(parents=True, exist_ok=True)

        self._init_db()

    @property
    def path(self) -> Path:
        """Get store file path."""
        return self._path

    @contextmanager
    def _get_connection(self):
        """Get thread-safe database connection."""
        with self._lock:
            if self._conn is None:
                self._conn = sqlite3.connect(
                    str(self._path),
                    check_same_thread=False
                )
                self._conn.row_factory = sqlite3.Row
            yield self._conn

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS version (
                    version INTEGER PRIMARY KEY
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS uploads (
                    key TEXT PRIMARY KEY,
                    upload_id TEXT NOT NULL,
                    uploaded_bytes INTEGER NOT NULL,
                    current_chunk_index INTEGER NOT NULL,
                    filename TEXT NOT NULL,
                    total_size INTEGER NOT NULL,
                    chunk_size INTEGER,
                    updated_at TEXT NOT NULL
                )
            ''')

            cursor.execute('SELECT version FROM version LIMIT 1')
            row = cursor.fetchone()
            if row is None:
                cursor.execute(
                    'INSERT INTO version (version) VALUES (?)',
                    (self.SCHEMA_VERSION,)
                )

            conn.commit()

    def load(self, key: str) -> Optional[UploadSnapshot]:
        """
        Load the snapshot stored under ``key``.

        Returns:
            UploadSnapshot if exists, None otherwise
        """
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT upload_id, uploaded_bytes, current_chunk_index,
                       filename, total_size, chunk_size
                FROM uploads
                WHERE key = ?
            ''', (key,))

            row = cursor.fetchone()
            if row is None:
                return None

            return UploadSnapshot(
                upload_id=row['upload_id'],
                uploaded_bytes=row['uploaded_bytes'],
                current_chunk_index=row['current_chunk_index'],
                filename=row['filename'],
                total_size=row['total_size'],
                chunk_size=row['chunk_size'],
            )

    def save(self, key: str, snapshot: UploadSnapshot) -> None:
        """
        Save a snapshot, replacing any previous one for ``key``.

        Raises:
            ValueError: If the snapshot has no upload id yet
        """
        if not snapshot.upload_id:
            raise ValueError("Cannot persist a snapshot without an upload id")

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT OR REPLACE INTO uploads (
                    key, upload_id, uploaded_bytes, current_chunk_index,
                    filename, total_size, chunk_size, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ''', (
                key,
                snapshot.upload_id,
                snapshot.uploaded_bytes,
                snapshot.current_chunk_index,
                snapshot.filename,
                snapshot.total_size,
                snapshot.chunk_size,
                datetime.now().isoformat(),
            ))
            conn.commit()

        self._logger.debug(f"Saved state for {key}: chunk {snapshot.current_chunk_index}")

    def delete(self, key: str) -> None:
        """Delete the snapshot stored under ``key``."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('DELETE FROM uploads WHERE key = ?', (key,))
            conn.commit()

    def exists(self, key: str) -> bool:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT COUNT(*) FROM uploads WHERE key = ?', (key,))
            return cursor.fetchone()[0] > 0

    def keys(self) -> List[str]:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT key FROM uploads ORDER BY key')
            return [row['key'] for row in cursor.fetchall()]

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> 'SQLiteStateStore':
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
