"""
Data models for upload module.

Uses dataclasses for immutable, type-safe data structures. UploadState is
the only mutable one and only the controller changes it.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Optional
import json

from ...utils import ceil_div

DEFAULT_CHUNK_SIZE = 99 * 1024 * 1024  # stays under a 100 MB request body cap


class UploadStatus(Enum):
    """Lifecycle states of an upload controller."""

    CREATED = "created"
    NEGOTIATING = "negotiating"
    TRANSFERRING = "transferring"
    PAUSED = "paused"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """True for states no operation can leave."""
        return self in (UploadStatus.COMPLETED, UploadStatus.FAILED, UploadStatus.CANCELLED)


@dataclass(frozen=True)
class ChunkInfo:
    """
    Information about a file chunk.

    Attributes:
        index: Chunk index
        start: Start position in bytes
        end: End position in bytes (exclusive)
    """
    index: int
    start: int
    end: int

    @property
    def size(self) -> int:
        """Returns chunk size."""
        return self.end - self.start


@dataclass(frozen=True)
class UploadSession:
    """
    Server-side upload session, as seen by the client.

    Attributes:
        upload_id: Identifier issued by the session-create endpoint
        total_size: File size in bytes
        chunk_size: Nominal chunk size in bytes
        total_chunks: Number of chunks, ceil(total_size / chunk_size)
    """
    upload_id: str
    total_size: int
    chunk_size: int
    total_chunks: int

    @classmethod
    def create(cls, upload_id: str, total_size: int, chunk_size: int) -> 'UploadSession':
        """Build a session, deriving the chunk count."""
        return cls(
            upload_id=upload_id,
            total_size=total_size,
            chunk_size=chunk_size,
            total_chunks=ceil_div(total_size, chunk_size)
        )


@dataclass
class UploadState:
    """
    Mutable progress of one upload.

    Attributes:
        upload_id: Session identifier, None until negotiated or restored
        uploaded_bytes: Cumulative bytes acknowledged by the server
        current_chunk_index: Index of the next chunk to send
        status: Lifecycle state
    """
    upload_id: Optional[str] = None
    uploaded_bytes: int = 0
    current_chunk_index: int = 0
    status: UploadStatus = UploadStatus.CREATED


@dataclass(frozen=True)
class ProgressSnapshot:
    """
    Point-in-time view of upload progress. Computed on demand, never stored.

    Attributes:
        uploaded_bytes: Bytes acknowledged by the server
        total_bytes: File size
        percentage: 0-100, exactly 100 only once the upload completed
        current_chunk: 1-based number of the chunk being worked on
        chunks_complete: Chunks acknowledged so far
        total_chunks: Number of chunks
        bytes_remaining: total_bytes - uploaded_bytes
        is_complete: uploaded_bytes >= total_bytes
    """
    uploaded_bytes: int
    total_bytes: int
    percentage: float
    current_chunk: int
    chunks_complete: int
    total_chunks: int
    bytes_remaining: int
    is_complete: bool


@dataclass
class UploadSnapshot:
    """
    Exported upload state, enough to resume after a process restart.

    Example:
        >>> snapshot = controller.get_state()
        >>> store.save(key, snapshot)
        >>> # ... later, in a new process
        >>> fresh.restore_state(store.load(key))
    """
    upload_id: Optional[str]
    uploaded_bytes: int
    current_chunk_index: int
    filename: str
    total_size: int
    chunk_size: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (camelCase keys, as exchanged with browsers)."""
        result = {
            'uploadId': self.upload_id,
            'uploadedBytes': self.uploaded_bytes,
            'currentChunkIndex': self.current_chunk_index,
            'filename': self.filename,
            'totalSize': self.total_size,
        }
        if self.chunk_size is not None:
            result['chunkSize'] = self.chunk_size
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UploadSnapshot':
        """Create from dictionary; accepts camelCase or snake_case keys."""
        def pick(camel: str, snake: str, default: Any = None) -> Any:
            if camel in data:
                return data[camel]
            return data.get(snake, default)

        chunk_size = pick('chunkSize', 'chunk_size')
        return cls(
            upload_id=pick('uploadId', 'upload_id'),
            uploaded_bytes=int(pick('uploadedBytes', 'uploaded_bytes', 0)),
            current_chunk_index=int(pick('currentChunkIndex', 'current_chunk_index', 0)),
            filename=pick('filename', 'filename', ''),
            total_size=int(pick('totalSize', 'total_size', 0)),
            chunk_size=int(chunk_size) if chunk_size is not None else None,
        )

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, json_str: str) -> 'UploadSnapshot':
        """Create from JSON string."""
        return cls.from_dict(json.loads(json_str))


@dataclass
class UploadConfig:
    """
    Per-upload tuning.

    Attributes:
        chunk_size: Bytes per chunk request
        max_retries: Retries per chunk after the first attempt
        retry_delay: Base backoff delay in seconds
    """
    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_retries: int = 3
    retry_delay: float = 1.0

    def __post_init__(self):
        """Validate config."""
        if self.chunk_size <= 0:
            raise ValueError("Chunk size must be positive")
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        if self.retry_delay < 0:
            raise ValueError("retry_delay cannot be negative")
