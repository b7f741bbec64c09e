"""Upload models."""
from .upload_models import (
    DEFAULT_CHUNK_SIZE,
    UploadStatus,
    ChunkInfo,
    UploadSession,
    UploadState,
    ProgressSnapshot,
    UploadSnapshot,
    UploadConfig
)

__all__ = [
    'DEFAULT_CHUNK_SIZE',
    'UploadStatus',
    'ChunkInfo',
    'UploadSession',
    'UploadState',
    'ProgressSnapshot',
    'UploadSnapshot',
    'UploadConfig'
]
