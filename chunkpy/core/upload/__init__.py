"""
Upload module for resumable chunked uploads.

The controller drives three pluggable services (session negotiation, chunk
transfer with retry, finalization) over an injected HTTP transport.
"""
from .controller import UploadController
from .progress import ProgressModel
from .models import (
    UploadStatus,
    UploadSession,
    UploadState,
    ProgressSnapshot,
    UploadSnapshot,
    UploadConfig,
    ChunkInfo
)
from .services import (
    SessionNegotiator,
    ChunkUploader,
    ChunkTransferor,
    Finalizer,
    FileValidator,
    LocalSourceFile,
    BytesSourceFile
)
from .strategies import FixedSizeChunkingStrategy
from .protocols import SourceFile, UploadTransport

__all__ = [
    # Main classes
    'UploadController',
    'ProgressModel',

    # Models
    'UploadStatus',
    'UploadSession',
    'UploadState',
    'ProgressSnapshot',
    'UploadSnapshot',
    'UploadConfig',
    'ChunkInfo',

    # Services
    'SessionNegotiator',
    'ChunkUploader',
    'ChunkTransferor',
    'Finalizer',
    'FileValidator',
    'LocalSourceFile',
    'BytesSourceFile',
    'FixedSizeChunkingStrategy',

    # Protocols
    'SourceFile',
    'UploadTransport',
]
