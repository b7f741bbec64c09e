"""
ChunkPy - Async resumable chunked upload client.

Usage:
    >>> from chunkpy import UploadClient, SQLiteStateStore
    >>>
    >>> async with UploadClient("https://media.example.com",
    ...                         state_store=SQLiteStateStore("uploads")) as client:
    ...     metadata = await client.upload("movie.mp4")
"""
from .client import UploadClient

# Configuration
from .core.api import (
    APIConfig,
    EndpointConfig,
    ProxyConfig,
    SSLConfig,
    TimeoutConfig,
    RetryConfig,
    AsyncAPIClient,
    APIError
)

# Upload engine
from .core.upload import (
    UploadController,
    UploadConfig,
    UploadStatus,
    UploadSnapshot,
    ProgressSnapshot,
    LocalSourceFile,
    BytesSourceFile
)
from .core.cancellation import CancellationToken

# State persistence
from .core.state import (
    UploadStateStore,
    SQLiteStateStore,
    MemoryStateStore,
    upload_key
)

from .core.exceptions import (
    UploadException,
    MalformedResponseError,
    SessionError,
    ChunkTransferError,
    FinalizeError,
    CancellationError,
    UploadStateError
)
from .core.logging import setup_logging

__version__ = '1.0.0'

__all__ = [
    'UploadClient',
    'UploadController',
    'UploadConfig',
    'UploadStatus',
    'UploadSnapshot',
    'ProgressSnapshot',
    'LocalSourceFile',
    'BytesSourceFile',
    'CancellationToken',
    'UploadStateStore',
    'SQLiteStateStore',
    'MemoryStateStore',
    'upload_key',
    'APIConfig',
    'EndpointConfig',
    'ProxyConfig',
    'SSLConfig',
    'TimeoutConfig',
    'RetryConfig',
    'AsyncAPIClient',
    'APIError',
    'UploadException',
    'MalformedResponseError',
    'SessionError',
    'ChunkTransferError',
    'FinalizeError',
    'CancellationError',
    'UploadStateError',
    'setup_logging',
]
