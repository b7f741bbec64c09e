"""Upload services module."""
from .file_service import FileValidator, LocalSourceFile, BytesSourceFile, guess_content_type
from .session_service import SessionNegotiator
from .chunk_service import ChunkUploader, ChunkTransferor
from .finalize_service import Finalizer

__all__ = [
    'FileValidator',
    'LocalSourceFile',
    'BytesSourceFile',
    'guess_content_type',
    'SessionNegotiator',
    'ChunkUploader',
    'ChunkTransferor',
    'Finalizer',
]
