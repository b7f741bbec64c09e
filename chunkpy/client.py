"""
High-level upload client.

Hides the transport, the controller and state persistence behind one
``upload()`` call that transparently resumes interrupted uploads.
"""
from dataclasses import replace
from pathlib import Path
from typing import Optional, Union, Dict, Any, Callable

from .core.api import AsyncAPIClient, APIConfig, APIError
from .core.exceptions import ChunkTransferError, FinalizeError, UploadStateError
from .core.logging import get_logger
from .core.state import UploadStateStore, upload_key
from .core.upload import (
    UploadController,
    UploadConfig,
    UploadStatus,
    ProgressSnapshot,
    SourceFile,
    UploadTransport,
    FileValidator,
    LocalSourceFile
)

logger = get_logger('chunkpy.upload')

# Statuses meaning the server no longer knows the session
_SESSION_GONE = (404, 410)


class UploadClient:
    """
    Resumable chunked upload client.

    Example:
        >>> store = SQLiteStateStore("uploads")
        >>> async with UploadClient("https://media.example.com", state_store=store) as client:
        ...     metadata = await client.upload(
        ...         "movie.mp4",
        ...         on_progress=lambda p: print(f"{p.percentage:.1f}%")
        ...     )

    If the process dies mid-upload, the same call in a new process picks
    up at the first unacknowledged chunk.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_config: Optional[APIConfig] = None,
        upload_config: Optional[UploadConfig] = None,
        state_store: Optional[UploadStateStore] = None,
        max_file_size: Optional[int] = None,
        transport: Optional[UploadTransport] = None
    ):
        """
        Initialize upload client.

        Args:
            base_url: Server base URL (overrides api_config.base_url)
            api_config: Transport configuration
            upload_config: Chunk size and retry tuning
            state_store: Where to keep resumable state (None disables resume)
            max_file_size: Optional upper bound on accepted file sizes
            transport: HTTP transport (built from api_config if omitted)
        """
        self._api_config = api_config or APIConfig()
        if base_url:
            self._api_config = replace(self._api_config, base_url=base_url)
        self._upload_config = upload_config or UploadConfig()
        self._store = state_store
        self._max_file_size = max_file_size
        self._validator = FileValidator()
        self._api = transport or AsyncAPIClient(self._api_config)

    @property
    def api(self) -> UploadTransport:
        return self._api

    @property
    def state_store(self) -> Optional[UploadStateStore]:
        return self._store

    async def __aenter__(self) -> 'UploadClient':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the transport. The state store stays open (owned by the caller)."""
        await self._api.close()

    def create_controller(self, source: SourceFile, **callbacks) -> UploadController:
        """
        Build a controller bound to this client's transport and config.

        Args:
            source: File to upload
            **callbacks: on_progress, on_chunk_complete, on_complete, on_error

        Returns:
            A fresh UploadController
        """
        return UploadController(
            source,
            self._api,
            config=self._upload_config,
            endpoints=self._api_config.endpoints,
            **callbacks
        )

    async def upload(
        self,
        file_path: Union[str, Path],
        name: Optional[str] = None,
        content_type: Optional[str] = None,
        on_progress: Optional[Callable[[ProgressSnapshot], None]] = None,
        on_chunk_complete: Optional[Callable[[int, int], None]] = None,
        on_controller: Optional[Callable[[UploadController], None]] = None,
        resume: bool = True
    ) -> Dict[str, Any]:
        """
        Upload a local file.

        Args:
            file_path: Path to file to upload
            name: Optional file name reported to the server
            content_type: Optional MIME type (guessed if omitted)
            on_progress: Progress callback
            on_chunk_complete: Chunk callback, (chunks_complete, total_chunks)
            on_controller: Receives the controller before it starts, e.g. to
                keep a handle for pause()/cancel()
            resume: Continue a stored upload of the same file if one exists

        Returns:
            Artifact metadata from the finalize endpoint

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If file is too large
            SessionError, ChunkTransferError, FinalizeError: On failure
            CancellationError: If the upload was cancelled
        """
        path, file_size = self._validator.validate(file_path)
        self._validator.validate_size(file_size, self._max_file_size)

        source = LocalSourceFile(path, name=name, content_type=content_type)
        controller = self.create_controller(
            source,
            on_progress=on_progress,
            on_chunk_complete=on_chunk_complete
        )

        key = upload_key(str(path.resolve()), file_size)
        if self._store is not None:
            if resume:
                self._restore(controller, key)
            self._persist_progress(controller, key)

        if on_controller:
            on_controller(controller)

        async with source:
            try:
                metadata = await controller.start()
            except (ChunkTransferError, FinalizeError) as e:
                if self._store is not None and self._session_gone(e):
                    logger.warning(f"Stored session for {path.name} is gone on the server; forgetting it")
                    self._store.delete(key)
                raise

        if self._store is not None:
            self._store.delete(key)
        return metadata

    def _restore(self, controller: UploadController, key: str) -> bool:
        """Load stored state into ``controller``; True if it was resumed."""
        snapshot = self._store.load(key)
        if snapshot is None:
            return False
        try:
            controller.restore_state(snapshot)
        except UploadStateError as e:
            logger.warning(f"Discarding stored state for {key}: {e}")
            self._store.delete(key)
            return False
        logger.info(
            f"Resuming upload {snapshot.upload_id} at chunk "
            f"{snapshot.current_chunk_index + 1}/{controller.total_chunks}"
        )
        return True

    def _persist_progress(self, controller: UploadController, key: str) -> None:
        """Save state once the session exists and after every chunk."""
        def save(*_):
            if controller.upload_id is not None:
                self._store.save(key, controller.get_state())

        def on_status(status: UploadStatus):
            if status is UploadStatus.TRANSFERRING:
                save()

        controller.on('status', on_status)
        controller.on('chunk_complete', save)

    @staticmethod
    def _session_gone(error: Union[ChunkTransferError, FinalizeError]) -> bool:
        if isinstance(error, FinalizeError):
            return error.error_code in _SESSION_GONE
        last = error.last_error
        return isinstance(last, APIError) and last.status in _SESSION_GONE
