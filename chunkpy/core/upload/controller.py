"""
Upload controller.

Orchestrates one upload: negotiate a session, transfer chunks in order,
finalize. Owns the only mutable UploadState and the pause/resume/cancel
flags, and reports lifecycle events to registered callbacks.
"""
import asyncio
from dataclasses import replace
from typing import Dict, Any, Optional, Callable, Union

from .models import (
    UploadConfig,
    UploadSession,
    UploadState,
    UploadStatus,
    UploadSnapshot,
    ProgressSnapshot
)
from .progress import ProgressModel
from .protocols import SourceFile, UploadTransport
from .services import SessionNegotiator, ChunkUploader, ChunkTransferor, Finalizer
from .strategies import FixedSizeChunkingStrategy
from ..api.config import EndpointConfig, RetryConfig
from ..api.events import EventEmitter
from ..api.retry import RetryStrategy, ExponentialBackoffStrategy
from ..cancellation import CancellationToken
from ..exceptions import CancellationError, ChunkTransferError, UploadStateError
from ..logging import get_logger
from ..utils import format_bytes

logger = get_logger('chunkpy.upload.controller')

EVENT_PROGRESS = 'progress'
EVENT_CHUNK_COMPLETE = 'chunk_complete'
EVENT_COMPLETE = 'complete'
EVENT_ERROR = 'error'
EVENT_STATUS = 'status'


class UploadController:
    """
    Drives a resumable, chunked upload of one source file.

    State machine::

        CREATED -> NEGOTIATING -> TRANSFERRING <-> PAUSED
                                      |
                                  FINALIZING -> COMPLETED

    cancel() moves any non-terminal state to CANCELLED; unrecoverable errors
    move to FAILED. COMPLETED, FAILED and CANCELLED are terminal.

    Chunks are sent one at a time, in index order, and only the chunk being
    sent is held in memory. pause(), resume() and cancel() may be called
    from any task; pause takes effect before the next chunk, cancel aborts
    the request in flight.

    Example:
        >>> async with AsyncAPIClient(api_config) as client:
        ...     controller = UploadController(
        ...         LocalSourceFile("movie.mp4"),
        ...         client,
        ...         on_progress=lambda p: print(f"{p.percentage:.1f}%")
        ...     )
        ...     metadata = await controller.start()
    """

    def __init__(
        self,
        source: SourceFile,
        transport: UploadTransport,
        config: Optional[UploadConfig] = None,
        endpoints: Optional[EndpointConfig] = None,
        retry_strategy: Optional[RetryStrategy] = None,
        on_progress: Optional[Callable[[ProgressSnapshot], None]] = None,
        on_chunk_complete: Optional[Callable[[int, int], None]] = None,
        on_complete: Optional[Callable[[Dict[str, Any]], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None
    ):
        """
        Initialize upload controller.

        Args:
            source: File to upload
            transport: HTTP transport (AsyncAPIClient or compatible)
            config: Chunk size and retry tuning
            endpoints: Endpoint paths (defaults to the transport's config)
            retry_strategy: Chunk retry policy (built from config if omitted)
            on_progress: Called with a ProgressSnapshot after each chunk
            on_chunk_complete: Called with (chunks_complete, total_chunks)
            on_complete: Called once with the artifact metadata
            on_error: Called once with the error that ended the upload
        """
        self._source = source
        self._transport = transport
        self._config = config or UploadConfig()
        self._endpoints = endpoints or _endpoints_of(transport)
        self._retry = retry_strategy or ExponentialBackoffStrategy(
            RetryConfig(
                max_retries=self._config.max_retries,
                base_delay=self._config.retry_delay
            )
        )
        self._chunking = FixedSizeChunkingStrategy(self._config.chunk_size)
        self._total_chunks = self._chunking.chunk_count(source.size)

        self._state = UploadState()
        self._session: Optional[UploadSession] = None
        self._started = False

        self._cancel_token = CancellationToken()
        self._resumed = asyncio.Event()
        self._resumed.set()

        self._negotiator = SessionNegotiator(transport, self._endpoints, self._cancel_token)
        self._finalizer = Finalizer(transport, self._endpoints, self._cancel_token)

        self._events = EventEmitter()
        self._events.on(EVENT_PROGRESS, on_progress)
        self._events.on(EVENT_CHUNK_COMPLETE, on_chunk_complete)
        self._events.on(EVENT_COMPLETE, on_complete)
        self._events.on(EVENT_ERROR, on_error)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def status(self) -> UploadStatus:
        return self._state.status

    @property
    def upload_id(self) -> Optional[str]:
        return self._state.upload_id

    @property
    def session(self) -> Optional[UploadSession]:
        return self._session

    @property
    def state(self) -> UploadState:
        """A copy of the current state."""
        return replace(self._state)

    @property
    def total_chunks(self) -> int:
        return self._total_chunks

    @property
    def config(self) -> UploadConfig:
        return self._config

    @property
    def cancel_token(self) -> CancellationToken:
        return self._cancel_token

    def get_progress(self) -> ProgressSnapshot:
        """Current progress, computed on demand."""
        return ProgressModel.snapshot(self._state, self._source.size, self._total_chunks)

    def on(self, event: str, callback: Callable) -> 'UploadController':
        """Register a handler for progress, chunk_complete, complete, error or status."""
        self._events.on(event, callback)
        return self

    def off(self, event: str, callback: Optional[Callable] = None) -> 'UploadController':
        """Remove an event handler."""
        self._events.off(event, callback)
        return self

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> Dict[str, Any]:
        """
        Run the upload to completion.

        Returns:
            Artifact metadata returned by the finalize endpoint

        Raises:
            UploadStateError: If start() was already called on this controller
            CancellationError: If cancel() was called before completion
            SessionError, ChunkTransferError, FinalizeError: On failure
        """
        if self._started:
            raise UploadStateError(
                f"Upload already started (status: {self._state.status.value})"
            )
        self._started = True

        try:
            metadata = await self._run()
        except CancellationError as e:
            self._set_status(UploadStatus.CANCELLED)
            logger.info(f"Upload of {self._source.name} cancelled")
            self._events.emit(EVENT_ERROR, e)
            raise
        except asyncio.CancelledError:
            # The driving task itself was cancelled
            self._cancel_token.cancel()
            self._set_status(UploadStatus.CANCELLED)
            self._events.emit(EVENT_ERROR, CancellationError("Upload task cancelled"))
            raise
        except Exception as e:
            if self._cancel_token.is_cancelled:
                self._set_status(UploadStatus.CANCELLED)
                error = CancellationError()
                self._events.emit(EVENT_ERROR, error)
                raise error from e
            self._set_status(UploadStatus.FAILED)
            logger.error(f"Upload of {self._source.name} failed: {e}")
            self._events.emit(EVENT_ERROR, e)
            raise

        logger.info(f"Upload of {self._source.name} complete")
        try:
            self._events.emit(EVENT_PROGRESS, self.get_progress())
        finally:
            self._events.emit(EVENT_COMPLETE, metadata)
        return metadata

    def pause(self) -> None:
        """Pause before the next chunk. No effect unless transferring."""
        if self._state.status is not UploadStatus.TRANSFERRING:
            logger.debug(f"pause() ignored in status {self._state.status.value}")
            return
        self._resumed.clear()
        self._set_status(UploadStatus.PAUSED)
        logger.info(f"Upload of {self._source.name} paused")

    def resume(self) -> None:
        """Resume a paused upload. No effect unless paused."""
        if self._state.status is not UploadStatus.PAUSED:
            logger.debug(f"resume() ignored in status {self._state.status.value}")
            return
        self._set_status(UploadStatus.TRANSFERRING)
        self._resumed.set()
        logger.info(f"Upload of {self._source.name} resumed")

    def cancel(self) -> None:
        """Cancel the upload, aborting the request in flight. No effect once terminal."""
        if self._state.status.is_terminal:
            return
        self._cancel_token.cancel()
        self._set_status(UploadStatus.CANCELLED)
        # Wake a paused loop so it can observe the cancellation
        self._resumed.set()
        logger.info(f"Upload of {self._source.name} cancelled by user")

    # ------------------------------------------------------------------
    # Resumability
    # ------------------------------------------------------------------

    def get_state(self) -> UploadSnapshot:
        """Export the state needed to resume this upload later."""
        return UploadSnapshot(
            upload_id=self._state.upload_id,
            uploaded_bytes=self._state.uploaded_bytes,
            current_chunk_index=self._state.current_chunk_index,
            filename=self._source.name,
            total_size=self._source.size,
            chunk_size=self._config.chunk_size,
        )

    def restore_state(self, snapshot: Union[UploadSnapshot, Dict[str, Any]]) -> None:
        """
        Load a previously exported state into this fresh controller.

        start() then skips session negotiation and continues the restored
        session at ``current_chunk_index``.

        Args:
            snapshot: UploadSnapshot or its dict form

        Raises:
            UploadStateError: If the controller is not fresh or the snapshot
                does not match the source file and chunk size
        """
        if isinstance(snapshot, dict):
            snapshot = UploadSnapshot.from_dict(snapshot)

        if self._started or self._state.status is not UploadStatus.CREATED:
            raise UploadStateError("restore_state() requires a controller that has not started")
        if self._state.upload_id is not None:
            raise UploadStateError("Upload id already assigned; a controller restores at most once")
        if not snapshot.upload_id:
            raise UploadStateError("Snapshot carries no upload id")
        if snapshot.total_size != self._source.size:
            raise UploadStateError(
                f"Snapshot is for {snapshot.total_size} bytes but the source has {self._source.size}"
            )
        if snapshot.chunk_size is not None and snapshot.chunk_size != self._config.chunk_size:
            raise UploadStateError(
                f"Snapshot used chunk size {snapshot.chunk_size}, controller uses {self._config.chunk_size}"
            )
        if not 0 <= snapshot.current_chunk_index <= self._total_chunks:
            raise UploadStateError(
                f"Chunk index {snapshot.current_chunk_index} out of range (0..{self._total_chunks})"
            )
        if not 0 <= snapshot.uploaded_bytes <= self._source.size:
            raise UploadStateError(f"Uploaded byte count {snapshot.uploaded_bytes} out of range")
        if snapshot.filename and snapshot.filename != self._source.name:
            logger.warning(
                f"Restoring state recorded for {snapshot.filename!r} onto {self._source.name!r}"
            )

        self._state.upload_id = snapshot.upload_id
        self._state.uploaded_bytes = snapshot.uploaded_bytes
        self._state.current_chunk_index = snapshot.current_chunk_index
        logger.debug(
            f"Restored upload {snapshot.upload_id} at chunk {snapshot.current_chunk_index}/{self._total_chunks}"
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run(self) -> Dict[str, Any]:
        self._cancel_token.raise_if_cancelled()

        session = await self._open_session()
        transferor = ChunkTransferor(
            ChunkUploader(self._transport, session, self._endpoints, self._cancel_token),
            self._retry,
            self._cancel_token
        )

        self._set_status(UploadStatus.TRANSFERRING)
        logger.info(
            f"Uploading {self._source.name} ({format_bytes(session.total_size)}) in "
            f"{session.total_chunks} chunks of up to {format_bytes(session.chunk_size)}"
        )

        while self._state.current_chunk_index < session.total_chunks:
            await self._checkpoint()

            info = self._chunking.chunk_info(self._state.current_chunk_index, session.total_size)
            chunk = await self._source.slice(info.start, info.end)
            logger.info(
                f"Uploading chunk {info.index + 1}/{session.total_chunks} ({format_bytes(info.size)})"
            )

            new_offset = await transferor.transfer(chunk, info.start, self._state.uploaded_bytes)
            del chunk

            # A response that lands after cancel() is not applied
            self._cancel_token.raise_if_cancelled()
            self._advance(new_offset)

        await self._checkpoint()

        if self._state.uploaded_bytes < session.total_size:
            raise ChunkTransferError(
                f"Server acknowledged {self._state.uploaded_bytes} of {session.total_size} bytes",
                offset=self._state.uploaded_bytes
            )

        self._set_status(UploadStatus.FINALIZING)
        metadata = await self._finalizer.finalize(session.upload_id)
        self._cancel_token.raise_if_cancelled()
        self._set_status(UploadStatus.COMPLETED)
        return metadata

    async def _open_session(self) -> UploadSession:
        """Negotiate a session, or reuse the one loaded by restore_state()."""
        if self._state.upload_id is not None:
            logger.info(
                f"Resuming upload {self._state.upload_id} at chunk "
                f"{self._state.current_chunk_index + 1}/{self._total_chunks} "
                f"({format_bytes(self._state.uploaded_bytes)} already acknowledged)"
            )
        else:
            self._set_status(UploadStatus.NEGOTIATING)
            upload_id = await self._negotiator.create_session(
                self._source.name,
                self._source.size,
                self._source.content_type
            )
            self._cancel_token.raise_if_cancelled()
            self._state.upload_id = upload_id

        self._session = UploadSession.create(
            self._state.upload_id,
            self._source.size,
            self._config.chunk_size
        )
        return self._session

    async def _checkpoint(self) -> None:
        """Raise if cancelled; wait while paused."""
        self._cancel_token.raise_if_cancelled()
        if not self._resumed.is_set():
            logger.debug("Waiting for resume")
            await self._resumed.wait()
            self._cancel_token.raise_if_cancelled()

    def _advance(self, new_offset: int) -> None:
        """Record an acknowledged chunk and notify listeners."""
        self._state.uploaded_bytes = new_offset
        self._state.current_chunk_index += 1

        progress = self.get_progress()
        logger.info(
            f"Chunk {self._state.current_chunk_index}/{self._total_chunks} complete "
            f"({progress.percentage:.1f}%)"
        )
        self._events.emit(EVENT_PROGRESS, progress)
        self._events.emit(EVENT_CHUNK_COMPLETE, self._state.current_chunk_index, self._total_chunks)

    def _set_status(self, status: UploadStatus) -> None:
        """Move to ``status`` unless already terminal."""
        if self._state.status.is_terminal or self._state.status is status:
            return
        logger.debug(f"Status {self._state.status.value} -> {status.value}")
        self._state.status = status
        self._events.emit(EVENT_STATUS, status)


def _endpoints_of(transport: UploadTransport) -> EndpointConfig:
    """Endpoint paths configured on the transport, or the defaults."""
    config = getattr(transport, 'config', None)
    endpoints = getattr(config, 'endpoints', None)
    return endpoints if isinstance(endpoints, EndpointConfig) else EndpointConfig()
