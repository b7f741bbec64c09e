"""
Chunk upload service.

ChunkUploader makes one attempt at appending a chunk to the session;
ChunkTransferor wraps it with bounded retry and exponential backoff.
"""
from typing import Optional
import time

from ..models import UploadSession
from ..protocols import UploadTransport
from ...api.config import EndpointConfig
from ...api.retry import RetryStrategy, ExponentialBackoffStrategy
from ...cancellation import CancellationToken
from ...exceptions import CancellationError, ChunkTransferError, MalformedResponseError
from ...logging import get_logger
from ...utils import format_bytes


class ChunkUploader:
    """
    Sends single chunks to the chunk endpoint.

    Responsibilities:
    - Build the multipart request (uploadId, offset, chunk)
    - Validate the cumulative offset the server reports back
    """

    FILE_FIELD = 'chunk'
    FILE_NAME = 'chunk.bin'

    def __init__(
        self,
        transport: UploadTransport,
        session: UploadSession,
        endpoints: Optional[EndpointConfig] = None,
        cancel_token: Optional[CancellationToken] = None
    ):
        """
        Initialize chunk uploader.

        Args:
            transport: HTTP transport (AsyncAPIClient)
            session: Session the chunks belong to
            endpoints: Endpoint paths
            cancel_token: Token that aborts the request when fired
        """
        self._transport = transport
        self._session = session
        self._endpoints = endpoints or EndpointConfig()
        self._cancel_token = cancel_token
        self._logger = get_logger('chunkpy.upload.chunk')

    @property
    def session(self) -> UploadSession:
        return self._session

    async def upload_chunk(self, chunk: bytes, offset: int, acknowledged: int = 0) -> int:
        """
        Upload a single chunk.

        Args:
            chunk: Chunk bytes
            offset: Byte position of the chunk within the file
            acknowledged: Bytes the server already acknowledged for the session

        Returns:
            Cumulative offset acknowledged by the server

        Raises:
            ValueError: If chunk is empty
            APIError, MalformedResponseError: If the server rejects the chunk
            aiohttp.ClientError, asyncio.TimeoutError: On network failure
        """
        if not chunk:
            raise ValueError(f"Cannot upload empty chunk at offset {offset}")

        upload_start = time.time()
        data = await self._transport.post_multipart(
            self._endpoints.chunk,
            {'uploadId': self._session.upload_id, 'offset': str(offset)},
            self.FILE_FIELD,
            self.FILE_NAME,
            chunk,
            cancel_token=self._cancel_token
        )
        new_offset = self._process_response(data, offset, acknowledged)

        upload_time = time.time() - upload_start
        speed_kbps = (len(chunk) / 1024 / upload_time) if upload_time > 0 else 0
        self._logger.debug(
            f"Chunk at {offset} acknowledged in {upload_time:.2f}s ({speed_kbps:.1f} KB/s), server offset {new_offset}"
        )
        return new_offset

    def _process_response(self, data: dict, offset: int, acknowledged: int = 0) -> int:
        """
        Validate the server's cumulative offset.

        The server is the authority on the byte count, but it must move
        past both the chunk start and every earlier acknowledgement, and
        stay within the file.

        Raises:
            MalformedResponseError: If the offset is missing or out of range
        """
        new_offset = data.get('offset')
        if isinstance(new_offset, bool) or not isinstance(new_offset, int):
            raise MalformedResponseError(f"Chunk response carries no integer offset: {data!r}")

        if not max(offset, acknowledged) < new_offset <= self._session.total_size:
            raise MalformedResponseError(
                f"Server offset {new_offset} out of range for chunk at {offset} "
                f"({acknowledged} bytes already acknowledged, "
                f"file size {self._session.total_size})"
            )

        return new_offset


class ChunkTransferor:
    """
    Delivers one chunk with bounded retry.

    The first attempt fires immediately; retry k waits
    ``retry_delay * 2 ** (k - 1)``. Cancellation is checked before every
    attempt and interrupts the backoff wait.

    Example:
        >>> transferor = ChunkTransferor(uploader, ExponentialBackoffStrategy())
        >>> new_offset = await transferor.transfer(chunk, offset)
    """

    def __init__(
        self,
        uploader: ChunkUploader,
        retry_strategy: Optional[RetryStrategy] = None,
        cancel_token: Optional[CancellationToken] = None
    ):
        """
        Initialize chunk transferor.

        Args:
            uploader: Single-attempt chunk uploader
            retry_strategy: Retry policy (defaults to 3 retries, 1s base delay)
            cancel_token: Token checked before each attempt
        """
        self._uploader = uploader
        self._retry = retry_strategy or ExponentialBackoffStrategy()
        self._cancel_token = cancel_token or CancellationToken()
        self._logger = get_logger('chunkpy.upload.chunk')

    @property
    def max_attempts(self) -> int:
        return self._retry.max_retries + 1

    async def transfer(self, chunk: bytes, offset: int, acknowledged: int = 0) -> int:
        """
        Upload ``chunk`` at ``offset``, retrying transport failures.

        Args:
            chunk: Chunk bytes
            offset: Byte position of the chunk within the file
            acknowledged: Bytes the server already acknowledged for the session

        Returns:
            Cumulative offset acknowledged by the server

        Raises:
            ChunkTransferError: After every attempt failed
            CancellationError: If cancelled before or between attempts
        """
        last_error: Optional[BaseException] = None
        attempt = 0

        while True:
            self._cancel_token.raise_if_cancelled()
            attempt += 1

            try:
                return await self._uploader.upload_chunk(chunk, offset, acknowledged)
            except CancellationError:
                raise
            except Exception as e:
                last_error = e
                if not self._retry.should_retry(e, attempt - 1):
                    break
                delay = self._retry.calculate_delay(attempt)
                self._logger.warning(
                    f"Chunk upload at {offset} ({format_bytes(len(chunk))}) failed "
                    f"(attempt {attempt}/{self.max_attempts}): {e}; retrying in {delay:.2f}s"
                )
                await self._retry.wait_async(attempt, self._cancel_token)

        self._logger.error(f"Chunk upload at {offset} failed after {attempt} attempts: {last_error}")
        raise ChunkTransferError(
            f"Failed to upload chunk after {attempt} attempts: {last_error}",
            attempts=attempt,
            offset=offset,
            last_error=last_error,
            error_code=getattr(last_error, 'error_code', None)
        ) from last_error
