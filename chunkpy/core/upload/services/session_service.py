"""
Session negotiation service.

Opens the server-side upload session that every chunk is appended to.
"""
import asyncio
from typing import Optional

import aiohttp

from ..protocols import UploadTransport
from ...api.config import EndpointConfig
from ...cancellation import CancellationToken
from ...exceptions import UploadException, CancellationError, MalformedResponseError, SessionError
from ...logging import get_logger
from ...utils import format_bytes


class SessionNegotiator:
    """
    Creates upload sessions.

    A single attempt is made; any failure is fatal to the upload and
    surfaces as SessionError.
    """

    def __init__(
        self,
        transport: UploadTransport,
        endpoints: Optional[EndpointConfig] = None,
        cancel_token: Optional[CancellationToken] = None
    ):
        """
        Initialize session negotiator.

        Args:
            transport: HTTP transport (AsyncAPIClient)
            endpoints: Endpoint paths
            cancel_token: Token that aborts the request when fired
        """
        self._transport = transport
        self._endpoints = endpoints or EndpointConfig()
        self._cancel_token = cancel_token
        self._logger = get_logger('chunkpy.upload.session')

    async def create_session(self, filename: str, total_size: int, content_type: str) -> str:
        """
        Open an upload session.

        Args:
            filename: Name of the file being uploaded
            total_size: File size in bytes
            content_type: MIME type of the file

        Returns:
            Upload id issued by the server

        Raises:
            SessionError: If the session could not be created
            CancellationError: If the token fires while negotiating
        """
        self._logger.info(f"Creating upload session for {filename} ({format_bytes(total_size)})")
        payload = {
            'filename': filename,
            'totalSize': total_size,
            'contentType': content_type,
        }

        try:
            data = await self._transport.post_json(
                self._endpoints.create,
                payload,
                cancel_token=self._cancel_token
            )
            upload_id = data.get('uploadId')
            if not isinstance(upload_id, str) or not upload_id:
                raise MalformedResponseError(f"Session response carries no uploadId: {data!r}")
        except CancellationError:
            raise
        except (UploadException, aiohttp.ClientError, asyncio.TimeoutError) as e:
            self._logger.error(f"Failed to create upload session: {e}")
            raise SessionError(f"Failed to create upload session: {e}", getattr(e, 'error_code', None)) from e

        self._logger.info(f"Session created, uploadId: {upload_id}")
        return upload_id
