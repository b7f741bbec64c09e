"""
Finalize service.

Tells the server every byte has arrived and collects the artifact metadata.
"""
import asyncio
from typing import Dict, Any, Optional

import aiohttp

from ..protocols import UploadTransport
from ...api.config import EndpointConfig
from ...cancellation import CancellationToken
from ...exceptions import UploadException, CancellationError, FinalizeError
from ...logging import get_logger


class Finalizer:
    """
    Completes upload sessions.

    A single attempt is made; failure surfaces as FinalizeError.
    """

    def __init__(
        self,
        transport: UploadTransport,
        endpoints: Optional[EndpointConfig] = None,
        cancel_token: Optional[CancellationToken] = None
    ):
        self._transport = transport
        self._endpoints = endpoints or EndpointConfig()
        self._cancel_token = cancel_token
        self._logger = get_logger('chunkpy.upload.finalize')

    async def finalize(self, upload_id: str) -> Dict[str, Any]:
        """
        Finalize an upload session.

        Args:
            upload_id: Session to complete

        Returns:
            Server-defined artifact metadata

        Raises:
            FinalizeError: If the server refuses or cannot be reached
            CancellationError: If the token fires while finalizing
        """
        self._logger.info(f"Finalizing upload {upload_id}")
        try:
            metadata = await self._transport.post_json(
                self._endpoints.finalize,
                {'uploadId': upload_id},
                cancel_token=self._cancel_token
            )
        except CancellationError:
            raise
        except (UploadException, aiohttp.ClientError, asyncio.TimeoutError) as e:
            self._logger.error(f"Failed to finalize upload {upload_id}: {e}")
            raise FinalizeError(f"Failed to finalize upload: {e}", getattr(e, 'error_code', None)) from e

        self._logger.info(f"Upload {upload_id} finalized")
        return metadata
