"""
Async upload API client.

Fully asynchronous client for the session/chunk/finalize endpoints.
"""
import logging
from typing import Dict, Optional, Any

import aiohttp

from .config import APIConfig
from .request import ResponseHandler
from ..cancellation import CancellationToken
from ..logging import get_logger


class AsyncAPIClient:
    """
    Asynchronous upload API client.

    Features:
    - Full async/await support
    - Configurable proxy, SSL, timeouts, extra headers and cookies
    - Connection pooling (one session reused for every chunk)
    - Every call can be aborted through a CancellationToken

    The client performs a single attempt per call; retry policy belongs to
    the caller.

    Example:
        >>> config = APIConfig(base_url="https://example.com")
        >>> async with AsyncAPIClient(config) as client:
        ...     data = await client.post_json(config.endpoints.create, {...})
    """

    def __init__(self, config: Optional[APIConfig] = None):
        """
        Initialize async API client.

        Args:
            config: API configuration (uses defaults if not provided)
        """
        self._config = config or APIConfig()
        self._session: Optional[aiohttp.ClientSession] = None
        self._connector: Optional[aiohttp.TCPConnector] = None
        self._closed = False

        self._logger = get_logger('chunkpy.api')
        root_logger = logging.getLogger()
        if not root_logger.handlers:
            self._logger.setLevel(self._config.log_level)

    @property
    def config(self) -> APIConfig:
        """Get current configuration."""
        return self._config

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aenter__(self) -> 'AsyncAPIClient':
        """Async context manager entry."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure session is created and open."""
        if self._session is None or self._session.closed:
            self._connector = aiohttp.TCPConnector(
                **self._config.get_connector_kwargs()
            )
            self._session = aiohttp.ClientSession(
                connector=self._connector,
                **self._config.get_session_kwargs()
            )
        return self._session

    async def close(self):
        """Close client and release resources."""
        self._closed = True

        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

        if self._connector and not self._connector.closed:
            await self._connector.close()
            self._connector = None

    async def post_json(
        self,
        endpoint: str,
        payload: Dict[str, Any],
        cancel_token: Optional[CancellationToken] = None
    ) -> Dict[str, Any]:
        """
        POST a JSON body and unwrap the response envelope.

        Args:
            endpoint: Endpoint path (joined onto the base URL)
            payload: JSON-serializable request body
            cancel_token: Token that aborts the request when fired

        Returns:
            The envelope's ``data`` object

        Raises:
            APIError: On non-2xx status or ``success: false``
            MalformedResponseError: If the body is not a valid envelope
            CancellationError: If the token fires first
            aiohttp.ClientError, asyncio.TimeoutError: On network failure
        """
        self._logger.debug(f"POST {endpoint} {payload}")
        return await self._send(
            endpoint,
            cancel_token,
            json=payload
        )

    async def post_multipart(
        self,
        endpoint: str,
        fields: Dict[str, str],
        file_field: str,
        file_name: str,
        content: bytes,
        cancel_token: Optional[CancellationToken] = None
    ) -> Dict[str, Any]:
        """
        POST a multipart form with one binary part and unwrap the envelope.

        Args:
            endpoint: Endpoint path (joined onto the base URL)
            fields: Plain form fields
            file_field: Name of the binary part
            file_name: File name reported for the binary part
            content: Binary payload
            cancel_token: Token that aborts the request when fired

        Returns:
            The envelope's ``data`` object
        """
        form = aiohttp.FormData()
        for name, value in fields.items():
            form.add_field(name, str(value))
        form.add_field(
            file_field,
            content,
            filename=file_name,
            content_type='application/octet-stream'
        )

        self._logger.debug(f"POST {endpoint} multipart {fields} ({len(content)} bytes)")
        return await self._send(endpoint, cancel_token, data=form)

    async def _send(
        self,
        endpoint: str,
        cancel_token: Optional[CancellationToken],
        **kwargs
    ) -> Dict[str, Any]:
        """Send one request, optionally bound to a cancellation token."""
        if self._closed:
            raise RuntimeError("Client is closed")

        if cancel_token is None:
            return await self._request(endpoint, **kwargs)
        cancel_token.raise_if_cancelled()
        return await cancel_token.run(self._request(endpoint, **kwargs))

    async def _request(self, endpoint: str, **kwargs) -> Dict[str, Any]:
        session = await self._ensure_session()
        url = self._config.url_for(endpoint)

        async with session.post(
            url,
            **self._config.get_request_kwargs(),
            **kwargs
        ) as response:
            response_text = await response.text()
            self._logger.debug(
                f"Response {response.status} from {endpoint}: "
                f"{response_text[:300] if len(response_text) > 300 else response_text}"
            )
            return ResponseHandler.process_response(response.status, response_text)
