"""
API configuration module.

Provides configuration for the upload API client: where the three upload
endpoints live, how connections are made, and how chunk retries back off.
"""
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Union
from urllib.parse import urljoin
import ssl

import aiohttp


@dataclass
class ProxyConfig:
    """HTTP(S) proxy that every request goes through."""
    url: str
    username: Optional[str] = None
    password: Optional[str] = None

    def auth(self) -> Optional[aiohttp.BasicAuth]:
        """Proxy credentials for aiohttp's ``proxy_auth``."""
        if self.username is None:
            return None
        return aiohttp.BasicAuth(self.username, self.password or '')


@dataclass
class SSLConfig:
    """TLS verification settings."""
    verify: bool = True

    def create_ssl_context(self) -> Union[ssl.SSLContext, bool]:
        """Create SSL context from configuration (False disables verification)."""
        if not self.verify:
            return False
        return ssl.create_default_context()


@dataclass
class TimeoutConfig:
    """
    Timeout configuration.

    A chunk may be close to 100 MB, so the total budget is generous.
    """
    total: float = 600.0
    connect: float = 30.0
    sock_read: float = 120.0

    def to_aiohttp_timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(
            total=self.total,
            connect=self.connect,
            sock_read=self.sock_read
        )


@dataclass
class RetryConfig:
    """
    Retry configuration for chunk transfers.

    With the defaults a chunk gets one attempt plus three retries, fired
    after 1s, 2s and 4s.
    """
    max_retries: int = 3
    base_delay: float = 1.0
    exponential_base: float = 2.0
    max_delay: Optional[float] = None

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        if self.base_delay < 0:
            raise ValueError("base_delay cannot be negative")

    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate the delay before retry number ``attempt``.

        Args:
            attempt: Retry number, starting at 1 for the second attempt

        Returns:
            Delay in seconds
        """
        if attempt < 1:
            return 0.0
        delay = self.base_delay * (self.exponential_base ** (attempt - 1))
        if self.max_delay is not None:
            return min(delay, self.max_delay)
        return delay


@dataclass
class EndpointConfig:
    """Paths of the three upload endpoints, relative to the base URL."""
    create: str = '/api/videos/tus/create'
    chunk: str = '/api/videos/tus/chunk'
    finalize: str = '/api/videos/tus/finalize'


@dataclass
class APIConfig:
    """
    Complete API configuration.

    Centralizes all configuration options for the upload API client.
    """
    base_url: str = 'http://localhost:8787'

    user_agent: str = 'chunkpy/1.0.0'

    keepalive: bool = True

    endpoints: EndpointConfig = field(default_factory=EndpointConfig)
    proxy: Optional[ProxyConfig] = None
    ssl: SSLConfig = field(default_factory=SSLConfig)
    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)

    # Opaque credentials; authentication itself is the server's business
    extra_headers: Dict[str, str] = field(default_factory=dict)
    cookies: Dict[str, str] = field(default_factory=dict)

    log_level: int = 20  # logging.INFO

    limit_per_host: int = 4
    limit: int = 16

    def url_for(self, path: str) -> str:
        """Join an endpoint path onto the base URL."""
        base = self.base_url if self.base_url.endswith('/') else self.base_url + '/'
        return urljoin(base, path.lstrip('/'))

    def get_connector_kwargs(self) -> Dict[str, Any]:
        """Get kwargs for aiohttp TCPConnector."""
        return {
            'limit': self.limit,
            'limit_per_host': self.limit_per_host,
            'ssl': self.ssl.create_ssl_context(),
            'force_close': not self.keepalive,
        }

    def get_session_kwargs(self) -> Dict[str, Any]:
        """Get kwargs for aiohttp ClientSession."""
        headers = {
            'User-Agent': self.user_agent,
            **self.extra_headers
        }

        return {
            'headers': headers,
            'cookies': dict(self.cookies),
            'timeout': self.timeout.to_aiohttp_timeout(),
        }

    def get_request_kwargs(self) -> Dict[str, Any]:
        """Get per-request kwargs for ClientSession.post (proxy settings)."""
        if self.proxy is None:
            return {}
        return {'proxy': self.proxy.url, 'proxy_auth': self.proxy.auth()}
