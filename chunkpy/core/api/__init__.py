"""Upload API module: transport, configuration, errors, retry and events."""
from .errors import APIError, describe_status
from .events import EventEmitter
from .config import APIConfig, EndpointConfig, ProxyConfig, SSLConfig, TimeoutConfig, RetryConfig
from .retry import RetryStrategy, ExponentialBackoffStrategy, RETRYABLE_ERRORS
from .request import ResponseHandler
from .async_client import AsyncAPIClient

__all__ = [
    # Client
    'AsyncAPIClient',
    'ResponseHandler',

    # Configuration
    'APIConfig',
    'EndpointConfig',
    'ProxyConfig',
    'SSLConfig',
    'TimeoutConfig',
    'RetryConfig',

    # Retry
    'RetryStrategy',
    'ExponentialBackoffStrategy',
    'RETRYABLE_ERRORS',

    # Errors
    'APIError',
    'describe_status',

    # Events
    'EventEmitter',
]
