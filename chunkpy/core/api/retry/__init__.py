"""Retry strategies using Strategy Pattern."""
from .retry_strategy import RetryStrategy, ExponentialBackoffStrategy, RETRYABLE_ERRORS

__all__ = [
    'RetryStrategy',
    'ExponentialBackoffStrategy',
    'RETRYABLE_ERRORS',
]
