"""Retry strategies using Strategy Pattern."""
import asyncio
from abc import ABC, abstractmethod
from typing import Optional

import aiohttp

from ..config import RetryConfig
from ..errors import APIError
from ...cancellation import CancellationToken
from ...exceptions import MalformedResponseError

# Transport-level failures worth another attempt
RETRYABLE_ERRORS = (
    APIError,
    MalformedResponseError,
    aiohttp.ClientError,
    asyncio.TimeoutError,
)


class RetryStrategy(ABC):
    """Abstract retry strategy."""

    @property
    @abstractmethod
    def max_retries(self) -> int:
        """Number of retries allowed after the first attempt."""
        pass

    @abstractmethod
    def should_retry(self, error: BaseException, retry_count: int) -> bool:
        """Determines if a failed attempt should be retried."""
        pass

    @abstractmethod
    def calculate_delay(self, retry_count: int) -> float:
        """Returns the delay before retry number ``retry_count`` (1-based)."""
        pass

    async def wait_async(
        self,
        retry_count: int,
        cancel_token: Optional[CancellationToken] = None
    ) -> None:
        """Waits before retry, waking early if the token fires."""
        delay = self.calculate_delay(retry_count)
        if cancel_token is not None:
            await cancel_token.sleep(delay)
        elif delay > 0:
            await asyncio.sleep(delay)


class ExponentialBackoffStrategy(RetryStrategy):
    """
    Exponential backoff retry strategy.

    Retry k waits ``base_delay * exponential_base ** (k - 1)`` seconds, so the
    default config fires attempts immediately, then after 1s, 2s and 4s.
    """

    def __init__(self, config: Optional[RetryConfig] = None):
        self._config = config or RetryConfig()

    @property
    def config(self) -> RetryConfig:
        return self._config

    @property
    def max_retries(self) -> int:
        return self._config.max_retries

    def should_retry(self, error: BaseException, retry_count: int) -> bool:
        """Retries transport failures until the retry budget is spent."""
        return isinstance(error, RETRYABLE_ERRORS) and retry_count < self._config.max_retries

    def calculate_delay(self, retry_count: int) -> float:
        return self._config.calculate_delay(retry_count)
