"""Tests for retry configuration and strategies."""
import asyncio

import aiohttp
import pytest

from chunkpy.core.api import APIError, RetryConfig, ExponentialBackoffStrategy
from chunkpy.core.cancellation import CancellationToken
from chunkpy.core.exceptions import (
    CancellationError,
    MalformedResponseError,
    SessionError
)


class TestRetryConfig:
    """Test suite for RetryConfig."""

    def test_default_delays(self):
        """Test retries wait 1s, 2s and 4s."""
        config = RetryConfig()

        assert [config.calculate_delay(k) for k in (1, 2, 3)] == [1.0, 2.0, 4.0]

    def test_first_attempt_has_no_delay(self):
        assert RetryConfig().calculate_delay(0) == 0.0

    def test_custom_base(self):
        config = RetryConfig(base_delay=0.5)
        assert config.calculate_delay(3) == 2.0

    def test_max_delay_caps(self):
        config = RetryConfig(base_delay=1.0, max_delay=3.0)
        assert config.calculate_delay(5) == 3.0

    def test_negative_values(self):
        with pytest.raises(ValueError):
            RetryConfig(max_retries=-1)
        with pytest.raises(ValueError):
            RetryConfig(base_delay=-1.0)


class TestExponentialBackoffStrategy:
    """Test suite for ExponentialBackoffStrategy."""

    @pytest.fixture
    def strategy(self):
        return ExponentialBackoffStrategy(RetryConfig(max_retries=3, base_delay=0.0))

    @pytest.mark.parametrize('error', [
        APIError(503),
        MalformedResponseError("bad envelope"),
        aiohttp.ClientConnectionError("reset"),
        asyncio.TimeoutError(),
    ])
    def test_retries_transport_errors(self, strategy, error):
        assert strategy.should_retry(error, 0)

    @pytest.mark.parametrize('error', [
        ValueError("bug"),
        SessionError("no session"),
        CancellationError(),
    ])
    def test_does_not_retry_other_errors(self, strategy, error):
        assert not strategy.should_retry(error, 0)

    def test_retry_budget(self, strategy):
        """Test retries stop once max_retries are spent."""
        assert strategy.should_retry(APIError(500), 2)
        assert not strategy.should_retry(APIError(500), 3)

    def test_max_retries(self, strategy):
        assert strategy.max_retries == 3

    @pytest.mark.asyncio
    async def test_wait_async_without_token(self, strategy):
        await strategy.wait_async(1)

    @pytest.mark.asyncio
    async def test_wait_async_interrupted_by_token(self):
        """Test a long backoff ends as soon as the token fires."""
        strategy = ExponentialBackoffStrategy(RetryConfig(base_delay=60.0))
        token = CancellationToken()

        async def fire():
            await asyncio.sleep(0.01)
            token.cancel()

        asyncio.get_running_loop().create_task(fire())

        with pytest.raises(CancellationError):
            await asyncio.wait_for(strategy.wait_async(1, token), 1)
