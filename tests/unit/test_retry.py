"""Tests for the retry manager."""

import logging
from unittest.mock import AsyncMock

import pytest

from ferrite.core.client.errors import (
    AuthenticationError,
    FerriteError,
    QuotaExceededError,
    ServerError,
)
from ferrite.core.client.retry import RetryConfig, RetryManager


def fast_config(**overrides) -> RetryConfig:
    values = dict(max_attempts=3, initial_delay_ms=0, jitter=False)
    values.update(overrides)
    return RetryConfig(**values)


class TestRetryManager:
    @pytest.mark.asyncio
    async def test_success_first_attempt(self) -> None:
        func = AsyncMock(return_value="ok")
        manager = RetryManager(fast_config())

        assert await manager.retry(func) == "ok"
        assert func.await_count == 1
        assert manager.last_stats.attempts == 1

    @pytest.mark.asyncio
    async def test_retryable_error_is_retried(self) -> None:
        func = AsyncMock(side_effect=[ServerError("down"), ServerError("down"), "ok"])
        manager = RetryManager(fast_config())

        assert await manager.retry(func, operation="chat completion") == "ok"
        assert func.await_count == 3
        assert manager.last_stats.failures == {"ServerError": 2}

    @pytest.mark.asyncio
    async def test_non_retryable_error_is_raised_immediately(self) -> None:
        func = AsyncMock(side_effect=AuthenticationError("bad key"))
        manager = RetryManager(fast_config())

        with pytest.raises(AuthenticationError):
            await manager.retry(func)
        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_final_failure_is_not_logged_as_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        manager = RetryManager(fast_config())

        with caplog.at_level(logging.DEBUG, logger="ferrite.core.client.retry"):
            with pytest.raises(AuthenticationError):
                await manager.retry(AsyncMock(side_effect=AuthenticationError("bad key")))

        assert caplog.records
        assert all(record.levelno < logging.WARNING for record in caplog.records)

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self) -> None:
        func = AsyncMock(side_effect=ServerError("down"))
        manager = RetryManager(fast_config(max_attempts=2))

        with pytest.raises(ServerError):
            await manager.retry(func)
        assert func.await_count == 2

    @pytest.mark.asyncio
    async def test_unknown_exceptions_are_classified(self) -> None:
        func = AsyncMock(side_effect=RuntimeError("connection reset"))
        manager = RetryManager(fast_config(max_attempts=1))

        with pytest.raises(FerriteError) as exc_info:
            await manager.retry(func)
        assert exc_info.value.message == "connection reset"


class TestDelays:
    def test_exponential_backoff_is_capped(self) -> None:
        manager = RetryManager(RetryConfig(initial_delay_ms=100, jitter=False, max_delay_ms=1000))
        assert [manager.delay_for(attempt) for attempt in (1, 2, 3, 4, 5)] == [100, 200, 400, 800, 1000]

    def test_retry_after_replaces_backoff(self) -> None:
        manager = RetryManager(RetryConfig(initial_delay_ms=100, jitter=False, max_delay_ms=10000))
        assert manager.delay_for(1, QuotaExceededError("slow down", retry_after=3)) == 3000

    def test_jitter_stays_in_range(self) -> None:
        manager = RetryManager(RetryConfig(initial_delay_ms=1000, jitter_range=0.1))
        for _ in range(20):
            assert 900 <= manager.delay_for(1) <= 1100
