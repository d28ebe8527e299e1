"""
Retries for batch API calls.

Chat completions, model listing and image calls are retried on rate limits,
server errors and transport failures with exponential backoff. A
``Retry-After`` header on a 429 replaces the computed delay. Streams are not
retried once output has started.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Optional, TypeVar

from .errors import (
    FerriteError,
    classify_error,
    get_retry_delay,
    is_retryable_error,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class RetryConfig:
    """Backoff parameters; ``max_attempts`` comes from the ``max_retries`` setting."""
    max_attempts: int = 3
    initial_delay_ms: int = 1000
    max_delay_ms: int = 30000
    backoff_multiplier: float = 2.0
    jitter: bool = True
    jitter_range: float = 0.1


@dataclass
class RetryStats:
    """What happened during the last ``RetryManager.retry`` call."""
    attempts: int = 0
    waited_ms: int = 0
    failures: Dict[str, int] = field(default_factory=dict)

    def record_failure(self, error: FerriteError) -> None:
        name = type(error).__name__
        self.failures[name] = self.failures.get(name, 0) + 1


class RetryManager:
    """Runs an async call until it succeeds, fails for good or runs out of attempts."""

    def __init__(self, config: Optional[RetryConfig] = None):
        self.config = config or RetryConfig()
        self.last_stats = RetryStats()

    async def retry(self, func: Callable[[], Awaitable[T]], *, operation: str = "request") -> T:
        """
        Await ``func`` with retries.

        Raises:
            FerriteError: the classified error of the last attempt
        """
        stats = RetryStats()
        self.last_stats = stats

        for attempt in range(1, self.config.max_attempts + 1):
            stats.attempts = attempt
            try:
                result = await func()
            except Exception as e:
                error = classify_error(e)
                stats.record_failure(error)
                if attempt >= self.config.max_attempts or not is_retryable_error(error):
                    logger.debug(f"{operation} failed after {attempt} attempt(s): {error}")
                    raise error from e

                delay_ms = self.delay_for(attempt, error)
                logger.info(
                    f"{operation} attempt {attempt}/{self.config.max_attempts} failed: {error}; "
                    f"retrying in {delay_ms}ms"
                )
                stats.waited_ms += delay_ms
                await asyncio.sleep(delay_ms / 1000.0)
            else:
                if attempt > 1:
                    logger.info(f"{operation} succeeded on attempt {attempt}")
                return result

        raise FerriteError(f"{operation} was not attempted")

    def delay_for(self, attempt: int, error: Optional[FerriteError] = None) -> int:
        """Milliseconds to wait after the given 1-based failed attempt."""
        retry_after = get_retry_delay(error) if error is not None else None
        if retry_after:
            return min(retry_after * 1000, self.config.max_delay_ms)

        delay = self.config.initial_delay_ms * self.config.backoff_multiplier ** (attempt - 1)
        if self.config.jitter:
            spread = delay * self.config.jitter_range
            delay += random.uniform(-spread, spread)
        return int(max(0, min(delay, self.config.max_delay_ms)))
