"""
Retry strategies for operations that settle asynchronously.

The browser reports a window's size only after the operating system has
applied a resize, so some operations have to be re-issued until the observed
result is acceptable.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, TypeVar

from .exceptions import RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RetryStrategy(ABC):
    """Abstract base class for retry strategies."""

    max_attempts: int

    @abstractmethod
    def get_delay_ms(self, attempt: int) -> int:
        """Calculate delay in milliseconds before the attempt after ``attempt``."""
        pass

    def should_retry(self, attempt: int) -> bool:
        """Determine if another attempt is allowed after ``attempt`` attempts."""
        return attempt < self.max_attempts


class FixedDelayStrategy(RetryStrategy):
    """Same delay between every attempt."""

    def __init__(self, max_attempts: int = 4, delay_ms: int = 0):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.delay_ms = delay_ms

    def get_delay_ms(self, attempt: int) -> int:
        return self.delay_ms


class LinearBackoffStrategy(RetryStrategy):
    """Linear backoff strategy."""

    def __init__(
        self,
        delay_increment_ms: int = 1000,
        max_delay_ms: int = 10000,
        max_attempts: int = 3
    ):
        self.delay_increment_ms = delay_increment_ms
        self.max_delay_ms = max_delay_ms
        self.max_attempts = max_attempts

    def get_delay_ms(self, attempt: int) -> int:
        """Calculate linear backoff delay."""
        delay = self.delay_increment_ms * attempt
        return min(delay, self.max_delay_ms)


async def retry_until(
    operation: Callable[[], Awaitable[T]],
    accept: Callable[[T], bool],
    strategy: RetryStrategy,
    operation_name: str = "operation",
) -> T:
    """
    Re-run an operation until its result is accepted.

    Args:
        operation: Async callable producing a result per attempt
        accept: Predicate deciding whether a result is good enough
        strategy: Decides the number of attempts and the delay between them
        operation_name: Name for logging

    Returns:
        The first accepted result

    Raises:
        RetryExhaustedError: If no attempt produced an accepted result. The
            last observed result is attached as ``last_result``.
    """
    attempt = 0
    while True:
        attempt += 1
        result = await operation()
        if accept(result):
            if attempt > 1:
                logger.debug(
                    f"{operation_name} succeeded after {attempt} attempts"
                )
            return result

        if not strategy.should_retry(attempt):
            logger.warning(
                f"Max attempts ({strategy.max_attempts}) reached for {operation_name}"
            )
            raise RetryExhaustedError(
                f"{operation_name} did not succeed after {attempt} attempts",
                operation=operation_name,
                attempts=attempt,
                last_result=result,
            )

        delay_ms = strategy.get_delay_ms(attempt)
        logger.info(
            f"Retrying {operation_name} after {delay_ms}ms "
            f"(attempt {attempt + 1})"
        )
        if delay_ms:
            await asyncio.sleep(delay_ms / 1000)
