"""
Unit tests for retry strategies and retry_until.
"""

import pytest
from unittest.mock import AsyncMock, patch

from snapcheck.error_handling.exceptions import RetryExhaustedError
from snapcheck.error_handling.recovery import (
    FixedDelayStrategy,
    LinearBackoffStrategy,
    retry_until,
)


class TestFixedDelayStrategy:
    """Test fixed delay strategy."""

    def test_delay_is_constant(self):
        strategy = FixedDelayStrategy(max_attempts=4, delay_ms=250)

        assert strategy.get_delay_ms(1) == 250
        assert strategy.get_delay_ms(3) == 250

    def test_should_retry(self):
        strategy = FixedDelayStrategy(max_attempts=4)

        assert strategy.should_retry(1) is True
        assert strategy.should_retry(3) is True
        assert strategy.should_retry(4) is False

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            FixedDelayStrategy(max_attempts=0)


class TestLinearBackoffStrategy:
    """Test linear backoff strategy."""

    def test_delay_calculation(self):
        strategy = LinearBackoffStrategy(delay_increment_ms=500, max_delay_ms=2000)

        assert strategy.get_delay_ms(1) == 500
        assert strategy.get_delay_ms(2) == 1000
        assert strategy.get_delay_ms(10) == 2000


class TestRetryUntil:
    """Test retry_until helper."""

    @pytest.mark.asyncio
    async def test_returns_first_accepted_result(self):
        operation = AsyncMock(side_effect=[1, 2, 3])

        result = await retry_until(
            operation, lambda value: value == 2, FixedDelayStrategy(max_attempts=4)
        )

        assert result == 2
        assert operation.await_count == 2

    @pytest.mark.asyncio
    async def test_exhaustion_carries_last_result(self):
        operation = AsyncMock(side_effect=[1, 2, 3, 4, 5])

        with pytest.raises(RetryExhaustedError) as exc_info:
            await retry_until(
                operation,
                lambda value: value > 10,
                FixedDelayStrategy(max_attempts=4),
                operation_name="resize",
            )

        assert operation.await_count == 4
        assert exc_info.value.attempts == 4
        assert exc_info.value.last_result == 4
        assert exc_info.value.operation == "resize"

    @pytest.mark.asyncio
    async def test_waits_between_attempts(self):
        operation = AsyncMock(side_effect=[False, True])

        with patch("snapcheck.error_handling.recovery.asyncio.sleep", new=AsyncMock()) as sleep:
            await retry_until(
                operation, bool, FixedDelayStrategy(max_attempts=2, delay_ms=300)
            )

        sleep.assert_awaited_once_with(0.3)

    @pytest.mark.asyncio
    async def test_operation_errors_propagate(self):
        operation = AsyncMock(side_effect=RuntimeError("browser gone"))

        with pytest.raises(RuntimeError, match="browser gone"):
            await retry_until(operation, bool, FixedDelayStrategy())
