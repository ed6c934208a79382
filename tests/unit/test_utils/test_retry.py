"""Unit tests for the retry decorator and the conflict preset."""
from __future__ import annotations

import pytest

from treepath_service.core.database.exceptions import ConflictError, InvalidParentError
from treepath_service.utils.retry import (
    RetryError,
    RetryStrategy,
    is_retryable_conflict,
    retry,
    retry_on_conflict,
)


@pytest.mark.unit
class TestRetryDecorator:
    """Test suite for retry decorator."""

    @pytest.mark.asyncio
    async def test_retry_succeeds_first_attempt(self):
        call_count = 0

        @retry(max_attempts=3)
        async def successful_func():
            nonlocal call_count
            call_count += 1
            return "success"

        assert await successful_func() == "success"
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_retry_succeeds_after_retries(self):
        call_count = 0

        @retry(max_attempts=3, initial_delay=0.01, jitter=False)
        async def eventually_successful():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise ValueError("Not yet")
            return "success"

        assert await eventually_successful() == "success"
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_retry_fails_after_max_attempts(self):
        """RetryError keeps the last exception and the statistics."""

        @retry(max_attempts=3, initial_delay=0.01)
        async def always_fails():
            raise ValueError("Always fails")

        with pytest.raises(RetryError) as exc_info:
            await always_fails()

        assert "after 3 attempts" in str(exc_info.value)
        assert isinstance(exc_info.value.last_exception, ValueError)
        assert exc_info.value.statistics.exceptions == ["ValueError", "ValueError"]

    @pytest.mark.asyncio
    async def test_retry_only_retries_specified_exceptions(self):
        call_count = 0

        @retry(max_attempts=3, initial_delay=0.01, exceptions=(ValueError,))
        async def raises_type_error():
            nonlocal call_count
            call_count += 1
            raise TypeError("Not retryable")

        with pytest.raises(TypeError):
            await raises_type_error()

        assert call_count == 1

    @pytest.mark.asyncio
    async def test_on_retry_callback(self):
        seen = []

        @retry(max_attempts=2, initial_delay=0.01, on_retry=lambda exc, attempt: seen.append(attempt))
        async def always_fails():
            raise ValueError("nope")

        with pytest.raises(RetryError):
            await always_fails()

        assert seen == [1]


@pytest.mark.unit
class TestRetryStrategy:
    """Test suite for RetryStrategy."""

    def test_exponential_delay_is_capped(self):
        strategy = RetryStrategy(initial_delay=1.0, max_delay=5.0, jitter=False)

        assert [strategy.calculate_delay(n) for n in range(4)] == [1.0, 2.0, 4.0, 5.0]

    def test_jitter_stays_in_range(self):
        strategy = RetryStrategy(initial_delay=1.0, jitter_range=(0.5, 1.5))

        assert all(0.5 <= strategy.calculate_delay(0) <= 1.5 for _ in range(20))

    def test_requires_an_attempt(self):
        with pytest.raises(ValueError, match="max_attempts"):
            RetryStrategy(max_attempts=0)


@pytest.mark.unit
class TestRetryOnConflict:
    """Test suite for retry_on_conflict."""

    def test_is_retryable_conflict(self):
        assert is_retryable_conflict(ConflictError("serialization failure"))
        assert not is_retryable_conflict(InvalidParentError(1, 1, InvalidParentError.SELF_PARENT))
        assert not is_retryable_conflict(ValueError("x"))

    @pytest.mark.asyncio
    async def test_retries_conflicts_until_success(self):
        attempts = 0

        @retry_on_conflict(max_attempts=3, initial_delay=0.001, jitter=False)
        async def move():
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                raise ConflictError("could not serialize access")
            return "moved"

        assert await move() == "moved"
        assert attempts == 3

    @pytest.mark.asyncio
    async def test_hierarchy_errors_are_not_retried(self):
        attempts = 0

        @retry_on_conflict(max_attempts=3, initial_delay=0.001)
        async def move():
            nonlocal attempts
            attempts += 1
            raise InvalidParentError(4, 2, InvalidParentError.CYCLE)

        with pytest.raises(InvalidParentError):
            await move()

        assert attempts == 1

    @pytest.mark.asyncio
    async def test_gives_up_with_retry_error(self):
        @retry_on_conflict(max_attempts=2, initial_delay=0.001)
        async def move():
            raise ConflictError("deadlock detected")

        with pytest.raises(RetryError) as exc_info:
            await move()

        assert isinstance(exc_info.value.last_exception, ConflictError)
