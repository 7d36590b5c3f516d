"""Tests for the per-identity attempt limiter."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from prereg.config import Settings
from prereg.services.rate_limit import (
    AttemptRateLimiter,
    InMemoryAttemptStore,
    LimiterState,
    RedisAttemptStore,
    create_rate_limiter,
)
from prereg.utils.errors import RateLimitExceededError

EMAIL = "alice@example.com"


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return AttemptRateLimiter(
        InMemoryAttemptStore(),
        max_attempts=5,
        lockout_seconds=15 * 60,
        clock=clock,
    )


class TestAttemptRateLimiter:

    @pytest.mark.asyncio
    async def test_clear_by_default(self, limiter):
        status = await limiter.get_status(EMAIL)
        assert status.state is LimiterState.CLEAR
        await limiter.check_rate_limit(EMAIL)

    @pytest.mark.asyncio
    async def test_locks_after_max_failures(self, limiter, clock):
        for attempt in range(1, 5):
            status = await limiter.record_attempt(EMAIL, success=False)
            assert status.state is LimiterState.TRACKED
            assert status.attempts == attempt
            await limiter.check_rate_limit(EMAIL)
            clock.advance(10)

        status = await limiter.record_attempt(EMAIL, success=False)
        assert status.state is LimiterState.LOCKED

        with pytest.raises(RateLimitExceededError) as exc_info:
            await limiter.check_rate_limit(EMAIL)
        assert exc_info.value.retry_after_seconds == 15 * 60
        assert exc_info.value.retry_after_minutes == 15

    @pytest.mark.asyncio
    async def test_retry_after_counts_down(self, limiter, clock):
        for _ in range(5):
            await limiter.record_attempt(EMAIL, success=False)
        clock.advance(14 * 60 + 30)

        with pytest.raises(RateLimitExceededError) as exc_info:
            await limiter.check_rate_limit(EMAIL)
        assert exc_info.value.retry_after_seconds == 30
        assert exc_info.value.retry_after_minutes == 1

    @pytest.mark.asyncio
    async def test_lock_expires(self, limiter, clock):
        for _ in range(5):
            await limiter.record_attempt(EMAIL, success=False)
        clock.advance(15 * 60)

        await limiter.check_rate_limit(EMAIL)
        assert (await limiter.get_status(EMAIL)).state is LimiterState.CLEAR

        status = await limiter.record_attempt(EMAIL, success=False)
        assert status.attempts == 1

    @pytest.mark.asyncio
    async def test_success_clears_history(self, limiter):
        for _ in range(4):
            await limiter.record_attempt(EMAIL, success=False)
        await limiter.record_attempt(EMAIL, success=True)

        assert (await limiter.get_status(EMAIL)).state is LimiterState.CLEAR
        status = await limiter.record_attempt(EMAIL, success=False)
        assert status.attempts == 1

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, limiter):
        for _ in range(5):
            await limiter.record_attempt(EMAIL, success=False)
        await limiter.check_rate_limit("bob@example.com")

    @pytest.mark.asyncio
    async def test_reset(self, limiter):
        for _ in range(5):
            await limiter.record_attempt(EMAIL, success=False)
        await limiter.reset(EMAIL)
        await limiter.check_rate_limit(EMAIL)


class TestRedisAttemptStore:

    @pytest.fixture
    def redis(self):
        client = MagicMock()
        pipe = MagicMock()
        pipe.execute = AsyncMock(return_value=[3, 1, True])
        client.pipeline.return_value.__aenter__.return_value = pipe
        client.hgetall = AsyncMock(return_value={"count": "2", "last": "1000.5"})
        client.delete = AsyncMock()
        client.pipe = pipe
        return client

    @pytest.mark.asyncio
    async def test_get(self, redis):
        record = await RedisAttemptStore(redis).get(EMAIL, 1001.0)
        redis.hgetall.assert_awaited_once_with(f"auth_attempts:{EMAIL}")
        assert record.count == 2
        assert record.last_attempt == 1000.5

    @pytest.mark.asyncio
    async def test_get_missing(self, redis):
        redis.hgetall = AsyncMock(return_value={})
        assert await RedisAttemptStore(redis).get(EMAIL, 1001.0) is None

    @pytest.mark.asyncio
    async def test_increment_sets_ttl(self, redis):
        record = await RedisAttemptStore(redis).increment(EMAIL, 1002.0, 900)

        redis.pipeline.assert_called_once_with(transaction=True)
        redis.pipe.hincrby.assert_called_once_with(f"auth_attempts:{EMAIL}", "count", 1)
        redis.pipe.expire.assert_called_once_with(f"auth_attempts:{EMAIL}", 900)
        assert record.count == 3
        assert record.last_attempt == 1002.0

    @pytest.mark.asyncio
    async def test_delete(self, redis):
        await RedisAttemptStore(redis).delete(EMAIL)
        redis.delete.assert_awaited_once_with(f"auth_attempts:{EMAIL}")


class TestCreateRateLimiter:

    def test_memory_backend(self):
        limiter = create_rate_limiter(MagicMock(), Settings(rate_limit_backend="memory"))
        assert isinstance(limiter.store, InMemoryAttemptStore)

    def test_redis_backend(self):
        limiter = create_rate_limiter(MagicMock(), Settings(rate_limit_backend="redis"))
        assert isinstance(limiter.store, RedisAttemptStore)

    def test_redis_backend_without_client_falls_back(self):
        limiter = create_rate_limiter(None, Settings(rate_limit_backend="redis"))
        assert isinstance(limiter.store, InMemoryAttemptStore)
