"""Per-identity attempt limiter for magic-link sign-in.

State per key (normally the normalised email)::

    Clear --fail--> Tracked(1, t) --fail--> ... --fail--> Tracked(max, t) == Locked(t + lockout)
      ^                                                        |
      +------------- success, or lockout elapsed --------------+

A key is locked while it has ``max_attempts`` or more recorded failures and
the last one is younger than the lockout window. Expiry is lazy: a stale
entry is dropped the next time the key is touched. Redis keys also carry a
TTL equal to the lockout window so abandoned keys disappear on their own.
"""

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from redis.asyncio import Redis

from prereg.config import Settings, get_settings
from prereg.middleware.prometheus import record_auth_lockout
from prereg.utils.errors import RateLimitExceededError
from prereg.utils.redis_client import get_redis_client

logger = logging.getLogger(__name__)

KEY_PREFIX = "auth_attempts"


class LimiterState(str, Enum):
    CLEAR = "clear"
    TRACKED = "tracked"
    LOCKED = "locked"


@dataclass(frozen=True)
class AttemptRecord:
    count: int
    last_attempt: float


@dataclass(frozen=True)
class LimiterStatus:
    state: LimiterState
    attempts: int = 0
    retry_after_seconds: int = 0


class AttemptStore(Protocol):
    async def get(self, key: str, now: float) -> AttemptRecord | None: ...

    async def increment(self, key: str, now: float, ttl_seconds: int) -> AttemptRecord: ...

    async def delete(self, key: str) -> None: ...


class InMemoryAttemptStore:
    """Process-local store. State is lost on restart and not shared."""

    def __init__(self):
        self._records: dict[str, tuple[AttemptRecord, float]] = {}

    async def get(self, key: str, now: float) -> AttemptRecord | None:
        entry = self._records.get(key)
        if entry is None:
            return None
        record, expires_at = entry
        if now >= expires_at:
            del self._records[key]
            return None
        return record

    async def increment(self, key: str, now: float, ttl_seconds: int) -> AttemptRecord:
        current = await self.get(key, now)
        record = AttemptRecord(count=(current.count if current else 0) + 1, last_attempt=now)
        self._records[key] = (record, now + ttl_seconds)
        return record

    async def delete(self, key: str) -> None:
        self._records.pop(key, None)

    def clear(self) -> None:
        self._records.clear()


class RedisAttemptStore:
    """Shared store: one hash per key with ``count`` and ``last`` fields."""

    def __init__(self, redis_client: Redis, prefix: str = KEY_PREFIX):
        self.redis = redis_client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def get(self, key: str, now: float) -> AttemptRecord | None:
        data = await self.redis.hgetall(self._key(key))
        if not data:
            return None
        return AttemptRecord(count=int(data["count"]), last_attempt=float(data["last"]))

    async def increment(self, key: str, now: float, ttl_seconds: int) -> AttemptRecord:
        redis_key = self._key(key)
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.hincrby(redis_key, "count", 1)
            pipe.hset(redis_key, "last", repr(now))
            pipe.expire(redis_key, ttl_seconds)
            count, _, _ = await pipe.execute()
        return AttemptRecord(count=int(count), last_attempt=now)

    async def delete(self, key: str) -> None:
        await self.redis.delete(self._key(key))


class AttemptRateLimiter:
    """로그인 시도 제한 (이메일 단위)"""

    def __init__(
        self,
        store: AttemptStore,
        max_attempts: int | None = None,
        lockout_seconds: int | None = None,
        clock: Callable[[], float] = time.time,
    ):
        settings = get_settings()
        self.store = store
        self.max_attempts = max_attempts or settings.auth_max_attempts
        self.lockout_seconds = lockout_seconds or settings.auth_lockout_seconds
        self._clock = clock

    async def get_status(self, key: str) -> LimiterStatus:
        """Current state of ``key``; drops the entry once the window has passed."""
        now = self._clock()
        record = await self.store.get(key, now)
        if record is None:
            return LimiterStatus(state=LimiterState.CLEAR)

        elapsed = now - record.last_attempt
        if elapsed >= self.lockout_seconds:
            await self.store.delete(key)
            return LimiterStatus(state=LimiterState.CLEAR)

        if record.count >= self.max_attempts:
            return LimiterStatus(
                state=LimiterState.LOCKED,
                attempts=record.count,
                retry_after_seconds=math.ceil(self.lockout_seconds - elapsed),
            )
        return LimiterStatus(state=LimiterState.TRACKED, attempts=record.count)

    async def check_rate_limit(self, key: str) -> None:
        """Raise while ``key`` is locked; pass silently otherwise.

        Raises:
            RateLimitExceededError: with the remaining lockout time
        """
        status = await self.get_status(key)
        if status.state is LimiterState.LOCKED:
            raise RateLimitExceededError(status.retry_after_seconds)

    async def record_attempt(self, key: str, success: bool) -> LimiterStatus:
        """Apply one attempt. Success clears the key; failure counts toward a lock."""
        if success:
            await self.store.delete(key)
            return LimiterStatus(state=LimiterState.CLEAR)

        # Lazily expire a stale entry before counting
        await self.get_status(key)
        record = await self.store.increment(key, self._clock(), self.lockout_seconds)

        if record.count >= self.max_attempts:
            if record.count == self.max_attempts:
                record_auth_lockout()
                logger.warning(
                    "Identity locked after %d failed attempts for %ds: %s",
                    record.count, self.lockout_seconds, key,
                )
            return LimiterStatus(
                state=LimiterState.LOCKED,
                attempts=record.count,
                retry_after_seconds=self.lockout_seconds,
            )
        return LimiterStatus(state=LimiterState.TRACKED, attempts=record.count)

    async def reset(self, key: str) -> None:
        await self.store.delete(key)


def create_rate_limiter(
    redis_client: Redis | None = None,
    settings: Settings | None = None,
) -> AttemptRateLimiter:
    """Limiter on the configured backend.

    The Redis backend is used when ``rate_limit_backend`` is ``redis`` and a
    client is available; otherwise state is kept in-process.
    """
    settings = settings or get_settings()
    if settings.rate_limit_backend == "redis" and redis_client is not None:
        store: AttemptStore = RedisAttemptStore(redis_client)
    else:
        if settings.rate_limit_backend == "redis":
            logger.warning("Redis unavailable; auth attempt limits are process-local")
        store = InMemoryAttemptStore()
    return AttemptRateLimiter(
        store,
        max_attempts=settings.auth_max_attempts,
        lockout_seconds=settings.auth_lockout_seconds,
    )


# Application-wide limiter; the in-memory backend only works as a singleton
_limiter: AttemptRateLimiter | None = None


def get_rate_limiter() -> AttemptRateLimiter:
    global _limiter
    if _limiter is None:
        _limiter = create_rate_limiter(get_redis_client())
    return _limiter


def set_rate_limiter(limiter: AttemptRateLimiter | None) -> None:
    global _limiter
    _limiter = limiter
