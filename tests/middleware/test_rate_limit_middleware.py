"""Per-IP throttling middleware tests."""

from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from prereg.middleware.rate_limit import RateLimitMiddleware


class CountingRedis:
    """Just enough of redis.asyncio.Redis for INCR/EXPIRE."""

    def __init__(self):
        self.counts: dict[str, int] = {}
        self.expiries: dict[str, int] = {}

    async def incr(self, key: str) -> int:
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key: str, seconds: int) -> bool:
        self.expiries[key] = seconds
        return True


def build_app(redis_getter) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, redis_getter=redis_getter)

    @app.post("/api/v1/auth/magic-link")
    async def magic_link():
        return {"ok": True}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return app


async def call(app: FastAPI, method: str, path: str, **kwargs):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        return await ac.request(method, path, **kwargs)


@pytest.mark.asyncio
async def test_limit_enforced_per_ip():
    redis = CountingRedis()
    app = build_app(lambda: redis)

    for remaining in (4, 3, 2, 1, 0):
        response = await call(app, "POST", "/api/v1/auth/magic-link")
        assert response.status_code == 200
        assert response.headers["X-RateLimit-Remaining"] == str(remaining)

    blocked = await call(app, "POST", "/api/v1/auth/magic-link")
    assert blocked.status_code == 429
    assert blocked.headers["Retry-After"] == "60"
    assert blocked.json()["error"]["code"] == "RATE_LIMIT_EXCEEDED"

    other_ip = await call(
        app, "POST", "/api/v1/auth/magic-link", headers={"X-Forwarded-For": "10.0.0.2, 10.0.0.1"}
    )
    assert other_ip.status_code == 200
    assert redis.expiries == {
        "ratelimit:127.0.0.1:/api/v1/auth/magic-link": 60,
        "ratelimit:10.0.0.2:/api/v1/auth/magic-link": 60,
    }


@pytest.mark.asyncio
async def test_skipped_without_redis():
    app = build_app(lambda: None)
    for _ in range(10):
        response = await call(app, "POST", "/api/v1/auth/magic-link")
        assert response.status_code == 200
        assert "X-RateLimit-Limit" not in response.headers


@pytest.mark.asyncio
async def test_health_not_throttled():
    redis = AsyncMock()
    app = build_app(lambda: redis)

    response = await call(app, "GET", "/health")

    assert response.status_code == 200
    redis.incr.assert_not_called()


@pytest.mark.asyncio
async def test_redis_failure_lets_request_through():
    redis = AsyncMock()
    redis.incr.side_effect = RedisConnectionError("down")
    app = build_app(lambda: redis)

    response = await call(app, "POST", "/api/v1/auth/magic-link")
    assert response.status_code == 200
