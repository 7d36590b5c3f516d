"""Per-IP request throttling for the public endpoints.

This is coarse flood protection in front of the API. Per-identity lockout
of magic-link attempts lives in ``prereg.services.rate_limit``.
"""

import logging
from typing import Callable

from fastapi import Request, Response
from redis.asyncio import Redis
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from prereg.utils.json_utils import ORJSONResponse

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Redis-based fixed-window rate limiting.

    Rate limits are defined per endpoint path as (max_requests, window_seconds).
    """

    RATE_LIMITS: dict[str, tuple[int, int]] = {
        "/api/v1/registrations": (10, 60),
        "/api/v1/auth/magic-link": (5, 60),
        "/api/v1/auth/callback": (10, 60),
        "/api/v1/rewards": (30, 60),
    }

    DEFAULT_LIMIT: tuple[int, int] = (100, 60)

    def __init__(self, app: Callable, redis_getter: Callable[[], Redis | None]):
        """Initialize rate limiter.

        Args:
            app: ASGI application
            redis_getter: Returns the shared Redis client, or None before
                startup (throttling is skipped while None)
        """
        super().__init__(app)
        self._redis_getter = redis_getter

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.headers.get("upgrade", "").lower() == "websocket":
            return await call_next(request)

        redis = self._redis_getter()
        if redis is None:
            return await call_next(request)

        path = request.url.path
        if path.startswith(("/ws", "/health", "/metrics", "/docs", "/redoc", "/openapi.json")):
            return await call_next(request)

        client_ip = self._get_client_ip(request)
        limit, window = self._get_limit_for_path(path)
        key = f"ratelimit:{client_ip}:{path}"

        try:
            current = await redis.incr(key)
            if current == 1:
                await redis.expire(key, window)
        except RedisError as e:
            # Throttling is best effort; the request proceeds
            logger.error("Rate limit check failed: %s", e)
            return await call_next(request)

        if current > limit:
            logger.warning(
                "Rate limit exceeded: %s on %s (%s/%s in %ss)",
                client_ip, path, current, limit, window,
            )
            return ORJSONResponse(
                status_code=429,
                content={
                    "error": {
                        "code": "RATE_LIMIT_EXCEEDED",
                        "message": "Too many requests. Please try again later.",
                        "details": {
                            "limit": limit,
                            "window": window,
                            "retryAfterSeconds": window,
                        },
                    }
                },
                headers={"Retry-After": str(window)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(max(0, limit - current))
        response.headers["X-RateLimit-Reset"] = str(window)
        return response

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP, honouring X-Forwarded-For."""
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    def _get_limit_for_path(self, path: str) -> tuple[int, int]:
        if path in self.RATE_LIMITS:
            return self.RATE_LIMITS[path]
        for pattern, limit in self.RATE_LIMITS.items():
            if path.startswith(pattern):
                return limit
        return self.DEFAULT_LIMIT
