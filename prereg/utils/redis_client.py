"""Shared Redis connection.

Two consumers: the magic-link attempt limiter (hash keys with a TTL) and the
live registration feed (one pub/sub channel). Both take the client from
``get_redis_client()`` and fall back to in-process state while it is None,
so the service still runs when Redis is down at startup.
"""

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from prereg.config import Settings, get_settings

_pool: ConnectionPool | None = None
_client: Redis | None = None


def build_pool(settings: Settings) -> ConnectionPool:
    # decode_responses: limiter hashes and feed messages are read back as str
    return ConnectionPool.from_url(
        settings.redis_url,
        max_connections=settings.redis_max_connections,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_connect_timeout,
        health_check_interval=settings.redis_health_check_interval,
        retry_on_timeout=True,
        decode_responses=True,
    )


async def init_redis(settings: Settings | None = None) -> Redis:
    """Open the pool and verify the server answers.

    Raises:
        RedisError / OSError: server unreachable; the caller decides whether
            to continue without Redis
    """
    global _pool, _client
    _pool = build_pool(settings or get_settings())
    _client = Redis(connection_pool=_pool)
    await _client.ping()
    return _client


async def close_redis() -> None:
    global _pool, _client
    if _client is not None:
        await _client.aclose()
        _client = None
    if _pool is not None:
        await _pool.disconnect()
        _pool = None


def get_redis_client() -> Redis | None:
    """The shared client, or None before startup or after a failed connect."""
    return _client


async def redis_status() -> str:
    """``healthy``, ``not initialized`` or ``unhealthy: <reason>`` for /health."""
    if _client is None:
        return "not initialized"
    try:
        await _client.ping()
    except (RedisError, OSError) as e:
        return f"unhealthy: {e}"
    return "healthy"
