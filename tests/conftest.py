"""Shared test fixtures.

Settings are read at import time by ``prereg.utils.db``, so the environment
is pinned before anything from ``prereg`` is imported.
"""

import os

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("APP_DEBUG", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6399/15")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("AUTH_PROVIDER_URL", "https://auth.example.test")
os.environ.setdefault("AUTH_PROVIDER_ANON_KEY", "test-anon-key")
os.environ.setdefault("SENTRY_DSN", "")
os.environ.setdefault("ENABLE_METRICS", "true")

from collections.abc import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from prereg.models import DEFAULT_REWARD_TIERS, Base, RewardTier  # noqa: E402
from prereg.services.live_feed import set_registration_feed  # noqa: E402
from prereg.services.rate_limit import set_rate_limiter  # noqa: E402


@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def reward_tiers(session_factory) -> list[RewardTier]:
    """Default tier catalogue (bronze 1-2, silver 3-4, gold 5-9, platinum 10-19, legendary 20+)."""
    async with session_factory() as session:
        tiers = [RewardTier(**tier) for tier in DEFAULT_REWARD_TIERS]
        session.add_all(tiers)
        await session.commit()
    return tiers


@pytest.fixture(autouse=True)
def reset_singletons():
    """Drop the process-wide feed and limiter between tests."""
    set_registration_feed(None)
    set_rate_limiter(None)
    yield
    set_registration_feed(None)
    set_rate_limiter(None)
