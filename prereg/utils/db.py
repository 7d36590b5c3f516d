"""Async engine and sessions.

Services never commit on their own except ``RegistrationService`` (one
commit per registration attempt) and the claim route. Everything else runs
inside the request session, which commits once the route returns and rolls
back on any exception.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from prereg.config import Settings, get_settings


def engine_options(settings: Settings) -> dict[str, Any]:
    """Pool sizing for PostgreSQL; SQLite keeps SQLAlchemy's own pool."""
    if settings.database_url.startswith("sqlite"):
        return {}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": True,
    }


_settings = get_settings()
engine: AsyncEngine = create_async_engine(_settings.database_url, **engine_options(_settings))

# expire_on_commit=False: routes serialize users and claim rows after commit
async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session dependency."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Same contract as ``get_db`` for code outside a request (WebSocket, scripts)."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Fail startup early when the database is unreachable. Schema is Alembic's job."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def db_status() -> str:
    """``healthy`` or ``unhealthy: <reason>`` for /health."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        return f"unhealthy: {e}"
    return "healthy"


async def close_db() -> None:
    await engine.dispose()
