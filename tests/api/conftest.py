"""Test fixtures for API integration tests."""

from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from prereg.api.deps import get_auth_http_client
from prereg.main import app
from prereg.utils.db import get_db
from prereg.utils.http_client import AsyncHttpClient


@pytest.fixture
def provider_responses():
    """Status codes the fake auth provider answers with, in order (default 200)."""
    return []


@pytest_asyncio.fixture
async def auth_http_client(provider_responses) -> AsyncGenerator[AsyncHttpClient, None]:
    def handler(request: httpx.Request) -> httpx.Response:
        code = provider_responses.pop(0) if provider_responses else 200
        return httpx.Response(code, json={} if code < 400 else {"msg": "provider failure"})

    async with AsyncHttpClient(transport=httpx.MockTransport(handler)) as client:
        yield client


@pytest_asyncio.fixture
async def client(session_factory, auth_http_client) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app with the test database."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def override_get_auth_http_client() -> AsyncHttpClient:
        return auth_http_client

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_auth_http_client] = override_get_auth_http_client

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
