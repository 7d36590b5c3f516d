"""Health endpoint tests."""

import pytest


@pytest.mark.asyncio
async def test_health_without_redis(client):
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["services"]["database"] == "healthy"
    assert data["services"]["redis"] == "not initialized"
    assert data["version"]


@pytest.mark.asyncio
async def test_request_id_echoed(client):
    response = await client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
