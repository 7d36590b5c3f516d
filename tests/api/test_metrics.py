"""Prometheus exposition tests."""

import pytest


@pytest.mark.asyncio
async def test_metrics_exposed(client):
    await client.get("/api/v1/stats")

    response = await client.get("/metrics")

    assert response.status_code == 200
    assert "prereg_app_info" in response.text
    assert 'app_name="prereg"' in response.text
    assert "prereg_http_requests_inprogress" in response.text
