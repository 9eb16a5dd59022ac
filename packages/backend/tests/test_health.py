"""Health endpoint tests."""

import pytest


@pytest.mark.asyncio
async def test_health_reports_server_and_subscribers(client, hub):
    hub.register().activate()

    resp = await client.get("/api/v1/health")

    assert resp.status_code == 200
    data = resp.json()
    assert data["server"] == "ok"
    assert "version" in data
    assert data["subscribers"] == 1
    assert data["status"] in ("healthy", "degraded")
