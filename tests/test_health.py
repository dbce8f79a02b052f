"""Health endpoint tests."""

import pytest

from runlens import __version__


@pytest.mark.asyncio
async def test_health_returns_ok(client):
    """Health endpoint should report server, store, and version."""
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["server"] == "ok"
    assert data["store"] == "ok"
    assert data["version"] == __version__
