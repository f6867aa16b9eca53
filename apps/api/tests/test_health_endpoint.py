import pytest
from httpx import ASGITransport, AsyncClient


@pytest.mark.asyncio
async def test_readyz_reports_component_statuses(app_with_db) -> None:
    app, _ = app_with_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/api/v1/health/readyz")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] in {"ready", "degraded", "error"}
    components = payload["components"]
    assert components["database"]["status"] == "ready"
    assert "job_scheduler" in components
    assert "messaging_channels" in components
    sweep_component = components["expiration_sweep"]
    assert sweep_component["status"] == "ready"
    assert sweep_component["metadata"]["running"] is False
    assert sweep_component["metadata"]["last_summary"] is None


@pytest.mark.asyncio
async def test_healthz_endpoints(app_with_db) -> None:
    app, _ = app_with_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        root = await client.get("/healthz")
        versioned = await client.get("/api/v1/health/healthz")

    assert root.status_code == 200
    assert root.json()["status"] == "ok"
    assert versioned.json() == {"status": "ok"}
