"""Health endpoint tests."""

import pytest
from httpx import AsyncClient

from shortlinks.enums import HealthStatus


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == HealthStatus.HEALTHY.value
    assert data["database"] == HealthStatus.HEALTHY.value
    assert data["cache"] == HealthStatus.DISABLED.value


@pytest.mark.asyncio
async def test_metrics_exposed(client: AsyncClient) -> None:
    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "shortlinks_creation_requests" in response.text
