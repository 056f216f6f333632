"""Integration tests for GET /api/monthly-production."""

from unittest.mock import AsyncMock

import httpx
import pytest

from elportal.dependencies import get_production_service
from elportal.main import app
from elportal.services.production_service import ProductionDataService

PAYLOAD = {"total": 2, "records": [{"HourUTC": "2024-06-15T00:00:00"}]}


@pytest.fixture
def upstream() -> AsyncMock:
    client = AsyncMock()
    client.fetch_production.return_value = PAYLOAD
    return client


@pytest.fixture
def production_service(memory_store, upstream, clock):
    """Fresh service per test so the in-process cache starts empty."""
    service = ProductionDataService(memory_store, upstream, clock=clock)
    app.dependency_overrides[get_production_service] = lambda: service
    return service


@pytest.mark.asyncio
@pytest.mark.usefixtures("production_service")
async def test_miss_then_kv_hit(client, upstream):
    """Test X-Cache on a cold and a warm request."""
    first = await client.get("/api/monthly-production")
    second = await client.get("/api/monthly-production")

    assert first.status_code == 200
    assert first.json() == PAYLOAD
    assert first.headers["x-cache"] == "MISS"
    assert first.headers["cache-control"] == (
        "public, s-maxage=86400, stale-while-revalidate=172800"
    )
    assert second.headers["x-cache"] == "HIT-KV"
    assert upstream.fetch_production.await_count == 1


@pytest.mark.asyncio
@pytest.mark.usefixtures("production_service")
async def test_query_parameters_are_ignored(client, upstream):
    response = await client.get("/api/monthly-production", params={"start": "2020-01-01"})

    assert response.status_code == 200
    start, end = upstream.fetch_production.await_args.args
    assert start != "2020-01-01"


@pytest.mark.asyncio
@pytest.mark.usefixtures("production_service")
async def test_upstream_failure_returns_500_body(client, upstream):
    """Test the error body when the upstream call fails."""
    request = httpx.Request("GET", "https://api.energidataservice.dk/dataset/x")
    upstream.fetch_production.side_effect = httpx.HTTPStatusError(
        "Server error '500 Internal Server Error'",
        request=request,
        response=httpx.Response(500, request=request),
    )

    response = await client.get("/api/monthly-production")

    assert response.status_code == 500
    assert response.json() == {
        "error": "Failed to fetch production data",
        "details": "Upstream responded with status 500",
    }
    assert "energidataservice" not in response.text


@pytest.mark.asyncio
@pytest.mark.usefixtures("production_service")
async def test_connection_failure_hides_upstream_url(client, upstream):
    """Test that transport errors carrying the upstream URL are not echoed."""
    upstream.fetch_production.side_effect = httpx.ConnectError(
        "All connection attempts failed for https://api.energidataservice.dk/dataset/x"
    )

    response = await client.get("/api/monthly-production")

    assert response.status_code == 500
    assert response.json()["details"] == "Upstream request failed"
    assert "energidataservice" not in response.text
