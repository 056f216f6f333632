"""Integration tests for POST /api/track-conversion."""

import json
from unittest.mock import AsyncMock

import pytest

from elportal.config import settings
from elportal.dependencies import get_conversion_service
from elportal.main import app
from elportal.utils.clock import now_ms

SECRET = "hook-secret"


@pytest.fixture(autouse=True)
def webhook_secret(monkeypatch):
    monkeypatch.setattr(settings, "conversion_webhook_secret", SECRET)


@pytest.fixture
async def tracked_click(client) -> str:
    """Click recorded through the click endpoint a moment ago."""
    click_id = f"dep_{now_ms()}_abc123"
    response = await client.post(
        "/api/track-click", json={"click_id": click_id, "partner_id": "andel"}
    )
    assert response.status_code == 200
    return click_id


@pytest.mark.asyncio
async def test_webhook_conversion_success(client, memory_store, tracked_click):
    """Test a partner backend reporting a signed contract."""
    response = await client.post(
        "/api/track-conversion",
        json={"click_id": tracked_click, "customer_id": "c-1", "contract_value": 1800},
        headers={"X-Webhook-Secret": SECRET},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Conversion tracked successfully"
    assert body["data"] == {
        "click_id": tracked_click,
        "partner_id": "andel",
        "value": 1800.0,
        "source": "webhook",
    }
    stored = await memory_store.get(f"conversion:andel:{tracked_click}")
    assert stored["status"] == "pending"
    assert response.headers["access-control-allow-origin"] == "*"


@pytest.mark.asyncio
async def test_conversion_appears_on_dashboard(client, tracked_click, monkeypatch):
    """Test that webhook conversions count towards partner revenue."""
    monkeypatch.setattr(settings, "admin_secret", "topsecret")
    await client.post(
        "/api/track-conversion",
        content=json.dumps({"click_id": tracked_click, "contract_value": 1800}),
        headers={"X-Webhook-Secret": SECRET, "Content-Type": "text/plain"},
    )

    response = await client.get(
        "/api/admin/dashboard", headers={"Authorization": "Bearer topsecret"}
    )

    partners = response.json()["data"]["partners"]
    assert partners[0]["id"] == "andel"
    assert partners[0]["conversions"] == 1
    assert partners[0]["revenue"] == 1800


@pytest.mark.asyncio
async def test_duplicate_conversion_returns_409(client, tracked_click):
    payload = {"click_id": tracked_click, "session_id": "s-1"}
    await client.post("/api/track-conversion", json=payload)

    response = await client.post("/api/track-conversion", json=payload)

    assert response.status_code == 409
    assert response.json()["error_code"] == "CONFLICT"
    assert response.json()["message"] == "Conversion already tracked"


@pytest.mark.asyncio
async def test_wrong_secret_returns_401(client, tracked_click):
    response = await client.post(
        "/api/track-conversion",
        json={"click_id": tracked_click},
        headers={"X-Webhook-Secret": "nope"},
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_unknown_click_returns_404(client):
    response = await client.post(
        "/api/track-conversion", json={"click_id": "dep_missing", "session_id": "s"}
    )

    assert response.status_code == 404
    assert response.json()["message"] == "Click not found or expired"


@pytest.mark.asyncio
async def test_invalid_click_id_returns_400(client):
    response = await client.post(
        "/api/track-conversion", json={"click_id": "abc", "session_id": "s"}
    )

    assert response.status_code == 400
    assert response.json()["details"] == {"expected_prefix": "dep_"}


@pytest.mark.asyncio
async def test_store_failure_returns_generic_500(client):
    failing = AsyncMock()
    failing.record.side_effect = RuntimeError("write failed")
    app.dependency_overrides[get_conversion_service] = lambda: failing

    response = await client.post("/api/track-conversion", json={"click_id": "dep_1"})

    assert response.status_code == 500
    assert response.json()["message"] == "Failed to track conversion"


@pytest.mark.asyncio
async def test_preflight_allows_webhook_secret_header(client):
    response = await client.options("/api/track-conversion")

    assert response.status_code == 200
    assert response.headers["access-control-allow-methods"] == "POST, OPTIONS"
    assert response.headers["access-control-allow-headers"] == (
        "Content-Type, X-Webhook-Secret"
    )
