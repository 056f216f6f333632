"""Tests for ConversionService."""

from unittest.mock import AsyncMock, patch

import pytest

from elportal.config import settings
from elportal.exceptions import (
    ConfigurationError,
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from elportal.services.conversion_service import (
    ConversionService,
    detect_source,
    reported_value,
)
from elportal.store.keys import today_iso
from elportal.store.memory import InMemoryKVStore

NOW_MS = 1_750_000_000_000
DAY_MS = 24 * 3600 * 1000
SECRET = "hook-secret"


@pytest.fixture
def conversion_service(memory_store) -> ConversionService:
    return ConversionService(memory_store)


@pytest.fixture(autouse=True)
def frozen_now():
    with patch("elportal.services.conversion_service.now_ms", return_value=NOW_MS):
        yield


@pytest.fixture(autouse=True)
def webhook_secret(monkeypatch):
    monkeypatch.setattr(settings, "conversion_webhook_secret", SECRET)


@pytest.fixture
async def stored_click(memory_store) -> dict:
    """A click made yesterday from the comparison page."""
    click = {
        "click_id": "dep_1",
        "partner_id": "nordlys",
        "timestamp": NOW_MS - DAY_MS,
        "source": {"page": "/sammenlign", "component": "provider_card"},
        "metadata": {"consumption": 4000, "region": "DK2"},
    }
    await memory_store.set("click:dep_1", click)
    return click


def test_explicit_source_wins():
    assert detect_source({"source": "manual", "session_id": "s"}, True) == "manual"


def test_script_fields_mean_universal_script():
    """Test that script fields outrank the secret header."""
    assert detect_source({"fingerprint": "fp"}, True) == "universal_script"
    assert detect_source({"conversion_type": "signup"}, False) == "universal_script"


def test_secret_header_or_backend_fields_mean_webhook():
    assert detect_source({}, True) == "webhook"
    assert detect_source({"customer_id": "c-9"}, False) == "webhook"
    assert detect_source({"contract_length_months": 12}, False) == "webhook"


def test_unmarked_payload_defaults_to_universal_script():
    assert detect_source({"click_id": "dep_1"}, False) == "universal_script"


def test_reported_value_prefers_contract_value():
    assert reported_value({"contract_value": 2400, "conversion_value": 10}) == 2400.0
    assert reported_value({"conversion_value": "99.5"}) == 99.5
    assert reported_value({"contract_value": "lots"}) is None
    assert reported_value({}) is None


@pytest.mark.asyncio
@pytest.mark.usefixtures("stored_click")
async def test_webhook_conversion_is_attributed_and_stored(
    conversion_service, memory_store
):
    """Test the stored record: payload, click attribution and pending status."""
    payload = {
        "click_id": "dep_1",
        "customer_id": "c-9",
        "contract_value": 2400,
        "partner_id": "someone-else",
    }

    response = await conversion_service.record(payload, webhook_secret=SECRET)

    assert response.success is True
    assert response.message == "Conversion tracked successfully"
    assert response.data.model_dump() == {
        "click_id": "dep_1",
        "partner_id": "nordlys",
        "value": 2400.0,
        "source": "webhook",
    }
    assert await memory_store.get("conversion:nordlys:dep_1") == {
        "click_id": "dep_1",
        "customer_id": "c-9",
        "contract_value": 2400,
        "partner_id": "nordlys",
        "click_timestamp": NOW_MS - DAY_MS,
        "conversion_timestamp": NOW_MS,
        "source": {"page": "/sammenlign", "component": "provider_card"},
        "metadata": {"consumption": 4000, "region": "DK2"},
        "status": "pending",
    }
    metrics = await memory_store.hgetall(f"metrics:daily:{today_iso()}:nordlys")
    assert metrics == {"conversions": 1}


@pytest.mark.asyncio
async def test_conversion_record_does_not_expire(clock, stored_click):
    """Test that conversions are kept after clicks and counters expire."""
    store = InMemoryKVStore(clock=clock)
    await store.set("click:dep_1", stored_click, ex=settings.click_ttl_seconds)
    service = ConversionService(store)

    await service.record({"click_id": "dep_1", "session_id": "s-1"})
    clock.advance(365 * 24 * 3600)

    assert await store.get("conversion:nordlys:dep_1") is not None
    assert await store.keys("metrics:*") == []


@pytest.mark.asyncio
@pytest.mark.usefixtures("stored_click")
async def test_script_conversion_needs_no_secret(conversion_service):
    response = await conversion_service.record(
        {"click_id": "dep_1", "session_id": "s-1", "conversion_value": 99}
    )

    assert response.data.source == "universal_script"
    assert response.data.value == 99.0


@pytest.mark.asyncio
@pytest.mark.usefixtures("stored_click")
async def test_webhook_with_wrong_secret_rejected(conversion_service, memory_store):
    with pytest.raises(UnauthorizedError):
        await conversion_service.record({"click_id": "dep_1"}, webhook_secret="guess")

    assert await memory_store.get("conversion:nordlys:dep_1") is None


@pytest.mark.asyncio
async def test_webhook_fields_without_header_rejected(conversion_service):
    """Test that backend-looking payloads must carry the secret header."""
    with pytest.raises(UnauthorizedError):
        await conversion_service.record({"click_id": "dep_1", "customer_id": "c-9"})


@pytest.mark.asyncio
async def test_webhook_without_configured_secret(conversion_service, monkeypatch):
    monkeypatch.setattr(settings, "conversion_webhook_secret", None)

    with pytest.raises(ConfigurationError) as exc_info:
        await conversion_service.record({"click_id": "dep_1"}, webhook_secret=SECRET)

    assert exc_info.value.details == {"setting": "CONVERSION_WEBHOOK_SECRET"}


@pytest.mark.asyncio
async def test_missing_click_id(conversion_service):
    with pytest.raises(ValidationError) as exc_info:
        await conversion_service.record({"session_id": "s-1"})

    assert exc_info.value.details["missing"] == ["click_id"]


@pytest.mark.asyncio
async def test_click_id_without_prefix(conversion_service):
    with pytest.raises(ValidationError) as exc_info:
        await conversion_service.record({"click_id": "abc", "session_id": "s-1"})

    assert exc_info.value.details == {"expected_prefix": "dep_"}


@pytest.mark.asyncio
async def test_unknown_click_is_404_without_reason(conversion_service, monkeypatch):
    """Test that production responses do not say why the click was rejected."""
    monkeypatch.setattr(settings, "environment", "production")

    with pytest.raises(NotFoundError) as exc_info:
        await conversion_service.record({"click_id": "dep_404", "session_id": "s"})

    assert exc_info.value.message == "Click not found or expired"
    assert exc_info.value.details == {}


@pytest.mark.asyncio
async def test_old_click_is_404_with_reason_in_development(
    conversion_service, memory_store, monkeypatch
):
    monkeypatch.setattr(settings, "environment", "development")
    await memory_store.set(
        "click:dep_old",
        {
            "click_id": "dep_old",
            "partner_id": "nordlys",
            "timestamp": NOW_MS - 91 * DAY_MS,
        },
    )

    with pytest.raises(NotFoundError) as exc_info:
        await conversion_service.record({"click_id": "dep_old", "session_id": "s"})

    assert "attribution window" in exc_info.value.details["reason"]


@pytest.mark.asyncio
@pytest.mark.usefixtures("stored_click")
async def test_second_conversion_for_click_is_conflict(conversion_service, memory_store):
    """Test that a redelivered webhook is rejected and not counted again."""
    payload = {"click_id": "dep_1", "customer_id": "c-9", "contract_value": 2400}
    await conversion_service.record(payload, webhook_secret=SECRET)

    with pytest.raises(ConflictError) as exc_info:
        await conversion_service.record(payload, webhook_secret=SECRET)

    assert exc_info.value.status_code == 409
    metrics = await memory_store.hgetall(f"metrics:daily:{today_iso()}:nordlys")
    assert metrics == {"conversions": 1}


@pytest.mark.asyncio
async def test_store_errors_propagate():
    store = AsyncMock()
    store.get.side_effect = ConnectionError("kv down")

    with pytest.raises(ConnectionError):
        await ConversionService(store).record({"click_id": "dep_1", "session_id": "s"})
