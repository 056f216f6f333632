"""Tests for ClickService."""

from unittest.mock import patch

import pytest

from elportal.exceptions import ValidationError
from elportal.services.click_service import ClickService
from elportal.store.keys import today_iso
from elportal.store.memory import InMemoryKVStore


@pytest.fixture
def click_service(memory_store) -> ClickService:
    """Create ClickService on an in-memory store."""
    return ClickService(memory_store)


def test_missing_fields_list_required_and_missing(click_service):
    """Test the 400 details for an incomplete body."""
    with pytest.raises(ValidationError) as exc_info:
        click_service.build_click({"click_id": "dep_1"})

    assert exc_info.value.status_code == 400
    assert exc_info.value.details == {
        "required": ["click_id", "partner_id"],
        "missing": ["partner_id"],
    }


def test_click_id_without_prefix_rejected(click_service):
    """Test that click ids must start with dep_."""
    with pytest.raises(ValidationError) as exc_info:
        click_service.build_click({"click_id": "abc", "partner_id": "p1"})

    assert exc_info.value.details["expected_prefix"] == "dep_"


def test_timestamp_defaults_to_server_time(click_service):
    """Test that a missing timestamp is filled with epoch milliseconds."""
    with patch("elportal.services.click_service.now_ms", return_value=1234):
        click = click_service.build_click({"click_id": "dep_1", "partner_id": "p1"})

    assert click.timestamp == 1234


def test_malformed_metadata_is_validation_error(click_service):
    """Test that pydantic errors surface as 400s."""
    with pytest.raises(ValidationError) as exc_info:
        click_service.build_click(
            {"click_id": "dep_1", "partner_id": "p1", "metadata": "lots"}
        )

    fields = [e["field"] for e in exc_info.value.details["validation_errors"]]
    assert "metadata" in fields


@pytest.mark.asyncio
async def test_record_stores_click_and_daily_counter(click_service, memory_store):
    """Test the click record and the partner's daily counter."""
    payload = {
        "click_id": "dep_1718000000000_abc",
        "partner_id": "nordlys",
        "timestamp": 1718000000000,
        "source": {"page": "/elpriser", "component": "provider_card"},
        "metadata": {"consumption": 4000, "region": "DK2"},
    }

    response = await click_service.record(payload)

    assert response.success is True
    assert response.data.click_id == "dep_1718000000000_abc"
    assert response.message == "Click tracked successfully"

    stored = await memory_store.get("click:dep_1718000000000_abc")
    assert stored["partner_id"] == "nordlys"
    assert stored["source"]["page"] == "/elpriser"
    assert stored["metadata"] == {"consumption": 4000.0, "region": "DK2"}
    assert await memory_store.get(f"clicks:daily:{today_iso()}:nordlys") == 1


@pytest.mark.asyncio
async def test_repeated_click_id_overwrites_and_counts_twice(click_service, memory_store):
    """Test last-write-wins on click records while the counter keeps counting."""
    await click_service.record({"click_id": "dep_1", "partner_id": "p1", "timestamp": 1})
    await click_service.record({"click_id": "dep_1", "partner_id": "p1", "timestamp": 2})

    assert (await memory_store.get("click:dep_1"))["timestamp"] == 2
    assert await memory_store.get(f"clicks:daily:{today_iso()}:p1") == 2


@pytest.mark.asyncio
async def test_daily_counter_expiry_set_once(clock):
    """Test that the 30-day expiry is set by the increment creating the counter."""
    store = InMemoryKVStore(clock=clock)
    service = ClickService(store)

    await service.record({"click_id": "dep_1", "partner_id": "p1"})
    clock.advance(10 * 24 * 3600)
    await service.record({"click_id": "dep_2", "partner_id": "p1"})
    clock.advance(20 * 24 * 3600)

    assert await store.keys("clicks:daily:*") == []
    # Click records live for 90 days
    assert await store.get("click:dep_1") is not None


@pytest.mark.asyncio
async def test_stored_click_keeps_payload_as_sent(click_service, memory_store):
    """Test that nulls, nested extras and unknown fields survive storage."""
    payload = {
        "click_id": "dep_1718000000000_xyz",
        "partner_id": "andel",
        "timestamp": 1718000000000,
        "source": {"page": "/sammenlign", "component": None, "variant": "b"},
        "metadata": {"consumption": 2500.5, "region": "DK1", "product": "fixed"},
        "campaign": "autumn",
    }

    await click_service.record(payload)

    assert await memory_store.get("click:dep_1718000000000_xyz") == payload
