"""Shared pytest fixtures."""

from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from elportal.dependencies import get_kv_store
from elportal.main import app
from elportal.store.memory import InMemoryKVStore


class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, start: float = 1_750_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """Create a controllable clock."""
    return FakeClock()


@pytest.fixture
def memory_store() -> InMemoryKVStore:
    """Create an empty in-memory store."""
    return InMemoryKVStore()


@pytest.fixture
async def client(memory_store: InMemoryKVStore) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client for the app with the store replaced by an in-memory one.

    Dependency overrides are removed after each test.
    """
    app.dependency_overrides[get_kv_store] = lambda: memory_store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()
