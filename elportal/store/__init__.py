"""Key-value store backends."""

from elportal.config import settings
from elportal.store.base import KVStore
from elportal.store.dynamodb import DynamoKVStore
from elportal.store.memory import InMemoryKVStore


def create_kv_store() -> KVStore:
    """Build the store selected by the KV_BACKEND setting."""
    if settings.kv_backend.lower() == "memory":
        return InMemoryKVStore()
    return DynamoKVStore()


__all__ = ["KVStore", "DynamoKVStore", "InMemoryKVStore", "create_kv_store"]
