"""DynamoDB-backed key-value store."""

import fnmatch
import json
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any

import aioboto3
from botocore.exceptions import ClientError

from elportal.config import settings
from elportal.logging.config import get_logger
from elportal.store.base import KVStore

logger = get_logger(__name__)

HASH_FIELD_PREFIX = "h_"


def get_dynamodb_config() -> dict[str, Any]:
    """
    Build DynamoDB resource configuration based on environment.

    For AWS Lambda with IAM roles, returns minimal config (region only).
    For LocalStack, includes endpoint_url and explicit credentials.

    Returns:
        Dictionary of aioboto3 resource parameters
    """
    config: dict[str, Any] = {"region_name": settings.aws_region}

    # Only add endpoint_url if explicitly configured (LocalStack)
    if settings.dynamodb_endpoint_url:
        config["endpoint_url"] = settings.dynamodb_endpoint_url

    # Lambda provides all three for temporary credentials; pass them together
    if settings.aws_access_key_id:
        config["aws_access_key_id"] = settings.aws_access_key_id
    if settings.aws_secret_access_key:
        config["aws_secret_access_key"] = settings.aws_secret_access_key
    if settings.aws_session_token:
        config["aws_session_token"] = settings.aws_session_token

    logger.debug(
        "DynamoDB config resolved",
        extra={"context": {"config_keys": list(config.keys())}},
    )
    return config


def _is_conditional_failure(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


def _glob_prefix(pattern: str) -> str:
    """Literal prefix of a glob pattern, used to narrow the scan."""
    for index, char in enumerate(pattern):
        if char in "*?[":
            return pattern[:index]
    return pattern


class DynamoKVStore(KVStore):
    """
    :class:`KVStore` on a single DynamoDB table.

    Item layout (partition key ``key``):

    - ``value``: JSON string written by :meth:`set`
    - ``counter``: number maintained by :meth:`incr`
    - ``h_<field>``: numbers maintained by :meth:`hincrby`
    - ``expires_at``: epoch seconds, configured as the table's TTL attribute

    DynamoDB reaps expired items lazily, so every read also filters on
    ``expires_at`` and counters restart from zero once expired.
    """

    def __init__(
        self,
        table_name: str | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the store.

        Args:
            table_name: DynamoDB table (defaults to settings.dynamodb_table_kv)
            clock: Returns the current time in epoch seconds
        """
        self.table_name = table_name or settings.dynamodb_table_kv
        self.session = aioboto3.Session()
        self._clock = clock

    @asynccontextmanager
    async def _table(self) -> AsyncIterator[Any]:
        async with self.session.resource("dynamodb", **get_dynamodb_config()) as dynamodb:
            yield await dynamodb.Table(self.table_name)

    def _now(self) -> int:
        return int(self._clock())

    def _is_expired(self, item: dict[str, Any]) -> bool:
        expires_at = item.get("expires_at")
        return expires_at is not None and int(expires_at) <= self._now()

    async def get(self, key: str) -> Any | None:
        async with self._table() as table:
            response = await table.get_item(Key={"key": key}, ConsistentRead=True)

        item = response.get("Item")
        if not item or self._is_expired(item):
            return None
        if "value" in item:
            return json.loads(item["value"])
        if "counter" in item:
            return int(item["counter"])
        return None

    async def set(self, key: str, value: Any, ex: int | None = None) -> None:
        item: dict[str, Any] = {"key": key, "value": json.dumps(value)}
        if ex is not None:
            item["expires_at"] = self._now() + ex

        async with self._table() as table:
            await table.put_item(Item=item)

    async def _add(self, key: str, attribute: str, amount: int) -> int:
        """ADD to a numeric attribute, restarting items that already expired."""
        async with self._table() as table:
            try:
                response = await table.update_item(
                    Key={"key": key},
                    UpdateExpression="ADD #a :amount",
                    ConditionExpression="attribute_not_exists(#e) OR #e > :now",
                    ExpressionAttributeNames={"#a": attribute, "#e": "expires_at"},
                    ExpressionAttributeValues={":amount": amount, ":now": self._now()},
                    ReturnValues="UPDATED_NEW",
                )
            except ClientError as exc:
                if not _is_conditional_failure(exc):
                    raise
                # Expired item not reaped yet: start over without expiry
                await table.put_item(Item={"key": key, attribute: amount})
                return amount

        return int(response["Attributes"][attribute])

    async def incr(self, key: str, amount: int = 1) -> int:
        return await self._add(key, "counter", amount)

    async def hincrby(self, key: str, field: str, amount: int = 1) -> int:
        return await self._add(key, f"{HASH_FIELD_PREFIX}{field}", amount)

    async def expire(self, key: str, seconds: int, nx: bool = False) -> bool:
        now = self._now()
        values: dict[str, Any] = {":expires_at": now + seconds}
        if nx:
            condition = "attribute_exists(#k) AND attribute_not_exists(#e)"
        else:
            condition = (
                "attribute_exists(#k) AND (attribute_not_exists(#e) OR #e > :now)"
            )
            values[":now"] = now

        async with self._table() as table:
            try:
                await table.update_item(
                    Key={"key": key},
                    UpdateExpression="SET #e = :expires_at",
                    ConditionExpression=condition,
                    ExpressionAttributeNames={"#k": "key", "#e": "expires_at"},
                    ExpressionAttributeValues=values,
                )
            except ClientError as exc:
                if _is_conditional_failure(exc):
                    return False
                raise
        return True

    async def hgetall(self, key: str) -> dict[str, int]:
        async with self._table() as table:
            response = await table.get_item(Key={"key": key}, ConsistentRead=True)

        item = response.get("Item")
        if not item or self._is_expired(item):
            return {}
        return {
            name[len(HASH_FIELD_PREFIX):]: int(value)
            for name, value in item.items()
            if name.startswith(HASH_FIELD_PREFIX) and isinstance(value, (int, Decimal))
        }

    async def keys(self, pattern: str) -> list[str]:
        prefix = _glob_prefix(pattern)
        names = {"#k": "key", "#e": "expires_at"}
        values: dict[str, Any] = {":now": self._now()}
        live = "(attribute_not_exists(#e) OR #e > :now)"
        if prefix:
            filter_expression = f"begins_with(#k, :prefix) AND {live}"
            values[":prefix"] = prefix
        else:
            filter_expression = live

        found: list[str] = []
        scan_params: dict[str, Any] = {
            "FilterExpression": filter_expression,
            "ProjectionExpression": "#k",
            "ExpressionAttributeNames": names,
            "ExpressionAttributeValues": values,
        }
        async with self._table() as table:
            while True:
                response = await table.scan(**scan_params)
                found.extend(item["key"] for item in response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                scan_params["ExclusiveStartKey"] = last_key

        return sorted(key for key in found if fnmatch.fnmatchcase(key, pattern))

    async def delete(self, key: str) -> None:
        async with self._table() as table:
            await table.delete_item(Key={"key": key})
