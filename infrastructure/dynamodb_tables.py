"""Script to create the key-value DynamoDB table for LocalStack or AWS."""

import asyncio
from typing import Any

import aioboto3
from botocore.exceptions import ClientError

TTL_ATTRIBUTE = "expires_at"


async def create_kv_table(dynamodb: Any, table_name: str) -> None:
    """
    Create the key-value table (partition key ``key``, on-demand billing).

    Args:
        dynamodb: DynamoDB resource
        table_name: Name of the key-value table
    """
    try:
        table = await dynamodb.create_table(
            TableName=table_name,
            KeySchema=[
                {"AttributeName": "key", "KeyType": "HASH"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "key", "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        await table.wait_until_exists()
        print(f"✓ Created table: {table_name}")
    except ClientError as e:
        if e.response["Error"]["Code"] == "ResourceInUseException":
            print(f"→ Table already exists: {table_name}")
        else:
            raise


async def enable_ttl(client: Any, table_name: str) -> None:
    """
    Enable DynamoDB TTL on the ``expires_at`` attribute.

    Args:
        client: DynamoDB client
        table_name: Name of the key-value table
    """
    try:
        await client.update_time_to_live(
            TableName=table_name,
            TimeToLiveSpecification={
                "Enabled": True,
                "AttributeName": TTL_ATTRIBUTE,
            },
        )
        print(f"✓ Enabled TTL on {table_name}.{TTL_ATTRIBUTE}")
    except ClientError as e:
        # Raised when TTL is already enabled
        if e.response["Error"]["Code"] == "ValidationException":
            print(f"→ TTL already enabled: {table_name}")
        else:
            raise


async def main() -> None:
    """Create the key-value table and enable TTL."""
    from elportal.config import settings
    from elportal.store.dynamodb import get_dynamodb_config

    print("Creating DynamoDB tables...")
    print(f"Region: {settings.aws_region}")
    print(f"Endpoint: {settings.dynamodb_endpoint_url or 'AWS'}")
    print()

    config = get_dynamodb_config()
    session = aioboto3.Session()
    async with session.resource("dynamodb", **config) as dynamodb:
        await create_kv_table(dynamodb, settings.dynamodb_table_kv)

    async with session.client("dynamodb", **config) as client:
        await enable_ttl(client, settings.dynamodb_table_kv)

    print()
    print("✓ Key-value table ready!")


if __name__ == "__main__":
    asyncio.run(main())
