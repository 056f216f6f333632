"""Per-partner daily metric hashes (``metrics:daily:<date>:<partner_id>``)."""

from elportal.config import settings
from elportal.store.base import KVStore
from elportal.store.keys import daily_metrics_key


async def bump_daily_metric(store: KVStore, partner_id: str, field: str) -> int:
    """
    Increment one field of today's metrics hash for a partner.

    The hash expires 30 days after it was created. Fields added later in the
    day do not move that expiry.

    Returns:
        New value of the field
    """
    key = daily_metrics_key(partner_id)
    value = await store.hincrby(key, field, 1)
    if value == 1:
        await store.expire(key, settings.daily_counter_ttl_seconds, nx=True)
    return value
