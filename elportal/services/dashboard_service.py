"""Aggregation of tracking records into admin dashboard metrics."""

from typing import Any

from elportal.logging.config import get_logger
from elportal.schemas.dashboard import (
    DashboardMetrics,
    DashboardSummary,
    PartnerRollup,
    RealtimeMetrics,
    RecentActivity,
    RecentClick,
    RecentConversion,
)
from elportal.store.base import KVStore
from elportal.store.keys import (
    CLICK_PATTERN,
    CONVERSION_PATTERN,
    CONVERSIONS_FIELD,
    PAGE_VIEWS_FIELD,
    daily_clicks_pattern,
    daily_metrics_pattern,
    today_iso,
)
from elportal.utils.clock import millis_to_date_iso, to_epoch_ms

logger = get_logger(__name__)

RECENT_CLICK_KEYS = 100
RECENT_CONVERSION_KEYS = 50
RECENT_CLICKS_SHOWN = 50
RECENT_CONVERSIONS_SHOWN = 20

REVENUE_FIELDS = ("value", "contract_value", "conversion_value")
CONVERSION_TIME_FIELDS = ("conversion_time", "conversion_timestamp", "timestamp")


def conversion_value(record: dict[str, Any]) -> float:
    for field in REVENUE_FIELDS:
        value = record.get(field)
        if value is None:
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0.0
    return 0.0


def _first_present(record: dict[str, Any], fields: tuple[str, ...]) -> Any:
    for field in fields:
        if record.get(field) is not None:
            return record[field]
    return None


class DashboardService:
    """Builds DashboardMetrics from the click, conversion and counter families."""

    def __init__(self, store: KVStore) -> None:
        self.store = store

    async def _sum_daily_clicks(self, day: str) -> int:
        total = 0
        for key in await self.store.keys(daily_clicks_pattern(day)):
            value = await self.store.get(key)
            if isinstance(value, int):
                total += value
        return total

    async def _sum_daily_metrics(self, day: str) -> tuple[int, int]:
        page_views = 0
        conversions = 0
        for key in await self.store.keys(daily_metrics_pattern(day)):
            fields = await self.store.hgetall(key)
            page_views += fields.get(PAGE_VIEWS_FIELD, 0)
            conversions += fields.get(CONVERSIONS_FIELD, 0)
        return page_views, conversions

    async def _fetch_records(self, pattern: str, limit: int) -> list[dict[str, Any]]:
        """Fetch the last ``limit`` records matching pattern, skipping failures."""
        keys = await self.store.keys(pattern)
        records = []
        for key in keys[-limit:]:
            try:
                record = await self.store.get(key)
            except Exception as exc:
                logger.warning(
                    f"Skipping unreadable record {key}: {exc}",
                    extra={"context": {"key": key}},
                )
                continue
            if isinstance(record, dict):
                records.append(record)
        return records

    async def recent_clicks(self) -> list[RecentClick]:
        clicks = []
        for record in await self._fetch_records(CLICK_PATTERN, RECENT_CLICK_KEYS):
            if not record.get("partner_id"):
                continue
            clicks.append(
                RecentClick(
                    click_id=record.get("click_id"),
                    partner=record["partner_id"],
                    timestamp=to_epoch_ms(record.get("timestamp")),
                    source=record.get("source") or "unknown",
                )
            )
        return clicks

    async def recent_conversions(self) -> list[RecentConversion]:
        conversions = []
        for record in await self._fetch_records(
            CONVERSION_PATTERN, RECENT_CONVERSION_KEYS
        ):
            if not record.get("partner_id"):
                continue
            conversions.append(
                RecentConversion(
                    click_id=record.get("click_id"),
                    partner=record["partner_id"],
                    value=conversion_value(record),
                    timestamp=to_epoch_ms(
                        _first_present(record, CONVERSION_TIME_FIELDS)
                    ),
                )
            )
        return conversions

    @staticmethod
    def rollup(
        clicks: list[RecentClick], conversions: list[RecentConversion]
    ) -> list[PartnerRollup]:
        """
        Per-partner statistics sorted by revenue, highest first.

        Args:
            clicks: Recent click records
            conversions: Recent conversion records

        Returns:
            One PartnerRollup per partner seen in either list
        """
        partners: dict[str, PartnerRollup] = {}

        def stats_for(partner_id: str) -> PartnerRollup:
            if partner_id not in partners:
                partners[partner_id] = PartnerRollup(id=partner_id, name=partner_id)
            return partners[partner_id]

        for click in clicks:
            stats_for(click.partner).clicks += 1

        for conversion in conversions:
            stats = stats_for(conversion.partner)
            stats.conversions += 1
            stats.revenue += conversion.value
            if stats.last_conversion is None or conversion.timestamp > stats.last_conversion:
                stats.last_conversion = conversion.timestamp

        for stats in partners.values():
            stats.conversion_rate = (
                stats.conversions / stats.clicks * 100 if stats.clicks > 0 else 0
            )

        return sorted(partners.values(), key=lambda p: p.revenue, reverse=True)

    async def get_metrics(self) -> DashboardMetrics:
        """
        Build the dashboard metrics for today (UTC).

        Returns:
            DashboardMetrics with realtime totals, partner rollups, recent
            activity and a summary
        """
        today = today_iso()

        clicks_today = await self._sum_daily_clicks(today)
        page_views_today, conversions_today = await self._sum_daily_metrics(today)

        clicks = await self.recent_clicks()
        conversions = await self.recent_conversions()
        partners = self.rollup(clicks, conversions)

        revenue_today = sum(
            c.value
            for c in conversions
            if c.timestamp and millis_to_date_iso(c.timestamp) == today
        )
        total_revenue = sum(c.value for c in conversions)

        return DashboardMetrics(
            realtime=RealtimeMetrics(
                clicks_today=clicks_today,
                page_views_today=page_views_today,
                conversions_today=conversions_today,
                revenue_today=revenue_today,
                active_partners=[p.id for p in partners if p.clicks > 0],
            ),
            partners=partners,
            recent=RecentActivity(
                clicks=sorted(clicks, key=lambda c: c.timestamp, reverse=True)[
                    :RECENT_CLICKS_SHOWN
                ],
                conversions=sorted(
                    conversions, key=lambda c: c.timestamp, reverse=True
                )[:RECENT_CONVERSIONS_SHOWN],
            ),
            summary=DashboardSummary(
                total_clicks=len(clicks),
                total_conversions=len(conversions),
                total_revenue=total_revenue,
                average_conversion_rate=(
                    len(conversions) / len(clicks) * 100 if clicks else 0
                ),
            ),
        )
