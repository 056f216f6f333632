"""Response schemas for the admin dashboard."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RecentClick(CamelModel):
    click_id: str | None = None
    partner: str
    timestamp: int
    source: dict[str, Any] | str = "unknown"


class RecentConversion(CamelModel):
    click_id: str | None = None
    partner: str
    value: float = 0
    timestamp: int


class PartnerRollup(CamelModel):
    """Per-partner click and conversion statistics."""

    id: str
    name: str
    clicks: int = 0
    conversions: int = 0
    revenue: float = 0
    last_conversion: int | None = None
    conversion_rate: float = 0


class RealtimeMetrics(CamelModel):
    clicks_today: int = 0
    page_views_today: int = 0
    conversions_today: int = 0
    revenue_today: float = 0
    active_partners: list[str] = Field(default_factory=list)


class RecentActivity(CamelModel):
    clicks: list[RecentClick] = Field(default_factory=list)
    conversions: list[RecentConversion] = Field(default_factory=list)


class DashboardSummary(CamelModel):
    total_clicks: int = 0
    total_conversions: int = 0
    total_revenue: float = 0
    average_conversion_rate: float = 0


class DashboardMetrics(CamelModel):
    realtime: RealtimeMetrics
    partners: list[PartnerRollup]
    recent: RecentActivity
    summary: DashboardSummary


class DashboardResponse(BaseModel):
    """Envelope returned by GET /api/admin/dashboard."""

    success: bool = True
    data: DashboardMetrics
    timestamp: str
