"""Pydantic schemas for the conversion webhook."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class TrackConversionData(BaseModel):
    click_id: str
    partner_id: str
    value: Optional[float] = Field(None, description="contract_value or conversion_value")
    source: str = Field(..., description="webhook or universal_script")


class TrackConversionResponse(BaseModel):
    """Response schema for ``POST /api/track-conversion``."""

    success: bool = Field(True, description="Operation status")
    data: TrackConversionData
    message: str = Field(..., description="Human-readable message")
    timestamp: str = Field(..., description="ISO 8601 timestamp")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "data": {
                    "click_id": "dep_1718000000000_a1b2c3",
                    "partner_id": "nordlys",
                    "value": 2400,
                    "source": "webhook",
                },
                "message": "Conversion tracked successfully",
                "timestamp": "2025-06-10T12:00:00.000Z",
            }
        }
    )


class TrackConversionRequest(BaseModel):
    """
    Documented shape of a conversion body.

    Partner backends send ``customer_id``/``contract_*`` fields with an
    ``X-Webhook-Secret`` header; the on-site script sends ``session_id`` or
    ``fingerprint``. Any other fields are stored with the conversion.
    """

    model_config = ConfigDict(extra="allow")

    click_id: str = Field(..., description="Click id, must start with dep_")
    source: Optional[str] = Field(None, description="Overrides source detection")
    customer_id: Optional[str] = None
    contract_value: Optional[float] = None
    contract_length_months: Optional[int] = None
    conversion_value: Optional[float] = None
    conversion_type: Optional[str] = None
    session_id: Optional[str] = None
    fingerprint: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
