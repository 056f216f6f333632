"""Pydantic schemas for the click tracking endpoint."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class TrackClickData(BaseModel):
    """Data block of a successful click tracking response."""

    click_id: str = Field(..., description="Recorded click id")


class TrackClickResponse(BaseModel):
    """
    Response schema for ``POST /api/track-click``.

    Attributes:
        success: Always True for 200 responses
        data: Recorded click id
        message: Human-readable message
        timestamp: ISO 8601 server timestamp
    """

    success: bool = Field(True, description="Operation status")
    data: TrackClickData
    message: str = Field(..., description="Human-readable message")
    timestamp: str = Field(..., description="ISO 8601 timestamp")

    class Config:
        """Pydantic configuration."""

        json_schema_extra = {
            "example": {
                "success": True,
                "data": {"click_id": "dep_1718000000000_a1b2c3"},
                "message": "Click tracked successfully",
                "timestamp": "2025-06-10T12:00:00.000000+00:00",
            }
        }


class TrackClickRequest(BaseModel):
    """
    Documented shape of the click body.

    The endpoint parses the raw body itself (beacon requests arrive as
    text/plain), so this model only feeds the OpenAPI schema.
    """

    click_id: str = Field(..., description="Click id, must start with dep_")
    partner_id: str = Field(..., description="Partner id")
    timestamp: Optional[int] = Field(None, description="Epoch milliseconds")
    source: Optional[Dict[str, Any]] = Field(
        None, description="{page, component, variant}"
    )
    metadata: Optional[Dict[str, Any]] = Field(
        None, description="{consumption, region}"
    )
