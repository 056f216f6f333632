"""Request schemas for the Eloverblik consumption endpoints."""

import re
from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

Aggregation = Literal["Actual", "Quarter", "Hour", "Day", "Month", "Year"]

GUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


def _as_list(value):
    if isinstance(value, str):
        return [value]
    return value


class ConsumptionRequest(BaseModel):
    """Body of POST /api/eloverblik/get-consumption."""

    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(..., description="Customer refresh token from eloverblik.dk")
    metering_points: list[str] = Field(..., alias="meteringPoints", min_length=1)
    date_from: date = Field(..., alias="dateFrom")
    date_to: date = Field(..., alias="dateTo")
    aggregation: Aggregation = "Hour"

    @field_validator("metering_points", mode="before")
    @classmethod
    def metering_points_to_list(cls, v):
        return _as_list(v)


class ThirdPartyConsumptionRequest(BaseModel):
    """
    Body of POST /api/eloverblik/thirdparty/get-customer-consumption.

    The customer is identified by any one of the four identifier fields; the
    first one present wins.
    """

    model_config = ConfigDict(populate_by_name=True)

    authorization_id: Optional[str] = Field(default=None, alias="authorizationId")
    customer_cvr: Optional[str] = Field(default=None, alias="customerCVR")
    customer_key: Optional[str] = Field(default=None, alias="customerKey")
    customer_id: Optional[str] = Field(default=None, alias="customerId")
    metering_point_ids: Optional[list[str]] = Field(
        default=None, alias="meteringPointIds"
    )
    date_from: date = Field(..., alias="dateFrom")
    date_to: date = Field(..., alias="dateTo")
    aggregation: Aggregation = "Day"

    @field_validator(
        "authorization_id", "customer_cvr", "customer_key", "customer_id", mode="before"
    )
    @classmethod
    def identifier_to_str(cls, v):
        """CVR numbers arrive as JSON numbers from some clients."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(int(v))
        return v

    @field_validator("metering_point_ids", mode="before")
    @classmethod
    def metering_points_to_list(cls, v):
        return _as_list(v)

    @property
    def identifier(self) -> str | None:
        return (
            self.authorization_id
            or self.customer_cvr
            or self.customer_key
            or self.customer_id
        )

    @property
    def scope(self) -> str:
        """Authorization lookup scope for the identifier."""
        if self.identifier and GUID_RE.match(self.identifier):
            return "authorizationId"
        return "customerCVR"
