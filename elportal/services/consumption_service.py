"""Consumption lookups against Eloverblik, batched and retried."""

import asyncio
from collections.abc import Awaitable, Callable, Iterator
from functools import partial
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from elportal.clients.eloverblik import Api, EloverblikClient
from elportal.config import settings
from elportal.exceptions import (
    ConfigurationError,
    NotFoundError,
    ServiceUnavailableError,
    UpstreamError,
    ValidationError,
)
from elportal.logging.config import get_logger
from elportal.schemas.consumption import ConsumptionRequest, ThirdPartyConsumptionRequest
from elportal.utils.clock import utc_now_iso
from elportal.utils.retry import retry_with_backoff

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)
T = TypeVar("T")

CONSUMPTION_REQUIRED = ["token", "meteringPoints", "dateFrom", "dateTo"]
THIRDPARTY_REQUIRED = [
    "authorizationId/customerCVR/customerKey/customerId",
    "dateFrom",
    "dateTo",
]
IDENTIFIER_FIELDS = ["authorizationId", "customerCVR", "customerKey", "customerId"]

UPSTREAM_HINTS = {
    400: "Eloverblik rejected the request. Check that dates are YYYY-MM-DD, "
    "dateFrom is before dateTo and the metering point ids are valid.",
    401: "The Eloverblik token is invalid or expired. Create a new token on "
    "eloverblik.dk and try again.",
    429: "Eloverblik is rate limiting requests. Wait a minute and try again.",
    503: "Eloverblik is temporarily unavailable. Try again later.",
}

UPSTREAM_BODY_STATUSES = {400}

METADATA = {"unit": "kWh", "timezone": "Europe/Copenhagen"}


def batched(items: list[str], size: int) -> Iterator[list[str]]:
    for index in range(0, len(items), size):
        yield items[index : index + size]


def total_consumption(result: list[dict[str, Any]]) -> float:
    """
    Sum every ``out_Quantity.quantity`` point in a time series result.

    Malformed documents and non-numeric quantities are skipped.
    """
    total = 0.0
    for entry in result or []:
        if not isinstance(entry, dict):
            continue
        document = entry.get("MyEnergyData_MarketDocument") or {}
        for series in document.get("TimeSeries") or []:
            for period in series.get("Period") or []:
                for point in period.get("Point") or []:
                    try:
                        total += float(point.get("out_Quantity.quantity") or 0)
                    except (TypeError, ValueError):
                        continue
    return total


def _missing(payload: dict[str, Any], fields: list[str]) -> list[str]:
    return [name for name in fields if payload.get(name) in (None, "", [])]


def _validate(model: type[M], payload: dict[str, Any], required: list[str]) -> M:
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(
            message="Invalid request parameters",
            details={
                "required": required,
                "validation_errors": [
                    {
                        "field": ".".join(str(loc) for loc in error["loc"]),
                        "message": error["msg"],
                    }
                    for error in exc.errors()
                ],
            },
        ) from exc


def parse_consumption_request(payload: dict[str, Any]) -> ConsumptionRequest:
    """
    Validate a get-consumption body.

    Raises:
        ValidationError: With ``details.required`` listing the required fields
    """
    missing = _missing(payload, CONSUMPTION_REQUIRED)
    if missing:
        raise ValidationError(
            message="Missing required parameters",
            details={"required": CONSUMPTION_REQUIRED, "missing": missing},
        )
    return _validate(ConsumptionRequest, payload, CONSUMPTION_REQUIRED)


def parse_thirdparty_request(payload: dict[str, Any]) -> ThirdPartyConsumptionRequest:
    """Validate a third-party get-customer-consumption body."""
    missing = _missing(payload, ["dateFrom", "dateTo"])
    if len(_missing(payload, IDENTIFIER_FIELDS)) == len(IDENTIFIER_FIELDS):
        missing.insert(0, THIRDPARTY_REQUIRED[0])
    if missing:
        raise ValidationError(
            message="Missing required parameters",
            details={"required": THIRDPARTY_REQUIRED, "missing": missing},
        )
    return _validate(ThirdPartyConsumptionRequest, payload, THIRDPARTY_REQUIRED)


class ConsumptionService:
    """
    Proxies consumption requests to Eloverblik.

    Metering points are sent in batches and the per-batch ``result`` arrays
    concatenated in order. Upstream status errors become UpstreamError with
    the same status and a translated hint.
    """

    def __init__(
        self,
        client: EloverblikClient,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        batch_size: int | None = None,
    ) -> None:
        self.client = client
        self._sleep = sleep
        self.batch_size = batch_size or settings.eloverblik_batch_size

    async def _call(self, operation: Callable[[], Awaitable[T]], action: str) -> T:
        try:
            return await operation()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.warning(
                f"Eloverblik {action} failed with {status_code}",
                extra={"context": {"url": str(e.request.url), "status_code": status_code}},
            )
            raise UpstreamError(
                message=f"Failed to {action}",
                upstream_status=status_code,
                body=e.response.text if status_code in UPSTREAM_BODY_STATUSES else None,
                hint=UPSTREAM_HINTS.get(status_code),
            ) from e
        except httpx.TransportError as e:
            raise ServiceUnavailableError(
                message=f"Failed to {action}: Eloverblik is unreachable",
                service="eloverblik",
            ) from e

    async def _access_token(self, refresh_token: str, api: Api) -> str:
        token = await self._call(
            partial(self.client.get_access_token, refresh_token, api),
            "refresh access token",
        )
        if not token:
            raise UpstreamError(
                message="Invalid token response: missing access token",
                upstream_status=502,
            )
        return token

    async def _timeseries(
        self,
        access_token: str,
        metering_point_ids: list[str],
        date_from: str,
        date_to: str,
        aggregation: str,
        api: Api,
    ) -> list[dict[str, Any]]:
        result: list[dict[str, Any]] = []
        for batch in batched(metering_point_ids, self.batch_size):
            fetch = partial(
                self.client.get_timeseries,
                access_token,
                batch,
                date_from,
                date_to,
                aggregation,
                api,
            )
            result.extend(
                await self._call(
                    partial(retry_with_backoff, fetch, sleep=self._sleep),
                    "fetch consumption data",
                )
            )
        return result

    async def get_consumption(self, request: ConsumptionRequest) -> dict[str, Any]:
        """
        Consumption for metering points owned by the token's customer.

        Args:
            request: Validated get-consumption body

        Returns:
            Upstream ``result`` plus the query echo and ``totalConsumption``
        """
        date_from = request.date_from.isoformat()
        date_to = request.date_to.isoformat()

        access_token = await self._access_token(request.token, "customer")
        result = await self._timeseries(
            access_token,
            request.metering_points,
            date_from,
            date_to,
            request.aggregation,
            "customer",
        )

        return {
            "result": result,
            "dateFrom": date_from,
            "dateTo": date_to,
            "aggregation": request.aggregation,
            "totalConsumption": total_consumption(result),
            "metadata": {**METADATA, "dataDelay": "1-2 days typical"},
        }

    async def get_customer_consumption(
        self, request: ThirdPartyConsumptionRequest
    ) -> dict[str, Any]:
        """
        Consumption for a customer who authorized the site on Eloverblik.

        Metering points are resolved through the authorization when the body
        does not list them.

        Raises:
            ConfigurationError: When no third-party refresh token is configured
            NotFoundError: When the authorization covers no metering points
        """
        refresh_token = settings.eloverblik_thirdparty_refresh_token
        if not refresh_token:
            raise ConfigurationError(
                message="Third-party refresh token not configured",
                setting="ELOVERBLIK_THIRDPARTY_REFRESH_TOKEN",
            )

        identifier = request.identifier
        scope = request.scope
        date_from = request.date_from.isoformat()
        date_to = request.date_to.isoformat()

        access_token = await self._access_token(refresh_token, "thirdparty")

        metering_point_ids = request.metering_point_ids
        if not metering_point_ids:
            metering_point_ids = await self._call(
                partial(
                    self.client.get_metering_point_ids, access_token, scope, identifier
                ),
                "fetch metering points",
            )
        if not metering_point_ids:
            raise NotFoundError(
                message="No metering points found for customer",
                details={"identifier": identifier, "scope": scope},
            )

        logger.info(
            f"Fetching consumption for {len(metering_point_ids)} metering points",
            extra={"context": {"scope": scope, "date_from": date_from, "date_to": date_to}},
        )
        result = await self._timeseries(
            access_token,
            metering_point_ids,
            date_from,
            date_to,
            request.aggregation,
            "thirdparty",
        )

        return {
            "result": result,
            "dateFrom": date_from,
            "dateTo": date_to,
            "aggregation": request.aggregation,
            "meteringPoints": metering_point_ids,
            "authorizationId": request.authorization_id,
            "customerCVR": request.customer_cvr,
            "identifier": identifier,
            "totalConsumption": total_consumption(result),
            "metadata": {**METADATA, "fetchedAt": utc_now_iso()},
        }
