"""
Async client for the Energi Data Service open market-data API.

Only the ProductionConsumptionSettlement dataset is used: hourly
production by source and gross consumption for Denmark.
"""

from typing import Any

import httpx

from elportal.config import settings

PRODUCTION_DATASET = "ProductionConsumptionSettlement"


class EnergiDataServiceClient:
    """Thin wrapper around httpx.AsyncClient for api.energidataservice.dk."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: API root (default from settings)
            timeout: Request timeout in seconds
            transport: Optional transport, e.g. httpx.MockTransport in tests
        """
        self.base_url = (base_url or settings.energidataservice_base_url).rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.upstream_timeout_seconds,
            transport=transport,
        )

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "EnergiDataServiceClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def fetch_production(self, start: str, end: str) -> Any:
        """
        Fetch hourly production records between two dates.

        Args:
            start: Inclusive start date (YYYY-MM-DD)
            end: Exclusive end date (YYYY-MM-DD)

        Returns:
            Decoded upstream JSON document

        Raises:
            httpx.HTTPStatusError: On any non-2xx response
        """
        response = await self.client.get(
            f"/dataset/{PRODUCTION_DATASET}",
            params={"start": start, "end": end, "sort": "HourUTC asc"},
        )
        response.raise_for_status()
        return response.json()
