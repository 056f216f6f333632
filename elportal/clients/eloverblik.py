"""
Async client for the Eloverblik metering data API.

Eloverblik has two APIs with the same shape: the customer API, used with a
refresh token the customer generated on eloverblik.dk, and the third-party
API, used with the site's own refresh token and customer authorizations.
Both exchange the refresh token for a short-lived access token first.
"""

from typing import Any, Literal

import httpx

from elportal.config import settings

Api = Literal["customer", "thirdparty"]

API_PREFIXES: dict[str, str] = {
    "customer": "/customerapi/api",
    "thirdparty": "/thirdpartyapi/api",
}


class EloverblikClient:
    """Thin wrapper around httpx.AsyncClient for api.eloverblik.dk."""

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
        self.base_url = (base_url or settings.eloverblik_base_url).rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Accept": "application/json", "api-version": "1.0"},
            timeout=timeout or settings.upstream_timeout_seconds,
            transport=transport,
        )

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "EloverblikClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    @staticmethod
    def _auth(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    async def get_access_token(self, refresh_token: str, api: Api) -> str | None:
        """
        Exchange a refresh token for an access token.

        Returns:
            The access token, or None when the response carries none

        Raises:
            httpx.HTTPStatusError: On any non-2xx response
        """
        response = await self.client.get(
            f"{API_PREFIXES[api]}/token", headers=self._auth(refresh_token)
        )
        response.raise_for_status()
        data = response.json()
        return data.get("result") or data.get("access_token") or data.get("token")

    async def get_metering_point_ids(
        self, access_token: str, scope: str, identifier: str
    ) -> list[str]:
        """
        Metering points covered by a third-party authorization.

        Args:
            access_token: Third-party access token
            scope: ``authorizationId`` or ``customerCVR``
            identifier: Value for the scope
        """
        response = await self.client.get(
            f"{API_PREFIXES['thirdparty']}/authorization/authorization/"
            f"meteringpointids/{scope}/{identifier}",
            headers=self._auth(access_token),
        )
        response.raise_for_status()
        return response.json().get("result") or []

    async def get_timeseries(
        self,
        access_token: str,
        metering_point_ids: list[str],
        date_from: str,
        date_to: str,
        aggregation: str,
        api: Api,
    ) -> list[dict[str, Any]]:
        """
        Fetch time series for a batch of metering points.

        Returns:
            The upstream ``result`` array, one entry per metering point

        Raises:
            httpx.HTTPStatusError: On any non-2xx response
        """
        response = await self.client.post(
            f"{API_PREFIXES[api]}/meterdata/gettimeseries/"
            f"{date_from}/{date_to}/{aggregation}",
            headers=self._auth(access_token),
            json={"meteringPoints": {"meteringPoint": metering_point_ids}},
        )
        response.raise_for_status()
        return response.json().get("result") or []
