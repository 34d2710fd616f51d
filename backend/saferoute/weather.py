from __future__ import annotations

from typing import Any

import httpx

from .route_errors import RouteDataError


class OpenMeteoClient:
    def __init__(
        self,
        *,
        base_url: str,
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_s, connect=5.0),
            headers={"accept": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_current_weather(self, *, lat: float, lon: float) -> dict[str, Any]:
        """Return the full Open-Meteo forecast payload with ``current_weather`` requested."""
        params = {"latitude": lat, "longitude": lon, "current_weather": "true"}
        try:
            resp = await self._client.get(self.base_url, params=params)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise RouteDataError(
                reason_code="weather_source_unavailable",
                message=f"Open-Meteo {e.response.status_code}",
                details={"url": self.base_url},
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise RouteDataError(
                reason_code="weather_source_unavailable",
                message=f"Open-Meteo request failed: {type(e).__name__}: {e}",
                details={"url": self.base_url},
            ) from e

        if not isinstance(data, dict):
            raise RouteDataError(
                reason_code="weather_source_unavailable",
                message="Open-Meteo returned a non-object payload",
                details={"url": self.base_url},
            )
        return data


def current_weather(payload: dict[str, Any]) -> dict[str, Any] | None:
    current = payload.get("current_weather")
    return current if isinstance(current, dict) else None
