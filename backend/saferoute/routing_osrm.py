# backend/saferoute/routing_osrm.py
from __future__ import annotations

import asyncio
from typing import Any, Final

import httpx


class OSRMError(RuntimeError):
    pass


class OSRMRetryableError(OSRMError):
    """An OSRM error that is likely transient and safe to retry."""

    pass


_RETRYABLE_STATUS: Final[set[int]] = {408, 425, 429, 500, 502, 503, 504}


def _format_osrm_error(resp: httpx.Response) -> str:
    """Best-effort decode of OSRM JSON error payloads."""
    try:
        data = resp.json()
        if isinstance(data, dict):
            code = data.get("code")
            message = data.get("message")
            if code and message:
                return f"OSRM {resp.status_code} {code}: {message}"
            if code:
                return f"OSRM {resp.status_code} {code}"
            if message:
                return f"OSRM {resp.status_code}: {message}"
    except ValueError:
        # fall through to text
        pass

    body = (resp.text or "").strip().replace("\n", " ")
    if len(body) > 240:
        body = body[:240] + "..."
    if body:
        return f"OSRM {resp.status_code}: {body}"
    return f"OSRM HTTP {resp.status_code}"


class OSRMClient:
    def __init__(
        self,
        *,
        base_url: str,
        profile: str = "driving",
        timeout_s: float = 15.0,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.profile = profile
        self.max_retries = max(1, int(max_retries))
        self._backoff_base_s = 0.25

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_s, connect=5.0),
            headers={"accept": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def route_url(self, *, origin_lat: float, origin_lon: float, dest_lat: float, dest_lon: float) -> str:
        coords = f"{origin_lon},{origin_lat};{dest_lon},{dest_lat}"
        return f"{self.base_url}/route/v1/{self.profile}/{coords}"

    async def fetch_route_payload(
        self,
        *,
        origin_lat: float,
        origin_lon: float,
        dest_lat: float,
        dest_lon: float,
    ) -> dict[str, Any]:
        """Fetch the raw OSRM ``/route`` response (``code == "Ok"`` guaranteed)."""
        url = self.route_url(
            origin_lat=origin_lat,
            origin_lon=origin_lon,
            dest_lat=dest_lat,
            dest_lon=dest_lon,
        )
        params = {"overview": "full", "geometries": "geojson"}
        last_err: Exception | None = None

        for attempt in range(self.max_retries):
            try:
                resp = await self._client.get(url, params=params)

                # Fast-fail on most 4xx: these are usually request errors
                # (bad coordinates, no segment, etc.)
                if 400 <= resp.status_code < 500 and resp.status_code not in _RETRYABLE_STATUS:
                    raise OSRMError(_format_osrm_error(resp))

                if resp.status_code in _RETRYABLE_STATUS:
                    raise OSRMRetryableError(_format_osrm_error(resp))

                resp.raise_for_status()
                data = resp.json()

                if not isinstance(data, dict) or data.get("code") != "Ok":
                    code = data.get("code") if isinstance(data, dict) else None
                    message = data.get("message") if isinstance(data, dict) else None
                    raise OSRMError(f"OSRM error code={code} message={message}")
                return data

            except OSRMRetryableError as e:
                last_err = e
            except (httpx.TimeoutException, httpx.NetworkError, httpx.TransportError) as e:
                last_err = e
            except httpx.HTTPStatusError as e:
                raise OSRMError(str(e)) from e
            except ValueError as e:
                raise OSRMError(f"OSRM returned invalid JSON: {e}") from e

            if attempt < self.max_retries - 1:
                await asyncio.sleep(min(self._backoff_base_s * (2**attempt), 2.0))

        # httpx exceptions can stringify to "" (e.g. some timeouts), so include the type.
        if last_err is None:
            detail = "unknown error"
        else:
            msg = str(last_err).strip()
            detail = f"{type(last_err).__name__}: {msg}" if msg else f"{type(last_err).__name__}: {last_err!r}"
        raise OSRMError(
            f"OSRM request failed after {self.max_retries} retries (base={self.base_url}): {detail}"
        )

    async def fetch_routes(
        self,
        *,
        origin_lat: float,
        origin_lon: float,
        dest_lat: float,
        dest_lon: float,
    ) -> list[dict[str, Any]]:
        data = await self.fetch_route_payload(
            origin_lat=origin_lat,
            origin_lon=origin_lon,
            dest_lat=dest_lat,
            dest_lon=dest_lon,
        )
        routes = data.get("routes", [])
        if not isinstance(routes, list) or not routes:
            raise OSRMError("OSRM returned no routes")
        return routes


def osrm_fallback_route(route: dict[str, Any]) -> dict[str, Any]:
    """Convert one OSRM route into the ``{path, distance_m, method}`` fallback shape.

    GeoJSON coordinates come as ``[lng, lat]``.
    """
    geom = route.get("geometry")
    if not isinstance(geom, dict):
        raise OSRMError("OSRM route missing geometry")
    coords = geom.get("coordinates")
    if not isinstance(coords, list) or not coords:
        raise OSRMError("OSRM geometry missing coordinates")

    path: list[dict[str, float]] = []
    for pt in coords:
        if (
            isinstance(pt, (list, tuple))
            and len(pt) >= 2
            and isinstance(pt[0], (int, float))
            and isinstance(pt[1], (int, float))
        ):
            path.append({"lat": float(pt[1]), "lng": float(pt[0])})
    if not path:
        raise OSRMError("OSRM geometry invalid")

    distance = route.get("distance")
    duration = route.get("duration")
    return {
        "path": path,
        "distance_m": float(distance) if isinstance(distance, (int, float)) else None,
        "duration_s": float(duration) if isinstance(duration, (int, float)) else None,
        "method": "OSRM",
    }
