from __future__ import annotations

import asyncio
from typing import Any

import httpx
import pytest

from saferoute.routing_osrm import OSRMClient, OSRMError, osrm_fallback_route


def _ok_payload() -> dict[str, Any]:
    return {
        "code": "Ok",
        "routes": [
            {
                "distance": 1234.5,
                "duration": 180.0,
                "geometry": {"type": "LineString", "coordinates": [[78.03, 30.31], [78.05, 30.33]]},
            }
        ],
    }


def _client(handler) -> OSRMClient:
    client = OSRMClient(
        base_url="http://osrm.test/",
        profile="driving",
        max_retries=3,
        transport=httpx.MockTransport(handler),
    )
    client._backoff_base_s = 0.0
    return client


def _run(coro):
    return asyncio.run(coro)


def test_fetch_routes_builds_lon_lat_url() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_ok_payload())

    async def scenario() -> list[dict[str, Any]]:
        client = _client(handler)
        try:
            return await client.fetch_routes(origin_lat=30.31, origin_lon=78.03, dest_lat=30.33, dest_lon=78.05)
        finally:
            await client.aclose()

    routes = _run(scenario())
    assert routes[0]["distance"] == 1234.5
    assert seen[0].url.path == "/route/v1/driving/78.03,30.31;78.05,30.33"
    assert seen[0].url.params["geometries"] == "geojson"
    assert seen[0].url.params["overview"] == "full"


def test_retryable_status_is_retried_then_succeeds() -> None:
    attempts = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["n"] += 1
        if attempts["n"] < 3:
            return httpx.Response(503, json={"code": "Busy", "message": "try later"})
        return httpx.Response(200, json=_ok_payload())

    async def scenario() -> dict[str, Any]:
        client = _client(handler)
        try:
            return await client.fetch_route_payload(origin_lat=0.0, origin_lon=0.0, dest_lat=1.0, dest_lon=1.0)
        finally:
            await client.aclose()

    payload = _run(scenario())
    assert payload["code"] == "Ok"
    assert attempts["n"] == 3


def test_client_errors_fail_fast() -> None:
    attempts = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["n"] += 1
        return httpx.Response(400, json={"code": "InvalidQuery", "message": "bad coordinates"})

    async def scenario() -> None:
        client = _client(handler)
        try:
            await client.fetch_route_payload(origin_lat=0.0, origin_lon=0.0, dest_lat=1.0, dest_lon=1.0)
        finally:
            await client.aclose()

    with pytest.raises(OSRMError, match="InvalidQuery"):
        _run(scenario())
    assert attempts["n"] == 1


def test_exhausted_retries_and_non_ok_codes_raise() -> None:
    def always_down(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    def no_route(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"code": "NoRoute", "message": "Impossible route"})

    async def scenario(handler) -> None:
        client = _client(handler)
        try:
            await client.fetch_routes(origin_lat=0.0, origin_lon=0.0, dest_lat=1.0, dest_lon=1.0)
        finally:
            await client.aclose()

    with pytest.raises(OSRMError, match="after 3 retries"):
        _run(scenario(always_down))
    with pytest.raises(OSRMError, match="NoRoute"):
        _run(scenario(no_route))


def test_osrm_fallback_route_swaps_geojson_order() -> None:
    fallback = osrm_fallback_route(_ok_payload()["routes"][0])

    assert fallback["method"] == "OSRM"
    assert fallback["path"] == [{"lat": 30.31, "lng": 78.03}, {"lat": 30.33, "lng": 78.05}]
    assert fallback["distance_m"] == 1234.5
    assert fallback["duration_s"] == 180.0


def test_osrm_fallback_route_rejects_missing_geometry() -> None:
    with pytest.raises(OSRMError):
        osrm_fallback_route({"distance": 10.0})
    with pytest.raises(OSRMError):
        osrm_fallback_route({"geometry": {"coordinates": [["x", "y"]]}})
