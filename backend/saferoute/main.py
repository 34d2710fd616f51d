from __future__ import annotations

import logging
import math
import time
import uuid
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .logging_utils import log_event
from .models import (
    HealthResponse,
    OkResponse,
    RouteRequest,
    RouteResponse,
    SafeRoute,
    WeatherResponse,
)
from .road_store import RoadStore, default_road_store
from .route_errors import RouteDataError
from .routing_osrm import OSRMClient, OSRMError, osrm_fallback_route
from .safe_route import compute_safe_route
from .settings import settings
from .weather import OpenMeteoClient, current_weather


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.osrm = OSRMClient(
        base_url=settings.osrm_base_url,
        profile=settings.osrm_profile,
        timeout_s=settings.osrm_timeout_s,
        max_retries=settings.osrm_max_retries,
    )
    app.state.weather = OpenMeteoClient(
        base_url=settings.open_meteo_url,
        timeout_s=settings.weather_timeout_s,
    )
    yield
    await app.state.osrm.aclose()
    await app.state.weather.aclose()


app = FastAPI(title="Safe Route Backend", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

_REASON_STATUS: dict[str, int] = {
    "traffic_record_invalid": 400,
    "weather_source_unavailable": 502,
    "osrm_fallback_failed": 502,
}


@app.exception_handler(RouteDataError)
async def route_data_error_handler(request: Request, exc: RouteDataError) -> JSONResponse:
    status = _REASON_STATUS.get(exc.reason_code, 503)
    log_event(
        "route_data_error",
        level=logging.WARNING,
        path=request.url.path,
        reason_code=exc.reason_code,
        detail=exc.message,
        status=status,
    )
    return JSONResponse(status_code=status, content={"error": exc.message, "reason_code": exc.reason_code})


def osrm_client(request: Request) -> OSRMClient:
    osrm: OSRMClient | None = getattr(request.app.state, "osrm", None)  # type: ignore[attr-defined]
    if osrm is None:
        raise HTTPException(status_code=503, detail="OSRM client not initialised")
    return osrm


def weather_client(request: Request) -> OpenMeteoClient:
    client: OpenMeteoClient | None = getattr(request.app.state, "weather", None)  # type: ignore[attr-defined]
    if client is None:
        raise HTTPException(status_code=503, detail="weather client not initialised")
    return client


def road_store() -> RoadStore:
    return default_road_store()


OSRMDep = Annotated[OSRMClient, Depends(osrm_client)]
WeatherDep = Annotated[OpenMeteoClient, Depends(weather_client)]
StoreDep = Annotated[RoadStore, Depends(road_store)]


def _finite_query_float(raw: str | None) -> float | None:
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


@app.get("/", response_model=HealthResponse)
async def root() -> HealthResponse:
    return HealthResponse(
        status="ok",
        now=datetime.now(UTC).isoformat(),
        message="Safe route backend is running",
    )


@app.get("/weather", response_model=WeatherResponse)
async def weather(
    weather_api: WeatherDep,
    store: StoreDep,
    lat: str | None = None,
    lon: str | None = None,
) -> WeatherResponse:
    lat_f = _finite_query_float(lat)
    lon_f = _finite_query_float(lon)
    if lat_f is None or lon_f is None:
        raise HTTPException(status_code=400, detail="lat and lon required")

    payload = await weather_api.fetch_current_weather(lat=lat_f, lon=lon_f)
    current = current_weather(payload)
    store.append_weather_log(lat=lat_f, lon=lon_f, raw=payload, current=current)
    log_event("weather_request", lat=lat_f, lon=lon_f, has_current=current is not None)
    return WeatherResponse(current=current)


@app.post("/traffic", response_model=OkResponse)
async def ingest_traffic(store: StoreDep, payload: Annotated[dict[str, Any], Body()]) -> OkResponse:
    if payload.get("edgeId") is None:
        raise HTTPException(status_code=400, detail="body.edgeId required")
    doc = store.upsert_traffic(payload)
    log_event("traffic_ingested", edge_id=doc["edgeId"], congestion_score=doc.get("congestionScore"))
    return OkResponse()


@app.get("/osrm-route")
async def osrm_route(
    osrm: OSRMDep,
    startLat: str | None = None,
    startLon: str | None = None,
    endLat: str | None = None,
    endLon: str | None = None,
) -> dict[str, Any]:
    coords = [_finite_query_float(v) for v in (startLat, startLon, endLat, endLon)]
    if any(c is None for c in coords):
        raise HTTPException(status_code=400, detail="startLat,startLon,endLat,endLon required")
    start_lat, start_lon, end_lat, end_lon = coords
    try:
        return await osrm.fetch_route_payload(
            origin_lat=start_lat,  # type: ignore[arg-type]
            origin_lon=start_lon,  # type: ignore[arg-type]
            dest_lat=end_lat,  # type: ignore[arg-type]
            dest_lon=end_lon,  # type: ignore[arg-type]
        )
    except OSRMError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e


async def _osrm_fallback(osrm: OSRMClient, req: RouteRequest) -> dict[str, Any]:
    routes = await osrm.fetch_routes(
        origin_lat=req.src.lat,
        origin_lon=req.src.lng,
        dest_lat=req.dst.lat,
        dest_lon=req.dst.lng,
    )
    return osrm_fallback_route(routes[0])


def _fallback_response(
    store: RoadStore,
    req: RouteRequest,
    fallback: dict[str, Any],
    *,
    request_id: str,
    reason: str,
    t0: float,
) -> RouteResponse:
    store.append_route_request(
        src=req.src.model_dump(),
        dst=req.dst.model_dump(),
        result_meta={
            "method": "OSRM",
            "distance_m": fallback.get("distance_m"),
            "duration_s": fallback.get("duration_s"),
            "fallback_reason": reason,
        },
    )
    log_event(
        "route_request",
        request_id=request_id,
        method="OSRM",
        fallback_reason=reason,
        path_points=len(fallback["path"]),
        distance_m=fallback.get("distance_m"),
        duration_ms=round((time.perf_counter() - t0) * 1000, 2),
    )
    return RouteResponse(route=SafeRoute(**fallback))


@app.post("/route", response_model=RouteResponse)
async def compute_route(req: RouteRequest, osrm: OSRMDep, store: StoreDep) -> RouteResponse:
    request_id = str(uuid.uuid4())
    t0 = time.perf_counter()

    roads = store.load_roads()
    if not roads and settings.osrm_fallback_enabled:
        try:
            fallback = await _osrm_fallback(osrm, req)
        except OSRMError as e:
            log_event(
                "osrm_fallback_failed",
                level=logging.ERROR,
                request_id=request_id,
                reason="empty_graph",
                error=str(e),
            )
            raise HTTPException(
                status_code=502,
                detail="No roads available and OSRM fallback failed",
            ) from e
        return _fallback_response(store, req, fallback, request_id=request_id, reason="empty_graph", t0=t0)

    result = compute_safe_route(
        roads,
        store.load_traffic(),
        store.load_floods(),
        (req.src.lat, req.src.lng),
        (req.dst.lat, req.dst.lng),
    )

    if not result.found and settings.osrm_fallback_enabled:
        try:
            fallback = await _osrm_fallback(osrm, req)
        except OSRMError as e:
            # Keep the graph result; the client sees the empty path and status.
            log_event(
                "osrm_fallback_failed",
                level=logging.WARNING,
                request_id=request_id,
                reason=result.status.value,
                error=str(e),
            )
        else:
            return _fallback_response(
                store, req, fallback, request_id=request_id, reason=result.status.value, t0=t0
            )

    store.append_route_request(
        src=req.src.model_dump(),
        dst=req.dst.model_dump(),
        result_meta={
            "start": result.start,
            "end": result.end,
            "distance_m": result.distance_m,
            "length_m": result.length_m,
            "status": result.status.value,
            "method": result.method,
        },
    )
    log_event(
        "route_request",
        request_id=request_id,
        method=result.method,
        status=result.status.value,
        start=result.start,
        end=result.end,
        path_points=len(result.path),
        distance_m=result.distance_m,
        duration_ms=round((time.perf_counter() - t0) * 1000, 2),
    )
    return RouteResponse(route=SafeRoute(**result.as_dict()))
