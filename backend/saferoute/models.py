from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator


class LatLng(BaseModel):
    lat: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    lng: float = Field(..., ge=-180, le=180, allow_inf_nan=False)

    @model_validator(mode="before")
    @classmethod
    def accept_lon_alias(cls, value: object) -> object:
        if isinstance(value, dict) and "lng" not in value and "lon" in value:
            data = dict(value)
            data["lng"] = data.pop("lon")
            return data
        return value


class RouteRequest(BaseModel):
    src: LatLng
    dst: LatLng


class PathPoint(BaseModel):
    lat: float
    lng: float
    id: str | None = None


class SafeRoute(BaseModel):
    """Either the graph route or an OSRM substitute of the same outline."""

    path: list[PathPoint]
    distance_m: float | None = None
    method: Literal["Dijkstra", "OSRM"]
    start: str | None = None
    end: str | None = None
    length_m: float | None = None
    status: str | None = None
    duration_s: float | None = None


class RouteResponse(BaseModel):
    ok: bool = True
    route: SafeRoute


class OkResponse(BaseModel):
    ok: bool = True


class WeatherResponse(BaseModel):
    ok: bool = True
    current: dict[str, Any] | None = None


class HealthResponse(BaseModel):
    status: str
    now: str
    message: str
