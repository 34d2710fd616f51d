from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

EARTH_RADIUS_M = 6_371_000.0

LatLng = tuple[float, float]


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = phi2 - phi1
    dlambda = math.radians(lng2 - lng1)
    a = (
        math.sin(dphi / 2.0) ** 2
        + (math.cos(phi1) * math.cos(phi2) * (math.sin(dlambda / 2.0) ** 2))
    )
    return 2.0 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(max(0.0, a))))


def as_lat_lng(point: Any) -> LatLng:
    """Coerce a node, ``{lat, lng}`` mapping or ``(lat, lng)`` pair into a tuple."""
    if isinstance(point, dict):
        lng = point.get("lng", point.get("lon"))
        return float(point["lat"]), float(lng)
    if hasattr(point, "lat") and hasattr(point, "lng"):
        return float(point.lat), float(point.lng)
    lat, lng = point
    return float(lat), float(lng)


def distance_between(a: Any, b: Any) -> float:
    lat1, lng1 = as_lat_lng(a)
    lat2, lng2 = as_lat_lng(b)
    return haversine_m(lat1, lng1, lat2, lng2)


def midpoint(a: Any, b: Any) -> LatLng:
    lat1, lng1 = as_lat_lng(a)
    lat2, lng2 = as_lat_lng(b)
    return (lat1 + lat2) / 2.0, (lng1 + lng2) / 2.0


def point_in_polygon(lat: float, lng: float, polygon: Sequence[LatLng]) -> bool:
    """Even-odd ray casting with longitude as x and latitude as y.

    An edge only counts when its endpoints straddle the ray under the half-open
    rule ``(yi > y) != (yj > y)``; horizontal edges never satisfy it, so the
    crossing computation never divides by zero.
    """
    n = len(polygon)
    if n < 3:
        return False

    inside = False
    j = n - 1
    for i in range(n):
        yi, xi = polygon[i]
        yj, xj = polygon[j]
        if (yi > lat) != (yj > lat):
            x_cross = xi + (lat - yi) * (xj - xi) / (yj - yi)
            if lng < x_cross:
                inside = not inside
        j = i
    return inside
