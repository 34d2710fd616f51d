from __future__ import annotations

from dataclasses import dataclass
from typing import Any

FROZEN_REASON_CODES: frozenset[str] = frozenset(
    {
        "road_store_unavailable",
        "road_store_corrupt",
        "traffic_record_invalid",
        "weather_source_unavailable",
        "osrm_fallback_failed",
        "route_reconstruction_cycle",
        "route_data_unavailable",
    }
)


@dataclass
class RouteDataError(ValueError):
    reason_code: str
    message: str
    details: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        self.reason_code = normalize_reason_code(self.reason_code)

    def __str__(self) -> str:
        return self.message

    def as_detail(self) -> dict[str, Any]:
        out: dict[str, Any] = {"reason_code": self.reason_code, "message": self.message}
        if self.details:
            out["details"] = dict(self.details)
        return out


def normalize_reason_code(reason_code: str, *, default: str = "route_data_unavailable") -> str:
    code = str(reason_code or "").strip()
    if code in FROZEN_REASON_CODES:
        return code
    return default
