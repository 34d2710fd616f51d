from __future__ import annotations

import copy
import json
import os
from datetime import UTC, datetime
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any

from .route_errors import RouteDataError
from .settings import settings

ROADS_FILE = "roads.json"
TRAFFIC_FILE = "traffic.json"
FLOODS_FILE = "floods.json"
ROUTE_REQUESTS_LOG = "route_requests.jsonl"
WEATHER_LOG = "weather_logs.jsonl"


def _iso_utc_now() -> str:
    return datetime.now(UTC).isoformat()


class RoadStore:
    """JSON-file store for road nodes, traffic, flood zones and request logs.

    ``roads.json`` holds either an object keyed by node id or a list of node
    records; ``traffic.json`` an object keyed by edge id; ``floods.json`` a list
    of ``{polygon, severity}`` records. Missing files read as empty.
    """

    def __init__(self, base_dir: str | Path) -> None:
        self.base_dir = Path(base_dir)
        self._lock = Lock()

    def _path(self, name: str) -> Path:
        return self.base_dir / name

    def _read_json(self, name: str, *, default: Any) -> Any:
        path = self._path(name)
        if not path.exists():
            return copy.deepcopy(default)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise RouteDataError(
                reason_code="road_store_unavailable",
                message=f"cannot read {name}: {e}",
                details={"path": str(path)},
            ) from e
        if not text.strip():
            return copy.deepcopy(default)
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise RouteDataError(
                reason_code="road_store_corrupt",
                message=f"{name} is not valid JSON",
                details={"path": str(path), "error": str(e)},
            ) from e

    def _write_json(self, name: str, payload: Any) -> None:
        path = self._path(name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(path.suffix + ".tmp")
            tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            os.replace(tmp, path)
        except OSError as e:
            raise RouteDataError(
                reason_code="road_store_unavailable",
                message=f"cannot write {name}: {e}",
                details={"path": str(path)},
            ) from e

    def _append_jsonl(self, name: str, row: dict[str, Any]) -> None:
        path = self._path(name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(row, default=str) + "\n")
        except OSError as e:
            raise RouteDataError(
                reason_code="road_store_unavailable",
                message=f"cannot append to {name}: {e}",
                details={"path": str(path)},
            ) from e

    def _read_jsonl(self, name: str) -> list[dict[str, Any]]:
        path = self._path(name)
        if not path.exists():
            return []
        rows: list[dict[str, Any]] = []
        for line in path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            try:
                row = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(row, dict):
                rows.append(row)
        return rows

    # -- roads ---------------------------------------------------------------

    def load_roads(self) -> dict[str, Any]:
        raw = self._read_json(ROADS_FILE, default={})
        if isinstance(raw, dict):
            return raw
        if isinstance(raw, list):
            out: dict[str, Any] = {}
            for record in raw:
                if isinstance(record, dict) and record.get("id") is not None:
                    out[str(record["id"])] = record
            return out
        raise RouteDataError(
            reason_code="road_store_corrupt",
            message=f"{ROADS_FILE} must hold an object or a list",
            details={"path": str(self._path(ROADS_FILE))},
        )

    def save_roads(self, roads: dict[str, Any] | list[dict[str, Any]]) -> None:
        with self._lock:
            self._write_json(ROADS_FILE, roads)

    # -- traffic -------------------------------------------------------------

    def _traffic_docs(self) -> dict[str, dict[str, Any]]:
        raw = self._read_json(TRAFFIC_FILE, default={})
        if isinstance(raw, dict):
            return {str(k): dict(v, edgeId=v.get("edgeId", k)) for k, v in raw.items() if isinstance(v, dict)}
        if isinstance(raw, list):
            return {str(v.get("edgeId")): v for v in raw if isinstance(v, dict) and v.get("edgeId") is not None}
        raise RouteDataError(
            reason_code="road_store_corrupt",
            message=f"{TRAFFIC_FILE} must hold an object or a list",
            details={"path": str(self._path(TRAFFIC_FILE))},
        )

    def load_traffic(self) -> list[dict[str, Any]]:
        return list(self._traffic_docs().values())

    def upsert_traffic(self, payload: dict[str, Any]) -> dict[str, Any]:
        edge_id = payload.get("edgeId")
        if edge_id is None or not str(edge_id).strip():
            raise RouteDataError(
                reason_code="traffic_record_invalid",
                message="body.edgeId required",
            )
        key = str(edge_id).strip()
        doc = {**payload, "edgeId": key, "updatedAt": _iso_utc_now()}
        with self._lock:
            current = self._traffic_docs()
            current[key] = doc
            self._write_json(TRAFFIC_FILE, current)
        return doc

    # -- floods --------------------------------------------------------------

    def load_floods(self) -> list[dict[str, Any]]:
        raw = self._read_json(FLOODS_FILE, default=[])
        if isinstance(raw, dict):
            raw = list(raw.values())
        if not isinstance(raw, list):
            raise RouteDataError(
                reason_code="road_store_corrupt",
                message=f"{FLOODS_FILE} must hold a list",
                details={"path": str(self._path(FLOODS_FILE))},
            )
        return [v for v in raw if isinstance(v, dict)]

    def save_floods(self, floods: list[dict[str, Any]]) -> None:
        with self._lock:
            self._write_json(FLOODS_FILE, floods)

    # -- logs ----------------------------------------------------------------

    def append_route_request(
        self,
        *,
        src: dict[str, float],
        dst: dict[str, float],
        result_meta: dict[str, Any],
    ) -> dict[str, Any]:
        row = {"src": src, "dst": dst, "result_meta": result_meta, "created_at": _iso_utc_now()}
        with self._lock:
            self._append_jsonl(ROUTE_REQUESTS_LOG, row)
        return row

    def route_requests(self) -> list[dict[str, Any]]:
        return self._read_jsonl(ROUTE_REQUESTS_LOG)

    def append_weather_log(
        self,
        *,
        lat: float,
        lon: float,
        raw: dict[str, Any],
        current: dict[str, Any] | None,
    ) -> dict[str, Any]:
        row = {"lat": lat, "lon": lon, "fetched_at": _iso_utc_now(), "raw": raw, "current": current}
        with self._lock:
            self._append_jsonl(WEATHER_LOG, row)
        return row

    def weather_logs(self) -> list[dict[str, Any]]:
        return self._read_jsonl(WEATHER_LOG)


@lru_cache(maxsize=None)
def _shared_store(base_dir: str) -> RoadStore:
    return RoadStore(base_dir)


def default_road_store() -> RoadStore:
    """Process-wide store for the configured directory; requests share its lock."""
    return _shared_store(str(settings.resolved_road_store_dir()))
