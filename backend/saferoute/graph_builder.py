from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from .logging_utils import log_event

DEFAULT_FLOOD_SEVERITY = 1.0


@dataclass(frozen=True)
class Node:
    id: str
    lat: float
    lng: float
    neighbors: tuple[str, ...] = ()


@dataclass(frozen=True)
class FloodZone:
    polygon: tuple[tuple[float, float], ...]
    severity: float = DEFAULT_FLOOD_SEVERITY


@dataclass(frozen=True)
class RoadGraph:
    nodes: dict[str, Node]
    adjacency: dict[str, tuple[str, ...]]

    def __len__(self) -> int:
        return len(self.nodes)


def edge_key(a: str, b: str) -> str:
    return f"{a}_{b}"


def _as_float(raw: object) -> float | None:
    if not isinstance(raw, (int, float, str, Decimal)) or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value


def _neighbor_id(raw: object) -> str | None:
    if isinstance(raw, Mapping):
        raw = raw.get("id")
    if raw is None or isinstance(raw, bool):
        return None
    ref = str(raw).strip()
    return ref or None


def _parse_neighbors(raw: object) -> tuple[str, ...]:
    if raw is None or isinstance(raw, (str, bytes, Mapping)):
        return ()
    try:
        items = list(raw)  # type: ignore[call-overload]
    except TypeError:
        return ()
    seen: dict[str, None] = {}
    for item in items:
        ref = _neighbor_id(item)
        if ref is not None and ref not in seen:
            seen[ref] = None
    return tuple(seen)


def _parse_node(raw: Mapping[str, Any], *, fallback_id: str | None = None) -> Node | None:
    node_id_raw = raw.get("id", fallback_id)
    if node_id_raw is None:
        return None
    node_id = str(node_id_raw).strip()
    if not node_id:
        return None
    lat = _as_float(raw.get("lat"))
    lng = _as_float(raw.get("lng", raw.get("lon")))
    if lat is None or lng is None:
        return None
    return Node(id=node_id, lat=lat, lng=lng, neighbors=_parse_neighbors(raw.get("neighbors")))


def _iter_node_records(raw_nodes: object) -> Iterable[tuple[str | None, object]]:
    if isinstance(raw_nodes, Mapping):
        for key, record in raw_nodes.items():
            yield str(key), record
        return
    for record in raw_nodes or ():  # type: ignore[union-attr]
        yield None, record


def build_road_graph(raw_nodes: Mapping[str, Any] | Iterable[Any] | None) -> RoadGraph:
    """Normalise raw road records into a node mapping plus an adjacency mapping.

    ``raw_nodes`` may be a mapping keyed by document id (the key stands in for a
    missing ``id`` field) or a plain iterable of records. Records that are not
    mappings, or that lack an id or numeric coordinates, are skipped. A later
    record with an already-seen id replaces the earlier one.
    """
    nodes: dict[str, Node] = {}
    skipped = 0
    for fallback_id, record in _iter_node_records(raw_nodes):
        if isinstance(record, Node):
            node: Node | None = record
        elif isinstance(record, Mapping):
            node = _parse_node(record, fallback_id=fallback_id)
        else:
            node = None
        if node is None:
            skipped += 1
            continue
        nodes[node.id] = node

    if skipped:
        log_event("road_graph_records_skipped", level=logging.DEBUG, skipped=skipped, kept=len(nodes))

    adjacency = {node_id: node.neighbors for node_id, node in nodes.items()}
    return RoadGraph(nodes=nodes, adjacency=adjacency)


def normalise_congestion(raw: object) -> float:
    value = _as_float(raw)
    if value is None or value <= 0.0:
        return 0.0
    return min(1.0, value)


def build_traffic_map(records: Iterable[Mapping[str, Any]] | None) -> dict[str, float]:
    traffic: dict[str, float] = {}
    for record in records or ():
        if not isinstance(record, Mapping):
            continue
        key_raw = record.get("edgeId", record.get("edge_id"))
        if key_raw is None:
            continue
        key = str(key_raw).strip()
        if not key:
            continue
        score_raw = record.get("congestionScore", record.get("congestion_score"))
        # last write wins
        traffic[key] = normalise_congestion(score_raw)
    return traffic


def _parse_vertex(raw: object) -> tuple[float, float] | None:
    if isinstance(raw, Mapping):
        lat = _as_float(raw.get("lat"))
        lng = _as_float(raw.get("lng", raw.get("lon")))
    elif isinstance(raw, (list, tuple)) and len(raw) >= 2:
        lat = _as_float(raw[0])
        lng = _as_float(raw[1])
    else:
        return None
    if lat is None or lng is None:
        return None
    return (lat, lng)


def _parse_severity(raw: object) -> float:
    value = _as_float(raw)
    if value is None or value <= 0.0:
        return DEFAULT_FLOOD_SEVERITY
    return value


def build_flood_zones(records: Iterable[Any] | None) -> tuple[FloodZone, ...]:
    zones: list[FloodZone] = []
    for record in records or ():
        if isinstance(record, FloodZone):
            zones.append(record)
            continue
        if not isinstance(record, Mapping):
            continue
        polygon_raw = record.get("polygon") or ()
        if isinstance(polygon_raw, (str, bytes, Mapping)):
            polygon_raw = ()
        vertices = tuple(
            vertex for vertex in (_parse_vertex(item) for item in polygon_raw) if vertex is not None
        )
        zones.append(FloodZone(polygon=vertices, severity=_parse_severity(record.get("severity"))))
    return tuple(zones)
