from __future__ import annotations

import math
from collections.abc import Mapping, Sequence

from .geo import haversine_m, midpoint, point_in_polygon
from .graph_builder import FloodZone, Node, edge_key

CONGESTION_WEIGHT = 2.0
FLOOD_SEVERITY_WEIGHT = 5.0


def congestion_for_edge(a: str, b: str, traffic_map: Mapping[str, float]) -> float:
    score = traffic_map.get(edge_key(a, b))
    if score is None:
        score = traffic_map.get(edge_key(b, a))
    return float(score) if score is not None else 0.0


def flood_multiplier(lat: float, lng: float, flood_zones: Sequence[FloodZone]) -> float:
    multiplier = 1.0
    # Overlapping zones compound, in input order.
    for zone in flood_zones:
        if point_in_polygon(lat, lng, zone.polygon):
            multiplier *= 1.0 + FLOOD_SEVERITY_WEIGHT * zone.severity
    return multiplier


def edge_cost(
    node_a: Node | None,
    node_b: Node | None,
    traffic_map: Mapping[str, float],
    flood_zones: Sequence[FloodZone],
) -> float:
    """Weighted traversal cost in metres of the edge ``node_a -> node_b``.

    Either endpoint being ``None`` (not present in the node mapping) makes the
    edge impassable.
    """
    if node_a is None or node_b is None:
        return math.inf

    base = haversine_m(node_a.lat, node_a.lng, node_b.lat, node_b.lng)
    base *= 1.0 + CONGESTION_WEIGHT * congestion_for_edge(node_a.id, node_b.id, traffic_map)

    mid_lat, mid_lng = midpoint(node_a, node_b)
    return base * flood_multiplier(mid_lat, mid_lng, flood_zones)
