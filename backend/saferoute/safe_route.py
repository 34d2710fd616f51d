from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from math import isinf
from typing import Any

from .cost_model import edge_cost
from .dijkstra import dijkstra_search
from .geo import as_lat_lng, haversine_m
from .graph_builder import Node, build_flood_zones, build_road_graph, build_traffic_map
from .logging_utils import log_event
from .route_errors import RouteDataError

ROUTE_METHOD = "Dijkstra"


class RouteStatus(str, Enum):
    OK = "ok"
    EMPTY_GRAPH = "empty_graph"
    UNREACHABLE = "unreachable"


@dataclass(frozen=True)
class RoutePoint:
    lat: float
    lng: float
    id: str


@dataclass(frozen=True)
class RouteResult:
    """``distance_m`` is the weighted search total in penalised metres; ``length_m``
    is the plain haversine length of ``path``. Both are ``None`` without a path.
    """

    start: str | None
    end: str | None
    distance_m: float | None
    length_m: float | None
    path: tuple[RoutePoint, ...]
    status: RouteStatus
    method: str = ROUTE_METHOD

    @property
    def found(self) -> bool:
        return bool(self.path)

    def as_dict(self) -> dict[str, Any]:
        return {
            "start": self.start,
            "end": self.end,
            "distance_m": self.distance_m,
            "length_m": self.length_m,
            "path": [{"lat": p.lat, "lng": p.lng, "id": p.id} for p in self.path],
            "status": self.status.value,
            "method": self.method,
        }


def closest_node(lat: float, lng: float, nodes: Iterable[Node]) -> Node | None:
    best: Node | None = None
    best_d = float("inf")
    for node in nodes:
        d = haversine_m(lat, lng, node.lat, node.lng)
        if d < best_d:
            best = node
            best_d = d
    return best


def reconstruct_path(predecessors: Mapping[str, str | None], goal: str) -> list[str]:
    path: list[str] = []
    seen: set[str] = set()
    node: str | None = goal
    while node is not None:
        if node in seen:
            raise RouteDataError(
                reason_code="route_reconstruction_cycle",
                message=f"predecessor chain loops back to {node!r}",
                details={"goal": goal},
            )
        seen.add(node)
        path.append(node)
        node = predecessors.get(node)
    path.reverse()
    return path


def _path_length_m(nodes: list[Node]) -> float:
    return sum(
        (haversine_m(a.lat, a.lng, b.lat, b.lng) for a, b in zip(nodes, nodes[1:])),
        0.0,
    )


def compute_safe_route(
    nodes: Mapping[str, Any] | Iterable[Any] | None,
    traffic_records: Iterable[Mapping[str, Any]] | None,
    flood_zones: Iterable[Any] | None,
    src: Any,
    dst: Any,
) -> RouteResult:
    """Compute the flood- and congestion-aware route between two points.

    ``src`` and ``dst`` are snapped to their nearest road nodes. The result is
    always returned, never raised: an empty node set yields
    :attr:`RouteStatus.EMPTY_GRAPH` with no start/end, a disconnected pair
    yields :attr:`RouteStatus.UNREACHABLE` with the snapped ids and an empty
    path. Callers are expected to fall back to an external router in both cases.
    """
    graph = build_road_graph(nodes)
    traffic = build_traffic_map(traffic_records)
    floods = build_flood_zones(flood_zones)

    src_lat, src_lng = as_lat_lng(src)
    dst_lat, dst_lng = as_lat_lng(dst)
    start = closest_node(src_lat, src_lng, graph.nodes.values())
    end = closest_node(dst_lat, dst_lng, graph.nodes.values())
    if start is None or end is None:
        return RouteResult(
            start=None,
            end=None,
            distance_m=None,
            length_m=None,
            path=(),
            status=RouteStatus.EMPTY_GRAPH,
        )

    def _cost(u: str, v: str) -> float:
        return edge_cost(graph.nodes.get(u), graph.nodes.get(v), traffic, floods)

    search = dijkstra_search(adjacency=graph.adjacency, start=start.id, goal=end.id, cost_fn=_cost)
    total_cost = search.distance_to(end.id)

    log_event(
        "safe_route_computed",
        level=logging.DEBUG,
        start=start.id,
        end=end.id,
        node_count=len(graph),
        traffic_edges=len(traffic),
        flood_zones=len(floods),
        visited=len(search.visited),
        reached=search.reached_goal,
    )

    if isinf(total_cost):
        return RouteResult(
            start=start.id,
            end=end.id,
            distance_m=None,
            length_m=None,
            path=(),
            status=RouteStatus.UNREACHABLE,
        )

    path_nodes = [graph.nodes[node_id] for node_id in reconstruct_path(search.predecessors, end.id)]
    return RouteResult(
        start=start.id,
        end=end.id,
        distance_m=total_cost,
        length_m=_path_length_m(path_nodes),
        path=tuple(RoutePoint(lat=n.lat, lng=n.lng, id=n.id) for n in path_nodes),
        status=RouteStatus.OK,
    )
