from __future__ import annotations

import math

import pytest

from saferoute.cost_model import (
    CONGESTION_WEIGHT,
    FLOOD_SEVERITY_WEIGHT,
    congestion_for_edge,
    edge_cost,
    flood_multiplier,
)
from saferoute.geo import haversine_m
from saferoute.graph_builder import FloodZone, Node

A = Node(id="A", lat=30.3165, lng=78.0322)
B = Node(id="B", lat=30.3165, lng=78.0422)
BASE_AB = haversine_m(A.lat, A.lng, B.lat, B.lng)


def _zone_around_midpoint(severity: float = 1.0) -> FloodZone:
    mid_lat = (A.lat + B.lat) / 2.0
    mid_lng = (A.lng + B.lng) / 2.0
    d = 0.002
    return FloodZone(
        polygon=(
            (mid_lat - d, mid_lng - d),
            (mid_lat - d, mid_lng + d),
            (mid_lat + d, mid_lng + d),
            (mid_lat + d, mid_lng - d),
        ),
        severity=severity,
    )


def test_edge_cost_without_context_is_distance() -> None:
    assert edge_cost(A, B, {}, ()) == pytest.approx(BASE_AB)
    assert edge_cost(A, A, {}, ()) == 0.0


def test_edge_cost_missing_endpoint_is_impassable() -> None:
    assert math.isinf(edge_cost(A, None, {}, ()))
    assert math.isinf(edge_cost(None, B, {}, ()))


def test_congestion_lookup_tries_both_directions() -> None:
    assert congestion_for_edge("A", "B", {"A_B": 0.3}) == 0.3
    assert congestion_for_edge("A", "B", {"B_A": 0.7}) == 0.7
    assert congestion_for_edge("A", "B", {"A_B": 0.2, "B_A": 0.9}) == 0.2
    assert congestion_for_edge("A", "B", {"A_C": 0.9}) == 0.0


def test_edge_cost_congestion_multiplier() -> None:
    cost = edge_cost(A, B, {"B_A": 0.5}, ())
    assert cost == pytest.approx(BASE_AB * (1.0 + CONGESTION_WEIGHT * 0.5))
    assert cost == pytest.approx(BASE_AB * 2.0)


def test_edge_cost_flood_multiplier_severity_one() -> None:
    cost = edge_cost(A, B, {}, (_zone_around_midpoint(1.0),))
    assert cost == pytest.approx(BASE_AB * (1.0 + FLOOD_SEVERITY_WEIGHT))
    assert cost > BASE_AB


def test_overlapping_flood_zones_compound() -> None:
    zones = (_zone_around_midpoint(1.0), _zone_around_midpoint(0.5))
    cost = edge_cost(A, B, {"A_B": 1.0}, zones)
    assert cost == pytest.approx(BASE_AB * 3.0 * 6.0 * 3.5)


def test_flood_zone_away_from_midpoint_or_degenerate_has_no_effect() -> None:
    far = FloodZone(polygon=((0.0, 0.0), (0.0, 1.0), (1.0, 1.0)), severity=4.0)
    degenerate = FloodZone(polygon=((30.0, 78.0), (31.0, 79.0)), severity=4.0)
    assert edge_cost(A, B, {}, (far, degenerate)) == pytest.approx(BASE_AB)
    assert flood_multiplier(0.5, 0.9, (far,)) == pytest.approx(1.0 + FLOOD_SEVERITY_WEIGHT * 4.0)


def test_edge_cost_monotonic_in_congestion_and_severity() -> None:
    costs = [edge_cost(A, B, {"A_B": c}, ()) for c in (0.0, 0.1, 0.5, 0.9, 1.0)]
    assert costs == sorted(costs)

    severities = [edge_cost(A, B, {}, (_zone_around_midpoint(s),)) for s in (0.1, 0.5, 1.0, 2.0, 5.0)]
    assert severities == sorted(severities)
    assert severities[0] > BASE_AB
