from __future__ import annotations

from saferoute.graph_builder import (
    DEFAULT_FLOOD_SEVERITY,
    FloodZone,
    Node,
    build_flood_zones,
    build_road_graph,
    build_traffic_map,
    edge_key,
    normalise_congestion,
)


def test_build_road_graph_from_mapping_uses_key_for_missing_id() -> None:
    graph = build_road_graph(
        {
            "a": {"lat": 30.0, "lng": 78.0, "neighbors": ["b"]},
            "b": {"id": "b", "lat": "30.001", "lon": 78.001, "neighbors": [{"id": "a"}, "a", "zz"]},
        }
    )

    assert set(graph.nodes) == {"a", "b"}
    assert graph.nodes["b"].lat == 30.001
    assert graph.nodes["b"].lng == 78.001
    # nested objects reduce to ids, duplicates dropped, dead ids kept as dead edges
    assert graph.adjacency["b"] == ("a", "zz")
    assert graph.adjacency["a"] == ("b",)
    assert len(graph) == 2


def test_build_road_graph_from_list_skips_malformed_records() -> None:
    graph = build_road_graph(
        [
            {"id": "ok", "lat": 1.0, "lng": 2.0, "neighbors": None},
            {"id": "no-coords", "neighbors": ["ok"]},
            {"id": "bad-lat", "lat": "north", "lng": 2.0},
            {"id": "bool-lat", "lat": True, "lng": 2.0},
            {"lat": 1.0, "lng": 2.0},
            "not-a-record",
        ]
    )

    assert list(graph.nodes) == ["ok"]
    assert graph.adjacency == {"ok": ()}


def test_build_road_graph_preserves_input_order_and_accepts_nodes() -> None:
    graph = build_road_graph(
        [
            Node(id="z", lat=0.0, lng=0.0, neighbors=("y",)),
            {"id": 7, "lat": 0.0, "lng": 0.1, "neighbors": [7, {"id": 8}, {"name": "no id"}]},
        ]
    )

    assert list(graph.nodes) == ["z", "7"]
    assert graph.adjacency["7"] == ("7", "8")


def test_build_road_graph_empty_inputs() -> None:
    assert len(build_road_graph(None)) == 0
    assert len(build_road_graph({})) == 0
    assert len(build_road_graph([])) == 0


def test_build_traffic_map_normalises_scores_and_last_write_wins() -> None:
    traffic = build_traffic_map(
        [
            {"edgeId": "a_b", "congestionScore": 0.4},
            {"edgeId": "b_c", "congestionScore": -3},
            {"edgeId": "c_d"},
            {"edgeId": "d_e", "congestionScore": 1.7},
            {"edgeId": "e_f", "congestionScore": "heavy"},
            {"congestionScore": 0.9},
            {"edgeId": "a_b", "congestionScore": 0.6},
        ]
    )

    assert traffic == {"a_b": 0.6, "b_c": 0.0, "c_d": 0.0, "d_e": 1.0, "e_f": 0.0}


def test_normalise_congestion_bounds() -> None:
    assert normalise_congestion(None) == 0.0
    assert normalise_congestion(float("nan")) == 0.0
    assert normalise_congestion(0.25) == 0.25
    assert normalise_congestion("0.5") == 0.5
    assert normalise_congestion(3) == 1.0


def test_build_flood_zones_parses_vertices_and_defaults_severity() -> None:
    zones = build_flood_zones(
        [
            {
                "polygon": [{"lat": 0, "lng": 0}, {"lat": 0, "lon": 1}, [1, 1], {"lat": "x", "lng": 2}],
                "severity": 2,
            },
            {"polygon": [{"lat": 0, "lng": 0}, {"lat": 1, "lng": 1}], "severity": 0},
            {"polygon": "not-a-polygon", "severity": -1},
            FloodZone(polygon=((0.0, 0.0), (0.0, 1.0), (1.0, 0.0)), severity=0.5),
            "ignored",
        ]
    )

    assert len(zones) == 4
    assert zones[0].polygon == ((0.0, 0.0), (0.0, 1.0), (1.0, 1.0))
    assert zones[0].severity == 2.0
    assert zones[1].severity == DEFAULT_FLOOD_SEVERITY
    assert len(zones[1].polygon) == 2
    assert zones[2].polygon == ()
    assert zones[2].severity == DEFAULT_FLOOD_SEVERITY
    assert zones[3].severity == 0.5


def test_edge_key_format() -> None:
    assert edge_key("n1", "n2") == "n1_n2"
