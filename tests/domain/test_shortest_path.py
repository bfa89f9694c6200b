import pytest

from routeglyph.domain.entities.geography import Coordinate, RoadEdge, RoadNode
from routeglyph.domain.errors import NodeNotFoundError, NoPathError, PathSearchError
from routeglyph.domain.mechanics.mechanics_graph import create_road_graph
from routeglyph.domain.mechanics.mechanics_graph_builders import create_seed_road_graph
from routeglyph.domain.mechanics.mechanics_routers import InMemoryShortestPathAdapter
from routeglyph.domain.mechanics.mechanics_scoring import RouteObjectiveWeights

DISTANCE_ONLY = RouteObjectiveWeights(distance=1.0, elevation=0.0, turns=0.0, safety=0.0, u_turn=0.0)


@pytest.fixture
def router():
    return InMemoryShortestPathAdapter()


@pytest.fixture
def abc_graph():
    nodes = [
        RoadNode("A", Coordinate(0.0, 0.0)),
        RoadNode("B", Coordinate(0.0, 0.001)),
        RoadNode("C", Coordinate(0.0, 0.002)),
    ]
    edges = [
        RoadEdge("ab", "A", "B", "First St", 100.0),
        RoadEdge("bc", "B", "C", "First St", 50.0),
    ]
    return create_road_graph(nodes, edges)


def test_path_through_middle_node(router, abc_graph):
    res = router.find_path(abc_graph, "A", "C")
    assert list(res.node_ids) == ["A", "B", "C"]
    assert res.total_distance_m == 150
    assert [e.edge_id for e in res.traversed_edges] == ["ab", "bc"]
    # edge costs plus the straight-through bend at B
    assert res.total_cost == pytest.approx(150 + 40 + 120, abs=1e-3)


def test_cost_equals_distance_when_only_distance_is_weighted(router, abc_graph):
    res = router.find_path(abc_graph, "A", "C", DISTANCE_ONLY)
    assert res.total_cost == pytest.approx(150.0)


def test_path_in_reverse_direction(router, abc_graph):
    res = router.find_path(abc_graph, "C", "A")
    assert list(res.node_ids) == ["C", "B", "A"]
    assert [(e.from_node_id, e.to_node_id) for e in res.traversed_edges] == [("C", "B"), ("B", "A")]


def test_same_start_and_end_is_an_empty_path(router, abc_graph):
    res = router.find_path(abc_graph, "B", "B")
    assert list(res.node_ids) == ["B"]
    assert res.traversed_edges == ()
    assert res.total_distance_m == 0 and res.total_cost == 0


def test_disconnected_nodes_raise_no_path(router):
    g = create_road_graph(
        [RoadNode("A", Coordinate(0.0, 0.0)), RoadNode("Z", Coordinate(1.0, 1.0))], []
    )
    with pytest.raises(NoPathError) as exc:
        router.find_path(g, "A", "Z")
    assert "'A'" in str(exc.value) and "'Z'" in str(exc.value)
    assert isinstance(exc.value, PathSearchError)


def test_one_way_edge_is_not_walked_backwards(router):
    g = create_road_graph(
        [RoadNode("A", Coordinate(0.0, 0.0)), RoadNode("B", Coordinate(0.0, 0.001))],
        [RoadEdge("ab", "A", "B", "One Way", 10.0, bidirectional=False)],
    )
    assert router.find_path(g, "A", "B").total_distance_m == 10
    with pytest.raises(NoPathError):
        router.find_path(g, "B", "A")


def test_unknown_node_raises(router, abc_graph):
    with pytest.raises(NodeNotFoundError):
        router.find_path(abc_graph, "A", "nope")
    with pytest.raises(NodeNotFoundError):
        router.find_path(abc_graph, "nope", "A")


def test_prefers_safer_detour_over_hostile_shortcut(router):
    # A -> C directly is short but hostile; A -> B -> C is longer but calm.
    nodes = [
        RoadNode("A", Coordinate(0.0, 0.0)),
        RoadNode("B", Coordinate(0.001, 0.001)),
        RoadNode("C", Coordinate(0.0, 0.002)),
    ]
    edges = [
        RoadEdge("ac", "A", "C", "Highway", 170.0, traffic_stress=5, has_sidewalk=False),
        RoadEdge("ab", "A", "B", "Calm St", 140.0),
        RoadEdge("bc", "B", "C", "Calm St", 140.0),
    ]
    g = create_road_graph(nodes, edges)

    assert list(router.find_path(g, "A", "C").node_ids) == ["A", "B", "C"]
    assert list(router.find_path(g, "A", "C", DISTANCE_ONLY).node_ids) == ["A", "C"]


def test_turn_cost_depends_on_arrival_direction(router):
    """
    The direct arrival into X is cheapest, but continuing straight to T from
    it costs more than the bend after arriving via Q.
    """
    nodes = [
        RoadNode("S", Coordinate(0.0, 0.0)),
        RoadNode("Q", Coordinate(0.001, 0.0005)),
        RoadNode("X", Coordinate(0.0, 0.001)),
        RoadNode("T", Coordinate(0.0, 0.002)),
    ]
    edges = [
        RoadEdge("sx", "S", "X", "Direct", 100.0, bidirectional=False),
        RoadEdge("sq", "S", "Q", "Detour", 105.0, bidirectional=False),
        RoadEdge("qx", "Q", "X", "Detour", 105.0, bidirectional=False),
        RoadEdge("xt", "X", "T", "Onward", 100.0, bidirectional=False),
    ]
    g = create_road_graph(nodes, edges)

    # into X alone, the direct edge wins
    assert list(router.find_path(g, "S", "X").node_ids) == ["S", "X"]

    res = router.find_path(g, "S", "T")
    assert list(res.node_ids) == ["S", "Q", "X", "T"]
    assert res.total_distance_m == 310


def test_seed_graph_route_is_connected(router):
    g = create_seed_road_graph(Coordinate(40.0, -74.0))
    res = router.find_path(g, "n-0-0", "n-6-6")
    edges = res.traversed_edges
    assert edges[0].from_node_id == "n-0-0" and edges[-1].to_node_id == "n-6-6"
    for a, b in zip(edges, edges[1:]):
        assert a.to_node_id == b.from_node_id
    assert res.total_distance_m == sum(e.length_m for e in edges)
    # twelve blocks of 149/150 m at minimum
    assert res.total_distance_m >= 6 * 149 + 6 * 150


def test_search_is_deterministic(router):
    g = create_seed_road_graph(Coordinate(40.0, -74.0))
    first = router.find_path(g, "n-1-2", "n-5-4")
    second = router.find_path(g, "n-1-2", "n-5-4")
    assert first == second
