# routeglyph/domain/mechanics/mechanics_graph.py
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType

import numpy as np

from routeglyph.domain.entities.geography import (
    M_PER_DEG_LAT,
    M_PER_DEG_LON,
    Coordinate,
    RoadEdge,
    RoadNode,
    TraversableEdge,
)
from routeglyph.domain.errors import DuplicateIdError, EmptyGraphError, NodeNotFoundError


class RoadGraph:
    """
    Read-only road network.

    nodes:       node id -> RoadNode
    edges:       edge id -> RoadEdge (undirected definition)
    adjacency:   node id -> outgoing TraversableEdges, in insertion order
    """

    def __init__(
        self,
        nodes: Mapping[str, RoadNode],
        edges: Mapping[str, RoadEdge],
        adjacency: Mapping[str, list[TraversableEdge]],
    ):
        self.nodes = MappingProxyType(dict(nodes))
        self.edges = MappingProxyType(dict(edges))
        self.adjacency = MappingProxyType({k: tuple(v) for k, v in adjacency.items()})

        # Vectorized lookup tables for nearest-node queries
        self._node_ids = list(self.nodes)
        self._lat = np.array([n.coordinate.lat for n in self.nodes.values()], dtype=float)
        self._lon = np.array([n.coordinate.lon for n in self.nodes.values()], dtype=float)

    def __len__(self) -> int:
        return len(self.nodes)

    def outgoing(self, node_id: str) -> tuple[TraversableEdge, ...]:
        return self.adjacency.get(node_id, ())

    def node_coordinate(self, node_id: str) -> Coordinate | None:
        node = self.nodes.get(node_id)
        return node.coordinate if node else None

    def iter_traversals(self) -> Iterator[TraversableEdge]:
        """Every distinct directed traversal, grouped by source node."""
        seen: set[tuple[str, str, str]] = set()
        for outgoing in self.adjacency.values():
            for edge in outgoing:
                key = (edge.from_node_id, edge.to_node_id, edge.edge_id)
                if key in seen:
                    continue
                seen.add(key)
                yield edge

    def distances_from(self, coordinate: Coordinate) -> np.ndarray:
        """Approximate whole-meter distances from coordinate to every node, in node order."""
        dx = (self._lat - coordinate.lat) * M_PER_DEG_LAT
        dy = (self._lon - coordinate.lon) * M_PER_DEG_LON
        return np.floor(np.sqrt(dx * dx + dy * dy) + 0.5)

    def node_id_at(self, index: int) -> str:
        return self._node_ids[index]


def create_road_graph(
    nodes: Iterable[RoadNode], edges: Iterable[RoadEdge], *, strict: bool = False
) -> RoadGraph:
    """
    Build a RoadGraph, expanding bidirectional edges into two traversals.

    Duplicate node/edge ids: last write wins unless strict=True, in which case
    DuplicateIdError is raised. Every edge still contributes its traversals.
    Edges must reference known nodes (NodeNotFoundError otherwise).
    """
    node_map: dict[str, RoadNode] = {}
    for node in nodes:
        if strict and node.id in node_map:
            raise DuplicateIdError("node", node.id)
        node_map[node.id] = node

    edge_map: dict[str, RoadEdge] = {}
    adjacency: dict[str, list[TraversableEdge]] = {}
    for edge in edges:
        if strict and edge.id in edge_map:
            raise DuplicateIdError("edge", edge.id)
        for node_id in (edge.from_node_id, edge.to_node_id):
            if node_id not in node_map:
                raise NodeNotFoundError(node_id)
        edge_map[edge.id] = edge
        for traversal in edge.traversals():
            adjacency.setdefault(traversal.from_node_id, []).append(traversal)

    return RoadGraph(node_map, edge_map, adjacency)


def find_nearest_node_id(graph: RoadGraph, coordinate: Coordinate) -> str:
    if len(graph) == 0:
        raise EmptyGraphError()
    # argmin returns the first minimum, i.e. ties resolve by node order
    return graph.node_id_at(int(np.argmin(graph.distances_from(coordinate))))
