import heapq
import itertools
import logging
from dataclasses import dataclass

from routeglyph.app.protocols import ShortestPathAdapter
from routeglyph.domain.entities.geography import TraversableEdge
from routeglyph.domain.entities.route import PathResult
from routeglyph.domain.errors import NodeNotFoundError, NoPathError, RemoteRoutingError
from routeglyph.domain.mechanics.mechanics_graph import RoadGraph
from routeglyph.domain.mechanics.mechanics_scoring import (
    DEFAULT_WEIGHTS,
    RouteObjectiveWeights,
    score_edge_traversal,
    score_turn,
)

log = logging.getLogger(__name__)

# (current node, node we arrived from); None marks the start state
StateKey = tuple[str, str | None]


@dataclass
class _PathState:
    key: StateKey
    cost: float
    distance_m: float
    parent: "_PathState | None" = None
    via_edge: TraversableEdge | None = None


def _reconstruct(goal: _PathState) -> PathResult:
    chain = []
    state: _PathState | None = goal
    while state is not None:
        chain.append(state)
        state = state.parent
    chain.reverse()
    return PathResult(
        node_ids=tuple(s.key[0] for s in chain),
        traversed_edges=tuple(s.via_edge for s in chain if s.via_edge is not None),
        total_distance_m=goal.distance_m,
        total_cost=goal.cost,
    )


class InMemoryShortestPathAdapter(ShortestPathAdapter):
    """
    Turn-aware uniform-cost search.

    A state is (node, previous node) so the bend penalty of the next move can
    be charged; the first time the goal node is popped its label is optimal
    because every edge and turn cost is non-negative.
    """

    def find_path(self, graph, start_node_id, end_node_id, weights=None):
        for node_id in (start_node_id, end_node_id):
            if node_id not in graph.nodes:
                raise NodeNotFoundError(node_id)
        w = weights or DEFAULT_WEIGHTS

        start = _PathState(key=(start_node_id, None), cost=0.0, distance_m=0.0)
        best: dict[StateKey, float] = {start.key: 0.0}
        tie = itertools.count()  # equal costs pop in insertion order
        frontier = [(0.0, next(tie), start)]

        while frontier:
            cost, _, current = heapq.heappop(frontier)
            if cost > best.get(current.key, float("inf")):
                continue  # superseded label
            node_id, prev_id = current.key
            if node_id == end_node_id:
                return _reconstruct(current)

            for edge in graph.outgoing(node_id):
                nxt_key = (edge.to_node_id, node_id)
                nxt_cost = cost + score_edge_traversal(edge, w) + self._turn_cost(
                    graph, prev_id, node_id, edge.to_node_id, w
                )
                known = best.get(nxt_key)
                if known is not None and known <= nxt_cost:
                    continue
                best[nxt_key] = nxt_cost
                heapq.heappush(
                    frontier,
                    (
                        nxt_cost,
                        next(tie),
                        _PathState(
                            key=nxt_key,
                            cost=nxt_cost,
                            distance_m=current.distance_m + edge.length_m,
                            parent=current,
                            via_edge=edge,
                        ),
                    ),
                )

        raise NoPathError(start_node_id, end_node_id)

    @staticmethod
    def _turn_cost(
        graph: RoadGraph,
        prev_id: str | None,
        at_id: str,
        next_id: str,
        w: RouteObjectiveWeights,
    ) -> float:
        if prev_id is None:
            return 0.0
        prev, at, nxt = (graph.node_coordinate(n) for n in (prev_id, at_id, next_id))
        if prev is None or at is None or nxt is None:
            return 0.0
        return score_turn(prev, at, nxt, w)


class FallbackShortestPathAdapter(ShortestPathAdapter):
    """Ask `primary`; on a transport failure substitute `fallback`."""

    def __init__(self, primary: ShortestPathAdapter, fallback: ShortestPathAdapter):
        self.primary, self.fallback = primary, fallback

    def find_path(self, graph, start_node_id, end_node_id, weights=None):
        try:
            return self.primary.find_path(graph, start_node_id, end_node_id, weights)
        except RemoteRoutingError as exc:
            log.warning("primary router failed, using fallback: %s", exc)
            return self.fallback.find_path(graph, start_node_id, end_node_id, weights)
