# routeglyph/app/controllers/shape.py
from collections.abc import Mapping

from routeglyph.app.protocols import OptimizerHooks, ShortestPathAdapter
from routeglyph.config.models import ShapeRouteRequest
from routeglyph.domain.entities.geography import Coordinate, TraversableEdge
from routeglyph.domain.entities.route import (
    GeneratedRoute,
    distance_of,
    new_route_id,
    traversals_to_segments,
    utc_now_iso,
)
from routeglyph.domain.errors import PathSearchError
from routeglyph.domain.mechanics.mechanics_graph import RoadGraph, find_nearest_node_id
from routeglyph.domain.mechanics.mechanics_graph_builders import create_seed_road_graph
from routeglyph.domain.mechanics.mechanics_routers import InMemoryShortestPathAdapter
from routeglyph.domain.mechanics.mechanics_scoring import RouteObjectiveWeights
from routeglyph.runtime.hooks import NoopHooks

ORIGIN = Coordinate(0.0, 0.0)


def dedupe_consecutive(items: list[str]) -> list[str]:
    return [x for i, x in enumerate(items) if i == 0 or x != items[i - 1]]


class ShapeOptimizer:
    """Snap each drawn point to the graph and stitch shortest paths between them."""

    def __init__(
        self,
        *,
        shortest_path: ShortestPathAdapter | None = None,
        hooks: OptimizerHooks | None = None,
        weights: RouteObjectiveWeights | None = None,
    ):
        self.shortest_path = shortest_path or InMemoryShortestPathAdapter()
        self.hooks = hooks or NoopHooks()
        self.weights = weights

    def run(
        self, request: ShapeRouteRequest | Mapping, *, graph: RoadGraph | None = None
    ) -> GeneratedRoute:
        req = (
            request
            if isinstance(request, ShapeRouteRequest)
            else ShapeRouteRequest.model_validate(request)
        )
        self.hooks.run_start(mode="shape", name=req.name)
        points = req.points or [ORIGIN]

        source = "supplied" if graph is not None else "seed"
        if graph is None:
            graph = create_seed_road_graph(points[0])
        self.hooks.graph_resolved(source=source, nodes=len(graph.nodes), edges=len(graph.edges))

        snapped = dedupe_consecutive([find_nearest_node_id(graph, p) for p in points])

        traversed: list[TraversableEdge] = []
        for a, b in zip(snapped, snapped[1:]):
            try:
                leg = self.shortest_path.find_path(graph, a, b, self.weights)
            except PathSearchError as exc:
                self.hooks.search_failed(start_node_id=a, end_node_id=b, reason=str(exc))
                break
            traversed.extend(leg.traversed_edges)

        distance_m = distance_of(traversed)
        route = GeneratedRoute(
            id=new_route_id(),
            mode="shape",
            name=req.name,
            distance_m=distance_m,
            created_at_iso=utc_now_iso(),
            segments=traversals_to_segments(graph.nodes, traversed),
        )
        self.hooks.run_end(mode="shape", distance_m=distance_m, segments=len(route.segments))
        return route


def optimize_shape_route(
    request: ShapeRouteRequest | Mapping,
    *,
    graph: RoadGraph | None = None,
    shortest_path: ShortestPathAdapter | None = None,
    hooks: OptimizerHooks | None = None,
    weights: RouteObjectiveWeights | None = None,
) -> GeneratedRoute:
    return ShapeOptimizer(shortest_path=shortest_path, hooks=hooks, weights=weights).run(
        request, graph=graph
    )
