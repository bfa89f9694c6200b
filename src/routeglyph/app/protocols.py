from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from routeglyph.domain.entities.geography import StreetCandidate
from routeglyph.domain.entities.route import PathResult
from routeglyph.domain.mechanics.mechanics_graph import RoadGraph
from routeglyph.domain.mechanics.mechanics_scoring import RouteObjectiveWeights

if TYPE_CHECKING:
    from routeglyph.config.models import CoverageRouteRequest


# ------------- Mechanics --------------------
@runtime_checkable
class ShortestPathAdapter(Protocol):
    """
    Responsibilities:
      • Find the cheapest traversal between two nodes of a graph.
      • Raise NoPathError (both endpoints named) when none exists, or
        RemoteRoutingError when a backing service fails.
    Units: meters for distances; scoring units for cost.
    """

    def find_path(
        self,
        graph: RoadGraph,
        start_node_id: str,
        end_node_id: str,
        weights: RouteObjectiveWeights | None = None,
    ) -> PathResult: ...


@runtime_checkable
class StreetCatalogProvider(Protocol):
    """
    Return named street candidates near a coverage request's area.
    Results are deduplicated by name + rounded coordinate and capped in size.
    Raise StreetCatalogError on failure; callers degrade to the seed graph.
    """

    def fetch_street_candidates(
        self, request: "CoverageRouteRequest"
    ) -> Sequence[StreetCandidate]: ...


# --------------- Observability -------------------------


@runtime_checkable
class OptimizerHooks(Protocol):
    def run_start(self, *, mode: str, name: str): ...
    def graph_resolved(self, *, source: str, nodes: int, edges: int): ...
    def catalog_failed(self, *, reason: str): ...
    def anchor_selected(self, *, edge_id: str, street_name: str, distance_m: float): ...
    def search_failed(self, *, start_node_id: str, end_node_id: str, reason: str): ...
    def run_end(self, *, mode: str, distance_m: float, segments: int): ...
