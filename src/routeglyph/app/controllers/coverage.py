# routeglyph/app/controllers/coverage.py
import logging
import math
import re
import string
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from routeglyph.app.protocols import OptimizerHooks, ShortestPathAdapter, StreetCatalogProvider
from routeglyph.config.models import CoverageRouteRequest
from routeglyph.domain.entities.geography import TraversableEdge, approx_distance_m
from routeglyph.domain.entities.route import (
    CoverageStrategy,
    CoverageSummary,
    GeneratedRoute,
    PathResult,
    distance_of,
    new_route_id,
    traversals_to_segments,
    utc_now_iso,
)
from routeglyph.domain.errors import PathSearchError
from routeglyph.domain.mechanics.mechanics_graph import RoadGraph, find_nearest_node_id
from routeglyph.domain.mechanics.mechanics_graph_builders import (
    create_seed_road_graph,
    create_street_area_graph,
)
from routeglyph.domain.mechanics.mechanics_routers import InMemoryShortestPathAdapter
from routeglyph.domain.mechanics.mechanics_scoring import RouteObjectiveWeights
from routeglyph.runtime.hooks import NoopHooks

log = logging.getLogger(__name__)

ALPHABET = tuple(string.ascii_uppercase)
SHORTLIST_SIZE = 20
RARITY_BONUS = 400.0
REUSE_PENALTY = 120.0
DEFAULT_BUDGET_M = 8000.0
METERS_PER_LETTER = 800.0
MIN_LETTER_PICKS, MAX_LETTER_PICKS = 6, 14
MIN_STREET_PICKS = 3
MAX_CATALOG_STREETS = 250
MIN_CATALOG_STREETS = 3

_LETTER = re.compile(r"[A-Z]")


# ---------------- Pure selection helpers -----------------------


def first_letter(name: str) -> str | None:
    m = _LETTER.search(name.upper())
    return m.group(0) if m else None


def normalize_alphabet(items: Sequence[str] | None) -> list[str]:
    """Distinct leading letters of the requested items (whole alphabet when empty)."""
    letters: list[str] = []
    for item in items or ALPHABET:
        letter = first_letter(item)
        if letter and letter not in letters:
            letters.append(letter)
    return letters


def matches_target_street(edge: TraversableEdge, targets: Sequence[str]) -> bool:
    if not targets:
        return True
    name = edge.street_name.lower()
    return any(t.lower() in name for t in targets)


def letter_frequency(edges: Iterable[TraversableEdge]) -> Counter:
    freq: Counter = Counter()
    for edge in edges:
        letter = first_letter(edge.street_name)
        if letter:
            freq[letter] += 1
    return freq


def selection_budget(
    strategy: CoverageStrategy,
    letters: Sequence[str],
    targets: Sequence[str],
    max_distance_m: float | None,
) -> int:
    if strategy == "alphabet":
        budget_m = DEFAULT_BUDGET_M if max_distance_m is None else max_distance_m
        cap = max(MIN_LETTER_PICKS, min(MAX_LETTER_PICKS, math.floor(budget_m / METERS_PER_LETTER)))
        return min(len(letters), cap)
    return max(MIN_STREET_PICKS, len(targets))


@dataclass
class CoverageState:
    start_node_id: str
    current_node_id: str
    distance_m: float = 0.0
    remaining_letters: set[str] = field(default_factory=set)
    used_streets: Counter = field(default_factory=Counter)


def candidate_edges(
    edges: Iterable[TraversableEdge],
    strategy: CoverageStrategy,
    state: CoverageState,
    targets: Sequence[str],
) -> list[TraversableEdge]:
    if strategy == "alphabet":
        return [e for e in edges if first_letter(e.street_name) in state.remaining_letters]
    return [e for e in edges if matches_target_street(e, targets)]


def _node_gap_m(graph: RoadGraph, a: str, b: str) -> int:
    ca, cb = graph.node_coordinate(a), graph.node_coordinate(b)
    if ca is None or cb is None:
        return 0
    return approx_distance_m(ca, cb)


def rank_candidates(
    graph: RoadGraph,
    candidates: Sequence[TraversableEdge],
    state: CoverageState,
    strategy: CoverageStrategy,
    freq: Mapping[str, int],
    *,
    limit: int = SHORTLIST_SIZE,
) -> list[TraversableEdge]:
    """
    Cheapest detours first: out to the edge, along it, and home again.
    Alphabet mode favours rare letters; reused street names are penalised.
    """

    def score(edge: TraversableEdge) -> float:
        s = (
            _node_gap_m(graph, state.current_node_id, edge.from_node_id)
            + edge.length_m
            + _node_gap_m(graph, edge.to_node_id, state.start_node_id)
        )
        if strategy == "alphabet":
            s -= RARITY_BONUS / max(1, freq.get(first_letter(edge.street_name) or "", 1))
        return s + state.used_streets[edge.street_name.lower()] * REUSE_PENALTY

    # sorted() is stable: equal scores keep graph order
    return sorted(candidates, key=score)[:limit]


def projected_distance_m(
    graph: RoadGraph, state: CoverageState, edge: TraversableEdge, leg_m: float | None = None
) -> float:
    """Distance after detouring to `edge` and heading home; leg_m replaces the straight-line leg."""
    if leg_m is None:
        leg_m = _node_gap_m(graph, state.current_node_id, edge.from_node_id)
    return (
        state.distance_m
        + leg_m
        + edge.length_m
        + _node_gap_m(graph, edge.to_node_id, state.start_node_id)
    )


def within_distance_budget(
    graph: RoadGraph,
    state: CoverageState,
    edge: TraversableEdge,
    max_distance_m: float | None,
    leg_m: float | None = None,
) -> bool:
    if max_distance_m is None:
        return True
    return projected_distance_m(graph, state, edge, leg_m) <= max_distance_m


def coverage_quality(edges: Iterable[TraversableEdge]) -> tuple[int, int, int]:
    """(estimated elevation gain, duplicate street penalty, unique street count)"""
    gain = 0.0
    streets: Counter = Counter()
    for edge in edges:
        gain += max(0.0, edge.elevation_gain_m)
        streets[edge.street_name.lower()] += 1
    duplicates = sum(max(0, n - 1) for n in streets.values())
    return math.floor(gain + 0.5), duplicates, len(streets)


# ---------------- Optimizer -----------------------


class CoverageOptimizer:
    """
    Greedy anchor selection under a distance budget.

    Each round ranks the streets still worth visiting, confirms the first
    affordable one with a real search, walks to its start node (touching the
    anchor counts as covering the street), and finally heads home if the
    budget still allows it. Search failures stop extension, never the run.
    """

    def __init__(
        self,
        *,
        shortest_path: ShortestPathAdapter | None = None,
        street_catalog: StreetCatalogProvider | None = None,
        hooks: OptimizerHooks | None = None,
        weights: RouteObjectiveWeights | None = None,
    ):
        self.shortest_path = shortest_path or InMemoryShortestPathAdapter()
        self.street_catalog = street_catalog
        self.hooks = hooks or NoopHooks()
        self.weights = weights

    # --------------- Helpers -----------------------------

    def resolve_graph(self, request: CoverageRouteRequest, graph: RoadGraph | None):
        if graph is not None:
            return graph, "supplied"
        if self.street_catalog is not None:
            try:
                streets = list(self.street_catalog.fetch_street_candidates(request))
            except Exception as exc:  # any catalog failure means "no live data"
                log.warning("street catalog unavailable, using seed graph: %s", exc)
                self.hooks.catalog_failed(reason=str(exc))
                streets = []
            if len(streets) >= MIN_CATALOG_STREETS:
                return create_street_area_graph(request.start, streets[:MAX_CATALOG_STREETS]), "catalog"
        center = request.area.center if request.area else request.start
        radius_m = request.area.radius_m if request.area else None
        return create_seed_road_graph(center, radius_m=radius_m), "seed"

    def _search(self, graph: RoadGraph, start: str, end: str) -> PathResult | None:
        try:
            return self.shortest_path.find_path(graph, start, end, self.weights)
        except PathSearchError as exc:
            self.hooks.search_failed(start_node_id=start, end_node_id=end, reason=str(exc))
            return None

    def _pick(self, graph, shortlist, state, max_distance_m):
        # affordability is judged on the searched leg; edge lengths need not
        # bound the straight-line gap, so no approximate pre-filter
        for edge in shortlist:
            leg = self._search(graph, state.current_node_id, edge.from_node_id)
            if leg is None:
                continue
            if not within_distance_budget(graph, state, edge, max_distance_m, leg.total_distance_m):
                continue
            return edge, leg
        return None

    # --------------- Entry point -----------------------------

    def run(
        self, request: CoverageRouteRequest | Mapping, *, graph: RoadGraph | None = None
    ) -> GeneratedRoute:
        req = (
            request
            if isinstance(request, CoverageRouteRequest)
            else CoverageRouteRequest.model_validate(request)
        )
        strategy = req.resolved_strategy
        cap = req.max_distance_m
        targets = req.target_streets
        self.hooks.run_start(mode="coverage", name=req.name)

        graph, source = self.resolve_graph(req, graph)
        self.hooks.graph_resolved(source=source, nodes=len(graph.nodes), edges=len(graph.edges))
        start_node_id = find_nearest_node_id(graph, req.start)

        all_edges = list(graph.iter_traversals())
        freq = letter_frequency(all_edges)
        letters = normalize_alphabet(req.alphabet)
        state = CoverageState(
            start_node_id=start_node_id,
            current_node_id=start_node_id,
            remaining_letters=set(letters),
        )
        traversed: list[TraversableEdge] = []
        covered: set[str] = set()
        matched = 0

        for _ in range(selection_budget(strategy, letters, targets, cap)):
            candidates = candidate_edges(all_edges, strategy, state, targets)
            if not candidates:
                break
            shortlist = rank_candidates(graph, candidates, state, strategy, freq)
            picked = self._pick(graph, shortlist, state, cap)
            if picked is None:
                break
            edge, leg = picked

            traversed.extend(leg.traversed_edges)
            state.distance_m = distance_of(traversed)
            state.current_node_id = edge.from_node_id
            state.used_streets[edge.street_name.lower()] += 1
            letter = first_letter(edge.street_name)
            if letter:
                covered.add(letter)
                state.remaining_letters.discard(letter)
            if matches_target_street(edge, targets):
                matched += 1
            self.hooks.anchor_selected(
                edge_id=edge.edge_id, street_name=edge.street_name, distance_m=state.distance_m
            )

        if state.current_node_id != start_node_id:
            home = self._search(graph, state.current_node_id, start_node_id)
            if home is not None and (cap is None or state.distance_m + home.total_distance_m <= cap):
                traversed.extend(home.traversed_edges)

        distance_m = distance_of(traversed)
        gain, duplicates, unique = coverage_quality(traversed)
        route = GeneratedRoute(
            id=new_route_id(),
            mode="coverage",
            name=req.name,
            distance_m=distance_m,
            created_at_iso=utc_now_iso(),
            segments=traversals_to_segments(graph.nodes, traversed),
            coverage=CoverageSummary(
                strategy=strategy,
                letters_covered=tuple(sorted(covered)),
                letters_requested=tuple(letters) if strategy == "alphabet" else (),
                matched_street_count=matched,
                max_distance_m=cap,
                estimated_elevation_gain_m=gain,
                duplicate_street_penalty=duplicates,
                unique_street_count=unique,
            ),
        )
        self.hooks.run_end(mode="coverage", distance_m=distance_m, segments=len(route.segments))
        return route


def optimize_coverage_route(
    request: CoverageRouteRequest | Mapping,
    *,
    graph: RoadGraph | None = None,
    shortest_path: ShortestPathAdapter | None = None,
    street_catalog: StreetCatalogProvider | None = None,
    hooks: OptimizerHooks | None = None,
    weights: RouteObjectiveWeights | None = None,
) -> GeneratedRoute:
    optimizer = CoverageOptimizer(
        shortest_path=shortest_path, street_catalog=street_catalog, hooks=hooks, weights=weights
    )
    return optimizer.run(request, graph=graph)
