import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

from routeglyph.domain.entities.geography import Coordinate, RoadNode, TraversableEdge

RouteMode = Literal["coverage", "shape"]
CoverageStrategy = Literal["alphabet", "target_streets"]


@dataclass(frozen=True)
class PathResult:
    node_ids: tuple[str, ...]
    traversed_edges: tuple[TraversableEdge, ...]
    total_distance_m: float
    total_cost: float


@dataclass(frozen=True)
class RouteSegment:
    start: Coordinate
    end: Coordinate
    street_name: str | None = None


@dataclass(frozen=True)
class CoverageSummary:
    strategy: CoverageStrategy
    letters_covered: tuple[str, ...]
    letters_requested: tuple[str, ...]
    matched_street_count: int
    max_distance_m: float | None
    estimated_elevation_gain_m: int
    duplicate_street_penalty: int
    unique_street_count: int
    # filled in by road snapping post-processing
    planned_letters_covered: tuple[str, ...] | None = None
    snapped_to_roads: bool | None = None
    snap_reason: str | None = None


@dataclass(frozen=True)
class GeneratedRoute:
    id: str
    mode: RouteMode
    name: str
    distance_m: float
    created_at_iso: str
    segments: tuple[RouteSegment, ...] = field(default_factory=tuple)
    coverage: CoverageSummary | None = None


def new_route_id() -> str:
    return f"route-{uuid.uuid4().hex[:12]}"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def distance_of(edges: Iterable[TraversableEdge]) -> float:
    return sum(e.length_m for e in edges)


def traversals_to_segments(
    nodes: Mapping[str, RoadNode], traversals: Iterable[TraversableEdge]
) -> tuple[RouteSegment, ...]:
    """
    Detach traversals from graph identity. Graph coordinates win; edges that
    carry their own geometry fill in for ids the graph does not know.
    """
    segments = []
    for edge in traversals:
        a = _coordinate_of(nodes, edge.from_node_id) or edge.from_coordinate
        b = _coordinate_of(nodes, edge.to_node_id) or edge.to_coordinate
        if a is None or b is None:
            continue
        segments.append(RouteSegment(a, b, edge.street_name))
    return tuple(segments)


def _coordinate_of(nodes: Mapping[str, RoadNode], node_id: str) -> Coordinate | None:
    node = nodes.get(node_id)
    return node.coordinate if node else None
