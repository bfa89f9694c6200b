# routeglyph/app/snapping.py
import logging
import math
from collections import Counter
from collections.abc import Sequence
from dataclasses import replace
from typing import Any

from routeglyph.app.controllers.coverage import first_letter
from routeglyph.domain.entities.geography import Coordinate
from routeglyph.domain.entities.route import GeneratedRoute, RouteSegment
from routeglyph.domain.errors import RemoteRoutingError, RouteSnapError
from routeglyph.domain.mechanics.mechanics_osrm import (
    OSRM_STREET_NAME,
    OsrmClient,
    geometry_of,
    route_distance_m,
)

log = logging.getLogger(__name__)

UNNAMED_ROAD = "Unnamed Road"
IGNORED_STREETS = frozenset({OSRM_STREET_NAME.lower(), UNNAMED_ROAD.lower()})

MAX_MATCH_POINTS = 40
MAX_ROUTE_POINTS = 18
MAX_PAIRWISE_POINTS = 24


def route_points(route: GeneratedRoute) -> list[Coordinate]:
    if not route.segments:
        return []
    return [route.segments[0].start] + [s.end for s in route.segments]


def dedupe_consecutive_points(points: Sequence[Coordinate]) -> list[Coordinate]:
    out: list[Coordinate] = []
    for p in points:
        if not out or out[-1] != p:
            out.append(p)
    return out


def downsample(points: Sequence[Coordinate], max_points: int) -> list[Coordinate]:
    """Every k-th point, always keeping the last one."""
    if len(points) <= max_points:
        return list(points)
    step = math.ceil(len(points) / max_points)
    sampled = list(points[::step])
    if (len(points) - 1) % step:
        sampled.append(points[-1])
    return sampled


def segments_from_steps(payload: dict[str, Any]) -> list[RouteSegment]:
    segments = []
    try:
        for leg in payload.get("legs") or []:
            for step in leg.get("steps") or []:
                name = str(step.get("name") or "").strip() or UNNAMED_ROAD
                pts = geometry_of(step)
                segments += [RouteSegment(a, b, name) for a, b in zip(pts, pts[1:])]
    except (AttributeError, TypeError) as exc:
        raise RemoteRoutingError(f"OSRM steps are malformed: {exc}") from exc
    return segments


def segments_from_geometry(points: Sequence[Coordinate]) -> list[RouteSegment]:
    return [RouteSegment(a, b, OSRM_STREET_NAME) for a, b in zip(points, points[1:])]


def _attempt(call, coords) -> tuple[list[Coordinate], float | None, list[RouteSegment]] | None:
    """(geometry, distance, step segments) of one OSRM call; None if the call or its payload fails."""
    try:
        best = call(coords)
        return geometry_of(best), route_distance_m(best), segments_from_steps(best)
    except RemoteRoutingError as exc:
        log.warning("snap attempt failed: %s", exc)
        return None


def snap_coverage_route_to_roads(route: GeneratedRoute, client: OsrmClient) -> GeneratedRoute:
    """
    Re-trace a planned route over real roads.

    Map-matching first; then a single routed request through the waypoints;
    finally pairwise routing between consecutive waypoints. Raises
    RouteSnapError when none of these yields usable geometry.
    """
    points = dedupe_consecutive_points(route_points(route))
    if len(points) < 2:
        return route

    geometry: list[Coordinate] = []
    segments: list[RouteSegment] = []
    distance_m: float | None = None

    for call, limit in ((client.match, MAX_MATCH_POINTS), (client.route, MAX_ROUTE_POINTS)):
        result = _attempt(call, downsample(points, limit))
        if result is not None and len(result[0]) >= 2:
            geometry, distance_m, segments = result
            break

    if len(geometry) < 2:
        # pairwise: stitch legs, dropping the duplicated joint point
        merged: list[Coordinate] = []
        total = 0.0
        pairwise = downsample(points, MAX_PAIRWISE_POINTS)
        for a, b in zip(pairwise, pairwise[1:]):
            result = _attempt(client.route, [a, b])
            if result is None or len(result[0]) < 2:
                continue
            chunk, leg_m, leg_segments = result
            total += leg_m or 0.0
            segments += leg_segments
            merged += chunk if not merged else chunk[1:]
        if len(merged) >= 2:
            geometry, distance_m = merged, total

    if len(geometry) < 2:
        raise RouteSnapError("OSRM snapping produced no usable geometry.")

    return replace(
        route,
        distance_m=math.floor((distance_m if distance_m is not None else route.distance_m) + 0.5),
        segments=tuple(segments or segments_from_geometry(geometry)),
    )


def with_coverage_snap_meta(
    route: GeneratedRoute, snapped: bool, reason: str | None = None
) -> GeneratedRoute:
    if route.coverage is None:
        return route
    return replace(
        route, coverage=replace(route.coverage, snapped_to_roads=snapped, snap_reason=reason)
    )


def derive_coverage_from_final_route(route: GeneratedRoute) -> GeneratedRoute:
    """Recount letters and streets from the segments actually returned."""
    if route.coverage is None:
        return route
    streets: Counter = Counter()
    letters: set[str] = set()
    for seg in route.segments:
        name = (seg.street_name or "").strip()
        if not name or name.lower() in IGNORED_STREETS:
            continue
        streets[name.lower()] += 1
        letter = first_letter(name)
        if letter:
            letters.add(letter)

    return replace(
        route,
        coverage=replace(
            route.coverage,
            planned_letters_covered=route.coverage.letters_covered,
            letters_covered=tuple(sorted(letters)),
            unique_street_count=len(streets),
            duplicate_street_penalty=sum(max(0, n - 1) for n in streets.values()),
        ),
    )
