# routeglyph/domain/mechanics/mechanics_graph_builders.py
import math
import string
from collections.abc import Sequence

import numpy as np

from routeglyph.domain.entities.geography import (
    M_PER_DEG_LAT,
    M_PER_DEG_LON,
    Coordinate,
    RoadEdge,
    RoadNode,
    StreetCandidate,
    approx_distance_m,
)
from routeglyph.domain.mechanics.mechanics_graph import RoadGraph, create_road_graph

# ---- seed lattice
SEED_SPACING_LAT = 0.00135
SEED_SPACING_LON = 0.00175
SEED_MIN_SIZE = 7
SEED_MAX_SIZE = 27
SEED_BLOCK_M = 175

# ---- street point cloud
STREET_AREA_NEIGHBORS = 5
START_NODE_ID = "start"


def _lattice_size(radius_m: float | None) -> int:
    requested = math.ceil(radius_m / SEED_BLOCK_M) * 2 + 1 if radius_m else SEED_MIN_SIZE
    return min(SEED_MAX_SIZE, max(SEED_MIN_SIZE, requested))


def _street_names(size: int, suffix: str) -> list[str]:
    names = []
    for i in range(size):
        letter = string.ascii_uppercase[i % 26]
        cycle = i // 26
        names.append(f"{letter}{cycle + 1 if cycle > 0 else ''} {suffix}")
    return names


def create_seed_road_graph(center: Coordinate, *, radius_m: float | None = None) -> RoadGraph:
    """
    Synthetic square lattice centred on `center`.

    Rows are named "A Ave", "B Ave", ...; columns "A St", "B St", ...; after 26
    the letters restart with a numeric suffix ("A2 Ave"). Elevation rises with
    row (3 m) and column (1 m). Every lattice neighbour pair gets a
    bidirectional edge; horizontal edges first, then vertical ones.
    """
    size = _lattice_size(radius_m)
    half = size // 2
    rows = _street_names(size, "Ave")
    cols = _street_names(size, "St")

    nodes: list[RoadNode] = []
    for y in range(size):
        for x in range(size):
            nodes.append(
                RoadNode(
                    id=f"n-{y}-{x}",
                    coordinate=Coordinate(
                        lat=center.lat + (y - half) * SEED_SPACING_LAT,
                        lon=center.lon + (x - half) * SEED_SPACING_LON,
                    ),
                    elevation_m=10 + y * 3 + x,
                )
            )

    def at(y: int, x: int) -> RoadNode:
        return nodes[y * size + x]

    edges: list[RoadEdge] = []

    def link(a: RoadNode, b: RoadNode, **attrs):
        edges.append(
            RoadEdge(
                id=f"e-{len(edges)}",
                from_node_id=a.id,
                to_node_id=b.id,
                length_m=approx_distance_m(a.coordinate, b.coordinate),
                bidirectional=True,
                elevation_gain_m=(b.elevation_m or 0) - (a.elevation_m or 0),
                **attrs,
            )
        )

    for y in range(size):
        for x in range(size - 1):
            link(
                at(y, x),
                at(y, x + 1),
                street_name=rows[y],
                has_sidewalk=True,
                lit_at_night=y % 4 != 0,
                traffic_stress=y % 5 + 1,
            )

    for x in range(size):
        for y in range(size - 1):
            link(
                at(y, x),
                at(y + 1, x),
                street_name=cols[x],
                has_sidewalk=x % 6 != 0,
                lit_at_night=y % 3 != 0,
                traffic_stress=x % 5 + 1,
            )

    return create_road_graph(nodes, edges)


def create_street_area_graph(
    start: Coordinate, streets: Sequence[StreetCandidate]
) -> RoadGraph:
    """
    Mesh a point cloud of named streets: the start point plus one node per
    candidate, each linked to its 5 nearest other nodes by a bidirectional
    connector named after the destination street.
    """
    nodes = [RoadNode(id=START_NODE_ID, coordinate=start)]
    nodes += [RoadNode(id=s.id, coordinate=s.coordinate) for s in streets]
    name_by_id: dict[str, str] = {}
    for s in streets:
        name_by_id.setdefault(s.id, s.name)

    lat = np.array([n.coordinate.lat for n in nodes], dtype=float)
    lon = np.array([n.coordinate.lon for n in nodes], dtype=float)
    ids = np.array([n.id for n in nodes], dtype=object)

    edges: list[RoadEdge] = []
    for node in nodes:
        dx = (lat - node.coordinate.lat) * M_PER_DEG_LAT
        dy = (lon - node.coordinate.lon) * M_PER_DEG_LON
        dist = np.floor(np.sqrt(dx * dx + dy * dy) + 0.5)
        others = np.flatnonzero(ids != node.id)
        # stable sort keeps input order among equidistant neighbours
        ranked = others[np.argsort(dist[others], kind="stable")][:STREET_AREA_NEIGHBORS]
        for j in ranked:
            target = nodes[int(j)]
            edges.append(
                RoadEdge(
                    id=f"s-{len(edges)}",
                    from_node_id=node.id,
                    to_node_id=target.id,
                    street_name=name_by_id.get(target.id)
                    or name_by_id.get(node.id)
                    or "Connector",
                    length_m=float(dist[j]),
                    bidirectional=True,
                    has_sidewalk=True,
                    lit_at_night=True,
                    traffic_stress=2,
                    elevation_gain_m=(target.elevation_m or 0) - (node.elevation_m or 0),
                )
            )

    return create_road_graph(nodes, edges)
