import math
from dataclasses import dataclass, replace

# Local equirectangular scale factors (meters per degree)
M_PER_DEG_LAT = 111_000
M_PER_DEG_LON = 85_000


# Core geometry types used by mechanics
@dataclass(frozen=True)
class Coordinate:
    lat: float  # degrees
    lon: float


def approx_distance_m(a: Coordinate, b: Coordinate) -> int:
    """Whole meters between two coordinates, rounded half up."""
    dx = (a.lat - b.lat) * M_PER_DEG_LAT
    dy = (a.lon - b.lon) * M_PER_DEG_LON
    return math.floor(math.sqrt(dx * dx + dy * dy) + 0.5)


@dataclass(frozen=True)
class RoadNode:
    id: str
    coordinate: Coordinate
    elevation_m: float | None = None


@dataclass(frozen=True)
class TraversableEdge:
    """One direction of travel over a RoadEdge."""

    edge_id: str
    from_node_id: str
    to_node_id: str
    length_m: float
    street_name: str
    has_sidewalk: bool = True
    lit_at_night: bool = True
    traffic_stress: int = 1  # 1 (calm) .. 5 (hostile)
    elevation_gain_m: float = 0.0  # signed, from -> to
    # Off-graph edges (e.g. remote router polylines) carry their own geometry
    from_coordinate: Coordinate | None = None
    to_coordinate: Coordinate | None = None


@dataclass(frozen=True)
class RoadEdge:
    id: str
    from_node_id: str
    to_node_id: str
    street_name: str
    length_m: float
    bidirectional: bool = True
    has_sidewalk: bool = True
    lit_at_night: bool = True
    traffic_stress: int = 1
    elevation_gain_m: float = 0.0

    def __post_init__(self):
        if self.length_m < 0:
            raise ValueError(f"edge {self.id!r}: length_m must be >= 0, got {self.length_m}")
        if not 1 <= self.traffic_stress <= 5:
            raise ValueError(f"edge {self.id!r}: traffic_stress must be in [1, 5]")

    def traversals(self) -> tuple[TraversableEdge, ...]:
        forward = TraversableEdge(
            edge_id=self.id,
            from_node_id=self.from_node_id,
            to_node_id=self.to_node_id,
            length_m=self.length_m,
            street_name=self.street_name,
            has_sidewalk=self.has_sidewalk,
            lit_at_night=self.lit_at_night,
            traffic_stress=self.traffic_stress,
            elevation_gain_m=self.elevation_gain_m,
        )
        if not self.bidirectional:
            return (forward,)
        reverse = replace(
            forward,
            from_node_id=self.to_node_id,
            to_node_id=self.from_node_id,
            elevation_gain_m=-self.elevation_gain_m,
        )
        return forward, reverse


@dataclass(frozen=True)
class StreetCandidate:
    """A named street reported by a street catalog, located by one point."""

    id: str
    name: str
    coordinate: Coordinate
