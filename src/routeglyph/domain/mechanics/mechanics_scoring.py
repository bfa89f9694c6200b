# routeglyph/domain/mechanics/mechanics_scoring.py
import math
from dataclasses import dataclass

from routeglyph.domain.entities.geography import Coordinate, TraversableEdge

U_TURN_ANGLE_DEG = 165.0


@dataclass(frozen=True)
class RouteObjectiveWeights:
    distance: float = 1.0
    elevation: float = 0.25
    turns: float = 0.4
    safety: float = 0.9
    u_turn: float = 1.2


DEFAULT_WEIGHTS = RouteObjectiveWeights()


def safety_penalty(edge: TraversableEdge) -> float:
    return (
        (edge.traffic_stress - 1) * 0.35
        + (0.0 if edge.has_sidewalk else 0.7)
        + (0.0 if edge.lit_at_night else 0.2)
    )


def score_edge_traversal(
    edge: TraversableEdge, weights: RouteObjectiveWeights = DEFAULT_WEIGHTS
) -> float:
    # downhill is never rewarded
    uphill_m = max(0.0, edge.elevation_gain_m)
    return (
        edge.length_m * weights.distance
        + uphill_m * weights.elevation
        + safety_penalty(edge) * 100 * weights.safety
    )


def bend_angle_deg(prev: Coordinate, current: Coordinate, nxt: Coordinate) -> float:
    """
    Interior angle at `current` between the vectors to `prev` and `nxt`, in degrees.

    Straight-through travel measures 180, doubling straight back measures 0.
    """
    v1x, v1y = prev.lon - current.lon, prev.lat - current.lat
    v2x, v2y = nxt.lon - current.lon, nxt.lat - current.lat
    mag1 = math.hypot(v1x, v1y)
    mag2 = math.hypot(v2x, v2y)
    if mag1 == 0 or mag2 == 0:
        return 0.0
    cosine = max(-1.0, min(1.0, (v1x * v2x + v1y * v2y) / (mag1 * mag2)))
    return math.degrees(math.acos(cosine))


def score_turn(
    prev: Coordinate,
    current: Coordinate,
    nxt: Coordinate,
    weights: RouteObjectiveWeights = DEFAULT_WEIGHTS,
) -> float:
    angle = bend_angle_deg(prev, current, nxt)
    cost = (angle / 180) * 100 * weights.turns
    if angle > U_TURN_ANGLE_DEG:
        cost += 100 * weights.u_turn
    return cost
