# routeglyph/domain/mechanics/mechanics_osrm.py
#
# OSRM adapter/client. Talks HTTP to an OSRM server and returns normalized
# outputs; routing rules and scoring live elsewhere.
import math
from collections.abc import Sequence
from typing import Any

import requests

from routeglyph.app.protocols import ShortestPathAdapter
from routeglyph.domain.entities.geography import Coordinate, TraversableEdge, approx_distance_m
from routeglyph.domain.entities.route import PathResult
from routeglyph.domain.errors import NodeNotFoundError, RemoteRoutingError

OSRM_STREET_NAME = "OSRM Path"


class OsrmClient:
    """
    OSRM HTTP client.

    Converts internal Coordinate(lat, lon) to OSRM "lon,lat;lon,lat" and
    returns the first route/matching of a response as a plain dict. Any
    transport error, non-2xx status, or non-"Ok" payload raises
    RemoteRoutingError.
    """

    def __init__(
        self,
        base_url: str,
        *,
        profile: str = "foot",
        timeout_s: float = 10.0,
        session: requests.Session | None = None,
    ):
        if not base_url:
            raise ValueError("OSRM base URL must be set.")
        self.base_url = base_url.rstrip("/")
        self.profile = profile
        self.timeout_s = timeout_s
        self.session = session or requests.Session()

    @staticmethod
    def format_coordinates(coords: Sequence[Coordinate]) -> str:
        return ";".join(f"{c.lon},{c.lat}" for c in coords)

    def _get(self, service: str, coords: Sequence[Coordinate], **params) -> dict[str, Any]:
        if len(coords) < 2:
            raise ValueError("At least two coordinates are required.")
        url = f"{self.base_url}/{service}/v1/{self.profile}/{self.format_coordinates(coords)}"
        try:
            response = self.session.get(
                url,
                params={"overview": "full", "geometries": "geojson", "steps": "true", **params},
                timeout=self.timeout_s,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise RemoteRoutingError(f"OSRM {service} request failed: {exc}") from exc

        if not isinstance(data, dict):
            raise RemoteRoutingError(f"OSRM {service} returned a non-object payload.")
        if data.get("code") != "Ok":
            raise RemoteRoutingError(f"OSRM error: {data.get('message', data.get('code'))}")
        return data

    def route(self, coords: Sequence[Coordinate]) -> dict[str, Any]:
        """
        Returns the best route:
            {"distance": float, "duration": float,
             "geometry": {"coordinates": [[lon, lat], ...]}, "legs": [...]}
        """
        return _first(self._get("route", coords).get("routes"), "routes")

    def match(self, coords: Sequence[Coordinate]) -> dict[str, Any]:
        """Map-match a polyline onto the road network; returns the best matching."""
        data = self._get("match", coords, gaps="ignore", tidy="true")
        return _first(data.get("matchings"), "matchings")


def _first(items: Any, what: str) -> dict[str, Any]:
    if not items or not isinstance(items, list):
        raise RemoteRoutingError(f"OSRM returned no {what}.")
    if not isinstance(items[0], dict):
        raise RemoteRoutingError(f"OSRM returned malformed {what}.")
    return items[0]


def geometry_of(payload: dict[str, Any]) -> list[Coordinate]:
    """GeoJSON [lon, lat, ...] positions as Coordinates; extra ordinates are ignored."""
    try:
        raw = (payload.get("geometry") or {}).get("coordinates") or []
        return [Coordinate(lat=float(pt[1]), lon=float(pt[0])) for pt in raw]
    except (AttributeError, TypeError, ValueError, IndexError) as exc:
        raise RemoteRoutingError(f"OSRM geometry is malformed: {exc}") from exc


def route_distance_m(payload: dict[str, Any]) -> float | None:
    value = payload.get("distance")
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise RemoteRoutingError(f"OSRM distance is malformed: {value!r}") from exc


class OsrmShortestPathAdapter(ShortestPathAdapter):
    """Remote router: resolves graph node ids to coordinates and asks OSRM."""

    def __init__(self, client: OsrmClient):
        self.client = client

    def find_path(self, graph, start_node_id, end_node_id, weights=None):
        start = graph.node_coordinate(start_node_id)
        end = graph.node_coordinate(end_node_id)
        if start is None:
            raise NodeNotFoundError(start_node_id)
        if end is None:
            raise NodeNotFoundError(end_node_id)

        best = self.client.route([start, end])
        points = geometry_of(best)
        if len(points) < 2:
            raise RemoteRoutingError("OSRM route has no geometry.")

        last = len(points) - 2
        edges = []
        for i, (a, b) in enumerate(zip(points, points[1:])):
            edges.append(
                TraversableEdge(
                    edge_id=f"osrm-{i}",
                    from_node_id=start_node_id if i == 0 else f"osrm-node-{i}",
                    to_node_id=end_node_id if i == last else f"osrm-node-{i + 1}",
                    length_m=approx_distance_m(a, b),
                    street_name=OSRM_STREET_NAME,
                    has_sidewalk=True,
                    lit_at_night=True,
                    traffic_stress=2,
                    elevation_gain_m=0.0,
                    from_coordinate=a,
                    to_coordinate=b,
                )
            )

        total = math.floor((route_distance_m(best) or 0.0) + 0.5)
        return PathResult(
            node_ids=(start_node_id, end_node_id),
            traversed_edges=tuple(edges),
            total_distance_m=total,
            total_cost=total,
        )
