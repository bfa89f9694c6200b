# routeglyph/domain/mechanics/mechanics_catalogs.py
from collections.abc import Sequence

import requests

from routeglyph.app.protocols import StreetCatalogProvider
from routeglyph.domain.entities.geography import Coordinate, StreetCandidate
from routeglyph.domain.errors import StreetCatalogError

OVERPASS_URL = "https://overpass-api.de/api/interpreter"
DEFAULT_RADIUS_M = 3000.0
MAX_CANDIDATES = 250


def build_overpass_query(center: Coordinate, radius_m: float) -> str:
    return (
        "[out:json][timeout:25];\n"
        f'(way(around:{round(radius_m)},{center.lat},{center.lon})["highway"]["name"];);\n'
        "out center tags;\n"
    )


def parse_overpass_elements(elements, *, max_results: int = MAX_CANDIDATES) -> list[StreetCandidate]:
    """Named ways with a center point, deduplicated by name + 5-decimal position."""
    seen: set[tuple[str, str, str]] = set()
    streets: list[StreetCandidate] = []
    for el in elements or []:
        name = ((el.get("tags") or {}).get("name") or "").strip()
        center = el.get("center")
        if not name or not center or el.get("id") is None:
            continue
        key = (name.lower(), f"{center['lat']:.5f}", f"{center['lon']:.5f}")
        if key in seen:
            continue
        seen.add(key)
        streets.append(
            StreetCandidate(
                id=f"osm-way-{el['id']}",
                name=name,
                coordinate=Coordinate(lat=float(center["lat"]), lon=float(center["lon"])),
            )
        )
        if len(streets) >= max_results:
            break
    return streets


class OverpassStreetCatalogProvider(StreetCatalogProvider):
    def __init__(
        self,
        endpoint_url: str = OVERPASS_URL,
        *,
        timeout_s: float = 8.0,
        max_results: int = MAX_CANDIDATES,
        session: requests.Session | None = None,
    ):
        self.endpoint_url = endpoint_url
        self.timeout_s = timeout_s
        self.max_results = max_results
        self.session = session or requests.Session()

    def fetch_street_candidates(self, request) -> list[StreetCandidate]:
        center = request.area.center if request.area else request.start
        radius_m = request.area.radius_m if request.area else DEFAULT_RADIUS_M
        try:
            response = self.session.post(
                self.endpoint_url,
                data=build_overpass_query(center, radius_m),
                headers={"Content-Type": "text/plain"},
                timeout=self.timeout_s,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise StreetCatalogError(f"Overpass lookup failed: {exc}") from exc
        return parse_overpass_elements(payload.get("elements"), max_results=self.max_results)


class StaticStreetCatalogProvider(StreetCatalogProvider):
    """Fixed candidate list; offline deployments and tests."""

    def __init__(self, candidates: Sequence[StreetCandidate]):
        self.candidates = list(candidates)

    def fetch_street_candidates(self, request) -> list[StreetCandidate]:
        return list(self.candidates)
