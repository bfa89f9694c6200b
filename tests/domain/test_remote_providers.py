import pytest
import requests

from routeglyph.config.models import CoverageRouteRequest
from routeglyph.domain.entities.geography import Coordinate, RoadEdge, RoadNode, StreetCandidate
from routeglyph.domain.errors import RemoteRoutingError, StreetCatalogError
from routeglyph.domain.mechanics.mechanics_catalogs import (
    OverpassStreetCatalogProvider,
    StaticStreetCatalogProvider,
    build_overpass_query,
    parse_overpass_elements,
)
from routeglyph.domain.mechanics.mechanics_graph import create_road_graph
from routeglyph.domain.mechanics.mechanics_osrm import (
    OSRM_STREET_NAME,
    OsrmClient,
    OsrmShortestPathAdapter,
    geometry_of,
    route_distance_m,
)
from routeglyph.domain.mechanics.mechanics_routers import (
    FallbackShortestPathAdapter,
    InMemoryShortestPathAdapter,
)


class _Response:
    def __init__(self, payload, status=200):
        self.payload, self.status_code = payload, status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class _Session:
    """Replays canned responses (or raises canned exceptions) in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def _next(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        r = self.responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r

    def get(self, url, **kwargs):
        return self._next("GET", url, kwargs)

    def post(self, url, **kwargs):
        return self._next("POST", url, kwargs)


def _ok_route(coords, distance=312.4):
    return {
        "code": "Ok",
        "routes": [
            {
                "distance": distance,
                "duration": 250.0,
                "geometry": {"coordinates": coords},
                "legs": [],
            }
        ],
    }


@pytest.fixture
def pair_graph():
    return create_road_graph(
        [RoadNode("a", Coordinate(40.0, -74.0)), RoadNode("b", Coordinate(40.001, -74.0))],
        [RoadEdge("ab", "a", "b", "Local St", 111.0)],
    )


# ---------- OSRM client


def test_client_formats_lon_lat_and_requests_full_geojson():
    session = _Session(_Response(_ok_route([[-74.0, 40.0], [-74.0, 40.001]])))
    client = OsrmClient("http://osrm.local/", session=session)
    best = client.route([Coordinate(40.0, -74.0), Coordinate(40.001, -74.0)])

    method, url, kwargs = session.calls[0]
    assert method == "GET"
    assert url == "http://osrm.local/route/v1/foot/-74.0,40.0;-74.0,40.001"
    assert kwargs["params"]["overview"] == "full"
    assert kwargs["params"]["geometries"] == "geojson"
    assert kwargs["params"]["steps"] == "true"
    assert best["distance"] == 312.4
    assert geometry_of(best) == [Coordinate(40.0, -74.0), Coordinate(40.001, -74.0)]


def test_client_match_uses_match_service():
    payload = {"code": "Ok", "matchings": [{"distance": 10.0, "geometry": {"coordinates": []}}]}
    session = _Session(_Response(payload))
    client = OsrmClient("http://osrm.local", session=session)
    client.match([Coordinate(1.0, 2.0), Coordinate(1.0, 2.1)])
    _, url, kwargs = session.calls[0]
    assert "/match/v1/foot/" in url
    assert kwargs["params"]["gaps"] == "ignore"


@pytest.mark.parametrize(
    "response",
    [
        _Response({"code": "NoRoute", "message": "Impossible route"}),
        _Response({"code": "Ok", "routes": []}),
        _Response({}, status=502),
        _Response(ValueError("not json")),
        _Response(["rate limited"]),
        _Response({"code": "Ok", "routes": ["not a route"]}),
        requests.ConnectionError("refused"),
    ],
)
def test_client_failures_become_remote_routing_errors(response):
    client = OsrmClient("http://osrm.local", session=_Session(response))
    with pytest.raises(RemoteRoutingError):
        client.route([Coordinate(1.0, 2.0), Coordinate(1.0, 2.1)])


def test_client_requires_base_url():
    with pytest.raises(ValueError):
        OsrmClient("")


def test_geometry_ignores_elevation_ordinate():
    payload = {"geometry": {"coordinates": [[-74.0, 40.0, 12.5], [-74.0, 40.001, 13.0]]}}
    assert geometry_of(payload) == [Coordinate(40.0, -74.0), Coordinate(40.001, -74.0)]


@pytest.mark.parametrize(
    "payload",
    [
        {"geometry": {"coordinates": [["x"]]}},
        {"geometry": {"coordinates": [["a", "b"]]}},
        {"geometry": {"coordinates": [None]}},
        {"geometry": "LINESTRING(0 0, 1 1)"},
    ],
)
def test_malformed_geometry_is_a_remote_routing_error(payload):
    with pytest.raises(RemoteRoutingError):
        geometry_of(payload)


def test_malformed_distance_is_a_remote_routing_error():
    assert route_distance_m({}) is None
    assert route_distance_m({"distance": "12.5"}) == 12.5
    with pytest.raises(RemoteRoutingError):
        route_distance_m({"distance": "far"})


# ---------- OSRM adapter


def test_osrm_adapter_builds_polyline_edges(pair_graph):
    coords = [[-74.0, 40.0], [-74.0, 40.0006], [-74.0, 40.001]]
    adapter = OsrmShortestPathAdapter(OsrmClient("http://osrm.local", session=_Session(_Response(_ok_route(coords)))))
    res = adapter.find_path(pair_graph, "a", "b")

    assert res.node_ids == ("a", "b")
    assert res.total_distance_m == 312
    assert [e.edge_id for e in res.traversed_edges] == ["osrm-0", "osrm-1"]
    first, last = res.traversed_edges
    assert (first.from_node_id, first.to_node_id) == ("a", "osrm-node-1")
    assert (last.from_node_id, last.to_node_id) == ("osrm-node-1", "b")
    assert all(e.street_name == OSRM_STREET_NAME for e in res.traversed_edges)
    assert first.from_coordinate == Coordinate(40.0, -74.0)
    assert first.length_m == 67  # 0.0006 deg lat


def test_osrm_adapter_rejects_empty_geometry(pair_graph):
    adapter = OsrmShortestPathAdapter(OsrmClient("http://osrm.local", session=_Session(_Response(_ok_route([[-74.0, 40.0]])))))
    with pytest.raises(RemoteRoutingError):
        adapter.find_path(pair_graph, "a", "b")


def test_fallback_adapter_recovers_from_transport_failure(pair_graph):
    remote = OsrmShortestPathAdapter(OsrmClient("http://osrm.local", session=_Session(requests.Timeout("slow"))))
    adapter = FallbackShortestPathAdapter(primary=remote, fallback=InMemoryShortestPathAdapter())
    res = adapter.find_path(pair_graph, "a", "b")
    assert [e.edge_id for e in res.traversed_edges] == ["ab"]
    assert res.total_distance_m == 111


def test_fallback_adapter_recovers_from_non_object_payload(pair_graph):
    remote = OsrmShortestPathAdapter(OsrmClient("http://osrm.local", session=_Session(_Response(["rate limited"]))))
    adapter = FallbackShortestPathAdapter(primary=remote, fallback=InMemoryShortestPathAdapter())
    res = adapter.find_path(pair_graph, "a", "b")
    assert [e.edge_id for e in res.traversed_edges] == ["ab"]
    assert res.total_distance_m == 111


# ---------- Overpass catalog


def test_overpass_query_targets_named_highways():
    q = build_overpass_query(Coordinate(40.7, -73.9), 1500.4)
    assert "way(around:1500,40.7,-73.9)" in q
    assert '["highway"]["name"]' in q
    assert "out center tags;" in q


def test_parse_overpass_dedupes_and_skips_incomplete_elements():
    elements = [
        {"id": 1, "tags": {"name": "Main St"}, "center": {"lat": 40.000001, "lon": -74.0}},
        {"id": 2, "tags": {"name": "main st"}, "center": {"lat": 40.000002, "lon": -74.0}},
        {"id": 3, "tags": {"name": "Main St"}, "center": {"lat": 40.01, "lon": -74.0}},
        {"id": 4, "tags": {"name": "  "}, "center": {"lat": 40.0, "lon": -74.0}},
        {"id": 5, "tags": {"name": "No Center Rd"}},
        {"tags": {"name": "No Id Ave"}, "center": {"lat": 40.0, "lon": -74.0}},
    ]
    streets = parse_overpass_elements(elements)
    assert [s.id for s in streets] == ["osm-way-1", "osm-way-3"]
    assert streets[0] == StreetCandidate("osm-way-1", "Main St", Coordinate(40.000001, -74.0))


def test_parse_overpass_caps_results():
    elements = [
        {"id": i, "tags": {"name": f"Street {i}"}, "center": {"lat": 40.0 + i * 1e-3, "lon": -74.0}}
        for i in range(300)
    ]
    assert len(parse_overpass_elements(elements)) == 250
    assert len(parse_overpass_elements(elements, max_results=10)) == 10


def test_overpass_provider_posts_query_for_request_area():
    payload = {"elements": [{"id": 7, "tags": {"name": "Oak Ave"}, "center": {"lat": 1.0, "lon": 2.0}}]}
    session = _Session(_Response(payload))
    provider = OverpassStreetCatalogProvider("http://overpass.local", session=session)
    req = CoverageRouteRequest(
        start={"lat": 0.0, "lon": 0.0}, area={"center": {"lat": 1.0, "lon": 2.0}, "radius_m": 800}
    )
    streets = provider.fetch_street_candidates(req)

    method, url, kwargs = session.calls[0]
    assert (method, url) == ("POST", "http://overpass.local")
    assert "around:800,1.0,2.0" in kwargs["data"]
    assert [s.name for s in streets] == ["Oak Ave"]


def test_overpass_provider_defaults_to_start_and_3km():
    session = _Session(_Response({"elements": []}))
    provider = OverpassStreetCatalogProvider("http://overpass.local", session=session)
    provider.fetch_street_candidates(CoverageRouteRequest(start={"lat": 5.0, "lon": 6.0}))
    assert "around:3000,5.0,6.0" in session.calls[0][2]["data"]


@pytest.mark.parametrize(
    "response", [requests.ConnectionError("down"), _Response({}, status=429), _Response(ValueError("html"))]
)
def test_overpass_failures_raise_catalog_error(response):
    provider = OverpassStreetCatalogProvider("http://overpass.local", session=_Session(response))
    with pytest.raises(StreetCatalogError):
        provider.fetch_street_candidates(CoverageRouteRequest(start={"lat": 5.0, "lon": 6.0}))


def test_static_catalog_returns_a_copy():
    candidates = [StreetCandidate("x", "X St", Coordinate(0.0, 0.0))]
    provider = StaticStreetCatalogProvider(candidates)
    out = provider.fetch_street_candidates(None)
    assert out == candidates and out is not provider.candidates
