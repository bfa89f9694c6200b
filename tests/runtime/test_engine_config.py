import pytest
from pydantic import ValidationError

from routeglyph.config.models import (
    CoverageRouteRequest,
    EngineModel,
    ShapeRouteRequest,
    SnapModel,
)
from routeglyph.domain.entities.geography import Coordinate
from routeglyph.domain.mechanics.mechanics_scoring import DEFAULT_WEIGHTS


def test_coverage_request_defaults():
    req = CoverageRouteRequest(start={"lat": 40.0, "lon": -74.0})
    assert req.name == "Coverage Route"
    assert req.start == Coordinate(40.0, -74.0)
    assert req.resolved_strategy == "alphabet"
    assert req.max_distance_m is None


def test_targets_imply_target_strategy():
    req = CoverageRouteRequest(start={"lat": 0, "lon": 0}, target_streets=["Main"])
    assert req.resolved_strategy == "target_streets"


@pytest.mark.parametrize(
    "payload",
    [
        {"start": {"lat": 91, "lon": 0}},
        {"start": {"lat": 0, "lon": 181}},
        {"start": {"lat": 0, "lon": 0}, "max_distance_m": -1},
        {"start": {"lat": 0, "lon": 0}, "strategy": "zigzag"},
        {"start": {"lat": 0, "lon": 0}, "area": {"center": {"lat": 0, "lon": 0}, "radius_m": 0}},
        {"start": {"lat": 0, "lon": 0}, "unexpected": True},
    ],
)
def test_coverage_request_rejects_bad_input(payload):
    with pytest.raises(ValidationError):
        CoverageRouteRequest.model_validate(payload)


def test_shape_request_validates_points():
    assert ShapeRouteRequest().points == []
    with pytest.raises(ValidationError):
        ShapeRouteRequest(points=[{"lat": -95, "lon": 0}])


def test_snap_requires_url_when_enabled():
    with pytest.raises(ValidationError):
        SnapModel(enabled=True)
    assert SnapModel(enabled=True, osrm_base_url="http://osrm.local").enabled


def test_engine_defaults():
    cfg = EngineModel()
    assert cfg.routing.kind == "inmemory"
    assert cfg.coverage_routing.kind == "inmemory"
    assert cfg.catalog.kind == "none"
    assert cfg.weights.to_weights() == DEFAULT_WEIGHTS
    assert cfg.snap.enabled is False


def test_from_env_without_osrm_stays_local():
    cfg = EngineModel.from_env({"ROUTING_PROVIDER": "osrm"})
    assert cfg.routing.kind == "inmemory"
    assert cfg.catalog.kind == "overpass"
    assert cfg.snap.enabled is False


def test_from_env_with_osrm():
    env = {
        "ROUTING_PROVIDER": "OSRM",
        "OSRM_BASE_URL": "http://osrm.local",
        "OVERPASS_URL": "http://overpass.local",
        "REQUIRE_COVERAGE_SNAP": "true",
        "LOG_LEVEL": "debug",
        "RUN_ID": "nightly",
    }
    cfg = EngineModel.from_env(env)
    assert cfg.routing.kind == "osrm" and cfg.routing.base_url == "http://osrm.local"
    assert cfg.coverage_routing.kind == "inmemory"
    assert cfg.catalog.endpoint_url == "http://overpass.local"
    assert cfg.snap.enabled and cfg.snap.required
    assert cfg.log.level == "DEBUG"
    assert cfg.run_id == "nightly"


def test_from_env_flags_can_switch_features_off():
    env = {"OSRM_BASE_URL": "http://osrm.local", "SNAP_COVERAGE_TO_OSRM": "0", "STREET_CATALOG": "off"}
    cfg = EngineModel.from_env(env)
    assert cfg.snap.enabled is False
    assert cfg.catalog.kind == "none"
