import os
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from routeglyph.domain.entities.geography import Coordinate, StreetCandidate
from routeglyph.domain.mechanics.mechanics_scoring import RouteObjectiveWeights


def _check_coordinate(c: Coordinate) -> Coordinate:
    if not -90.0 <= c.lat <= 90.0:
        raise ValueError(f"latitude out of range: {c.lat}")
    if not -180.0 <= c.lon <= 180.0:
        raise ValueError(f"longitude out of range: {c.lon}")
    return c


class LogModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    debug: bool = False


class WeightsModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    distance: float = Field(1.0, ge=0)
    elevation: float = Field(0.25, ge=0)
    turns: float = Field(0.4, ge=0)
    safety: float = Field(0.9, ge=0)
    u_turn: float = Field(1.2, ge=0)

    def to_weights(self) -> RouteObjectiveWeights:
        return RouteObjectiveWeights(**self.model_dump())


# ----------------- REQUESTS ---------------------


class AreaModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    center: Coordinate
    radius_m: float = Field(gt=0)

    @field_validator("center")
    @classmethod
    def _center_in_range(cls, v: Coordinate) -> Coordinate:
        return _check_coordinate(v)


class CoverageRouteRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    name: str = "Coverage Route"
    start: Coordinate
    target_streets: list[str] = Field(default_factory=list)
    strategy: Literal["alphabet", "target_streets"] | None = None
    max_distance_m: float | None = Field(default=None, ge=0)
    alphabet: list[str] | None = None
    area: AreaModel | None = None

    @field_validator("start")
    @classmethod
    def _start_in_range(cls, v: Coordinate) -> Coordinate:
        return _check_coordinate(v)

    @property
    def resolved_strategy(self) -> Literal["alphabet", "target_streets"]:
        if self.strategy:
            return self.strategy
        return "target_streets" if self.target_streets else "alphabet"


class ShapeRouteRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    name: str = "Shape Route"
    points: list[Coordinate] = Field(default_factory=list)

    @field_validator("points")
    @classmethod
    def _points_in_range(cls, v: list[Coordinate]) -> list[Coordinate]:
        return [_check_coordinate(p) for p in v]


# ----------------- ROUTERS ---------------------


class RouterInMemoryModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    kind: Literal["inmemory"] = "inmemory"


class RouterOsrmModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    kind: Literal["osrm"] = "osrm"
    base_url: str
    profile: Literal["foot", "walking", "bike", "driving"] = "foot"
    timeout_s: float = Field(10.0, gt=0)
    fallback: bool = True  # substitute the in-memory router on transport failure


RouterUnion = Annotated[RouterInMemoryModel | RouterOsrmModel, Field(discriminator="kind")]


# ----------------- STREET CATALOGS ---------------------


class CatalogNoneModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    kind: Literal["none"] = "none"


class CatalogOverpassModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    kind: Literal["overpass"] = "overpass"
    endpoint_url: str = "https://overpass-api.de/api/interpreter"
    timeout_s: float = Field(8.0, gt=0)
    max_results: int = Field(250, ge=1)


class CatalogStaticModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    kind: Literal["static"] = "static"
    candidates: list[StreetCandidate] = Field(default_factory=list)


CatalogUnion = Annotated[
    CatalogNoneModel | CatalogOverpassModel | CatalogStaticModel, Field(discriminator="kind")
]


# ------------------ SNAPPING -----------------------------


class SnapModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    enabled: bool = False
    required: bool = False  # fail the request instead of returning an unsnapped route
    osrm_base_url: str | None = None
    timeout_s: float = Field(10.0, gt=0)

    @model_validator(mode="after")
    def _needs_url(self):
        if self.enabled and not self.osrm_base_url:
            raise ValueError("snap.enabled requires snap.osrm_base_url")
        return self


# ------------------------------------------------------------------


def _env_flag(env, name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off", "")


class EngineModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    run_id: str = "local"
    log: LogModel = LogModel()
    routing: RouterUnion = Field(default_factory=RouterInMemoryModel)
    coverage_routing: RouterUnion = Field(default_factory=RouterInMemoryModel)
    catalog: CatalogUnion = Field(default_factory=CatalogNoneModel)
    weights: WeightsModel = WeightsModel()
    snap: SnapModel = SnapModel()

    @classmethod
    def from_env(cls, environ=None) -> "EngineModel":
        env = os.environ if environ is None else environ
        osrm_url = env.get("OSRM_BASE_URL") or None

        def router(var: str) -> dict:
            # osrm without a base URL silently means in-memory
            if env.get(var, "inmemory").lower() == "osrm" and osrm_url:
                return {"kind": "osrm", "base_url": osrm_url}
            return {"kind": "inmemory"}

        overpass_url = env.get("OVERPASS_URL")
        catalog: dict = {"kind": "overpass"}
        if overpass_url:
            catalog["endpoint_url"] = overpass_url
        if not _env_flag(env, "STREET_CATALOG", True):
            catalog = {"kind": "none"}

        snap_enabled = _env_flag(env, "SNAP_COVERAGE_TO_OSRM", True) and bool(osrm_url)
        return cls.model_validate(
            {
                "run_id": env.get("RUN_ID", "local"),
                "log": {"level": env.get("LOG_LEVEL", "INFO").upper()},
                "routing": router("ROUTING_PROVIDER"),
                "coverage_routing": router("COVERAGE_ROUTING_PROVIDER"),
                "catalog": catalog,
                "snap": {
                    "enabled": snap_enabled,
                    "required": _env_flag(env, "REQUIRE_COVERAGE_SNAP", False),
                    "osrm_base_url": osrm_url,
                },
            }
        )
