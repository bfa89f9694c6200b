# routeglyph/app/build.py
import logging
from collections.abc import Mapping
from dataclasses import dataclass

from routeglyph.app.controllers.coverage import CoverageOptimizer
from routeglyph.app.controllers.shape import ShapeOptimizer
from routeglyph.app.protocols import OptimizerHooks, ShortestPathAdapter, StreetCatalogProvider
from routeglyph.app.snapping import (
    derive_coverage_from_final_route,
    snap_coverage_route_to_roads,
    with_coverage_snap_meta,
)
from routeglyph.config.models import (
    CoverageRouteRequest,
    EngineModel,
    ShapeRouteRequest,
    SnapModel,
)
from routeglyph.domain.entities.route import GeneratedRoute
from routeglyph.domain.errors import RouteEngineError, RouteSnapError
from routeglyph.domain.mechanics.mechanics_graph import RoadGraph
from routeglyph.domain.mechanics.mechanics_osrm import OsrmClient
from routeglyph.io.engine_logging import EngineLogging
from routeglyph.runtime.hooks import NoopHooks
from routeglyph.runtime.registries import make_catalog, make_router

log = logging.getLogger(__name__)


@dataclass
class RouteEngine:
    coverage_optimizer: CoverageOptimizer
    shape_optimizer: ShapeOptimizer
    snap: SnapModel
    snap_client: OsrmClient | None = None

    def coverage(
        self, request: CoverageRouteRequest | Mapping, *, graph: RoadGraph | None = None
    ) -> GeneratedRoute:
        route = self.coverage_optimizer.run(request, graph=graph)

        if self.snap_client is None:
            if self.snap.required:
                raise RouteSnapError("Road snapping is required but not enabled.")
            route = with_coverage_snap_meta(route, False, "road snapping disabled")
        else:
            try:
                route = with_coverage_snap_meta(
                    snap_coverage_route_to_roads(route, self.snap_client), True
                )
            except RouteEngineError as exc:
                reason = f"OSRM snapping failed: {exc}"
                log.warning(reason)
                if self.snap.required:
                    raise RouteSnapError(reason) from exc
                route = with_coverage_snap_meta(route, False, reason)

        return derive_coverage_from_final_route(route)

    def shape(
        self, request: ShapeRouteRequest | Mapping, *, graph: RoadGraph | None = None
    ) -> GeneratedRoute:
        return self.shape_optimizer.run(request, graph=graph)


def build(
    cfg: EngineModel | Mapping | None = None,
    *,
    use_logging: bool = True,
    hooks: OptimizerHooks | None = None,
    routing: ShortestPathAdapter | None = None,
    coverage_routing: ShortestPathAdapter | None = None,
    street_catalog: StreetCatalogProvider | None = None,
    session=None,
) -> RouteEngine:
    """Explicit collaborators override the ones the config would build."""
    # 0) Validate config
    if cfg is None:
        model = EngineModel()
    else:
        model = cfg if isinstance(cfg, EngineModel) else EngineModel.model_validate(cfg)

    # 1) Hooks
    if hooks is None:
        hooks = (
            EngineLogging(run_id=model.run_id, level=model.log.level, debug=model.log.debug)
            if use_logging
            else NoopHooks()
        )

    # 2) Collaborators
    deps = {"session": session}
    weights = model.weights.to_weights()
    routing = routing or make_router(model.routing, deps=deps)
    coverage_routing = coverage_routing or make_router(model.coverage_routing, deps=deps)
    if street_catalog is None:
        street_catalog = make_catalog(model.catalog, deps=deps)

    snap_client = None
    if model.snap.enabled:
        snap_client = OsrmClient(
            model.snap.osrm_base_url, timeout_s=model.snap.timeout_s, session=session
        )

    # 3) Optimizers
    return RouteEngine(
        coverage_optimizer=CoverageOptimizer(
            shortest_path=coverage_routing,
            street_catalog=street_catalog,
            hooks=hooks,
            weights=weights,
        ),
        shape_optimizer=ShapeOptimizer(shortest_path=routing, hooks=hooks, weights=weights),
        snap=model.snap,
        snap_client=snap_client,
    )
