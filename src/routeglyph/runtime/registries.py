# runtime/registries.py
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import TypeAdapter

from routeglyph.app.protocols import ShortestPathAdapter, StreetCatalogProvider
from routeglyph.config.models import (
    CatalogNoneModel,
    CatalogOverpassModel,
    CatalogStaticModel,
    CatalogUnion,
    RouterInMemoryModel,
    RouterOsrmModel,
    RouterUnion,
)
from routeglyph.domain.mechanics.mechanics_catalogs import (
    OverpassStreetCatalogProvider,
    StaticStreetCatalogProvider,
)
from routeglyph.domain.mechanics.mechanics_osrm import OsrmClient, OsrmShortestPathAdapter
from routeglyph.domain.mechanics.mechanics_routers import (
    FallbackShortestPathAdapter,
    InMemoryShortestPathAdapter,
)

RouterFactory = Callable[[RouterUnion, dict], ShortestPathAdapter]
CatalogFactory = Callable[[CatalogUnion, dict], StreetCatalogProvider | None]

_router_registry: dict[str, RouterFactory] = {}
_catalog_registry: dict[str, CatalogFactory] = {}

_router_adapter = TypeAdapter(RouterUnion)
_catalog_adapter = TypeAdapter(CatalogUnion)


# --------------------- Routers  ---------------------


def register_router(kind: str):
    def deco(fn: RouterFactory):
        _router_registry[kind] = fn
        return fn

    return deco


def make_router(cfg: RouterUnion, *, deps: dict | None = None) -> ShortestPathAdapter:
    try:
        factory = _router_registry[cfg.kind]
    except KeyError:
        raise ValueError(f"Unknown router kind {cfg.kind!r}")
    return factory(cfg, deps or {})


@register_router("inmemory")
def _make_inmemory(cfg: RouterInMemoryModel, deps):
    return InMemoryShortestPathAdapter()


@register_router("osrm")
def _make_osrm(cfg: RouterOsrmModel, deps):
    client = OsrmClient(
        cfg.base_url, profile=cfg.profile, timeout_s=cfg.timeout_s, session=deps.get("session")
    )
    router = OsrmShortestPathAdapter(client)
    if not cfg.fallback:
        return router
    return FallbackShortestPathAdapter(primary=router, fallback=InMemoryShortestPathAdapter())


def create_shortest_path_adapter(
    cfg: RouterUnion | Mapping[str, Any] | None = None, **deps
) -> ShortestPathAdapter:
    """Adapter factory: in-memory by default; OSRM (with in-memory fallback) on request."""
    if cfg is None:
        cfg = RouterInMemoryModel()
    elif isinstance(cfg, Mapping):
        cfg = _router_adapter.validate_python(cfg)
    return make_router(cfg, deps=deps)


# ----- Street catalogs --------------------------


def register_catalog(kind: str):
    def deco(fn: CatalogFactory):
        _catalog_registry[kind] = fn
        return fn

    return deco


def make_catalog(cfg: CatalogUnion, *, deps: dict | None = None) -> StreetCatalogProvider | None:
    try:
        factory = _catalog_registry[cfg.kind]
    except KeyError:
        raise ValueError(f"Unknown catalog kind {cfg.kind!r}")
    return factory(cfg, deps or {})


@register_catalog("none")
def _make_no_catalog(cfg: CatalogNoneModel, deps):
    return None


@register_catalog("overpass")
def _make_overpass(cfg: CatalogOverpassModel, deps):
    return OverpassStreetCatalogProvider(
        cfg.endpoint_url,
        timeout_s=cfg.timeout_s,
        max_results=cfg.max_results,
        session=deps.get("session"),
    )


@register_catalog("static")
def _make_static(cfg: CatalogStaticModel, deps):
    return StaticStreetCatalogProvider(cfg.candidates)


def create_street_catalog(
    cfg: CatalogUnion | Mapping[str, Any] | None = None, **deps
) -> StreetCatalogProvider | None:
    if cfg is None:
        return None
    if isinstance(cfg, Mapping):
        cfg = _catalog_adapter.validate_python(cfg)
    return make_catalog(cfg, deps=deps)
