# io/route_export.py
from dataclasses import asdict
from typing import Any

from routeglyph.domain.entities.route import GeneratedRoute, RouteSegment


def segment_to_dict(segment: RouteSegment) -> dict[str, Any]:
    # `from` is reserved in Python, hence start/end on the dataclass
    out: dict[str, Any] = {"from": asdict(segment.start), "to": asdict(segment.end)}
    if segment.street_name is not None:
        out["street_name"] = segment.street_name
    return out


def route_to_dict(route: GeneratedRoute) -> dict[str, Any]:
    """JSON-ready route; segments use the {from, to, street_name?} wire shape."""
    out = asdict(route)
    out["segments"] = [segment_to_dict(s) for s in route.segments]
    return out
