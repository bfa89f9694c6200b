# main.py
import json
import sys

from routeglyph.app.build import build
from routeglyph.config.models import EngineModel
from routeglyph.io.route_export import route_to_dict

FALLBACK_START = {"lat": 40.741, "lon": -73.989}


def run(request: dict) -> dict:
    engine = build(EngineModel.from_env())
    mode = request.pop("mode", "coverage")
    route = engine.shape(request) if mode == "shape" else engine.coverage(request)
    return route_to_dict(route)


if __name__ == "__main__":
    # request JSON on stdin, e.g. {"start": {"lat": 40.741, "lon": -73.989}, "alphabet": ["A", "B"]}
    raw = sys.stdin.read().strip()
    req = json.loads(raw) if raw else {"start": FALLBACK_START}
    json.dump(run(req), sys.stdout, indent=2)
    sys.stdout.write("\n")
