# io/engine_logging.py
import json
import logging
import sys

from routeglyph.runtime.hooks import NoopHooks


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _default_json_logger(name="routeglyph", level="INFO"):
    logger = logging.getLogger(name)
    if not logger.handlers:
        h = logging.StreamHandler(sys.stdout)
        h.setFormatter(_JsonFormatter())
        logger.addHandler(h)
    logger.setLevel(level)
    return logger


class EngineLogging(NoopHooks):
    """
    One place to shape and emit structured logs for optimizer runs.
    Per-anchor and per-search events are only emitted with debug=True.
    """

    def __init__(
        self,
        run_id: str = "local",
        level: str = "INFO",
        debug: bool = False,
        logger: logging.Logger | None = None,
    ):
        self.run_id, self.debug = run_id, debug
        self.log = logger or _default_json_logger(level=level)

    def _emit(self, level: str, msg: str, **extra):
        payload = {"run_id": self.run_id}
        self.log.log(getattr(logging, level), msg, extra={"extra": {**payload, **extra}})

    # --------------- Hooks -----------------------------

    def run_start(self, *, mode, name):
        self._emit("INFO", "run_start", mode=mode, name=name)

    def graph_resolved(self, *, source, nodes, edges):
        self._emit("INFO", "graph_resolved", source=source, nodes=nodes, edges=edges)

    def catalog_failed(self, *, reason):
        self._emit("WARNING", "catalog_failed", reason=reason)

    def anchor_selected(self, *, edge_id, street_name, distance_m):
        if self.debug:
            self._emit(
                "DEBUG", "anchor_selected", edge_id=edge_id, street=street_name, distance_m=distance_m
            )

    def search_failed(self, *, start_node_id, end_node_id, reason):
        if self.debug:
            self._emit("DEBUG", "search_failed", start=start_node_id, end=end_node_id, reason=reason)

    def run_end(self, *, mode, distance_m, segments):
        self._emit("INFO", "run_end", mode=mode, distance_m=distance_m, segments=segments)
