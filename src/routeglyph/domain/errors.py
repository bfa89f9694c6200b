# routeglyph/domain/errors.py


class RouteEngineError(Exception):
    """Base class for everything the route engine raises on purpose."""


# ---------------- Structural -----------------------


class GraphError(RouteEngineError):
    pass


class EmptyGraphError(GraphError):
    def __init__(self, msg: str = "Graph has no nodes."):
        super().__init__(msg)


class NodeNotFoundError(GraphError):
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node {node_id!r} not found in graph.")


class DuplicateIdError(GraphError):
    def __init__(self, kind: str, item_id: str):
        self.kind, self.item_id = kind, item_id
        super().__init__(f"Duplicate {kind} id {item_id!r}.")


# ---------------- Search -----------------------


class PathSearchError(RouteEngineError):
    """Recoverable: optimizers stop extending the route instead of failing."""


class NoPathError(PathSearchError):
    def __init__(self, start_node_id: str, end_node_id: str):
        self.start_node_id, self.end_node_id = start_node_id, end_node_id
        super().__init__(f"No path found between nodes {start_node_id!r} and {end_node_id!r}.")


class RemoteRoutingError(PathSearchError):
    pass


# ---------------- Collaborators -----------------------


class StreetCatalogError(RouteEngineError):
    pass


class RouteSnapError(RouteEngineError):
    pass
