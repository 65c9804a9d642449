"""
Exception taxonomy for graph-explorer.

All of these are recovered locally by the controllers; none is fatal and
none reaches the user.
"""

from typing import Optional


class GraphError(Exception):
    """Base class for graph store and layout errors."""


class UnknownNode(GraphError):
    """A node or edge id that is not in the store."""
    def __init__(self, item_id: str, kind: str = "node"):
        self.item_id = item_id
        self.kind = kind
        super().__init__(f"Unknown {kind}: {item_id}")


class DuplicateNode(GraphError):
    """A node id that is already in the store."""
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node already exists: {node_id}")


class UnknownEndpoint(GraphError):
    """An edge references a node that does not exist."""
    def __init__(self, edge_id: str, missing: str):
        self.edge_id = edge_id
        self.missing = missing
        super().__init__(f"Edge {edge_id} references unknown node {missing}")


class DuplicateEdge(GraphError):
    """An edge already connects the pair (in either direction), or the edge id is taken."""
    def __init__(self, source: str, target: str, existing_edge_id: Optional[str] = None):
        self.source = source
        self.target = target
        self.existing_edge_id = existing_edge_id
        super().__init__(f"Edge already exists between {source} and {target} ({existing_edge_id})")


class LayoutUnavailable(GraphError):
    """The external layered layout failed, timed out or produced nothing."""
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Layered layout unavailable: {reason}")


class EmptyGraph(GraphError):
    """Bounds or viewport fit requested on a graph without nodes."""
    def __init__(self):
        super().__init__("Graph has no nodes")
