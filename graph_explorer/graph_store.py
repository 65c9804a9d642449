"""
Mutable in-memory graph store.

Backed by a NetworkX DiGraph. Edges carry their own stable id, kept in an
id -> (source, target) index so the render surface and the relation editor
can address edges individually.

Invariants held after every public call:
- every edge's source and target exist as nodes
- at most one edge connects any unordered pair of nodes
A failing call raises before mutating anything.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

import networkx as nx

from graph_explorer.errors import DuplicateEdge, DuplicateNode, UnknownEndpoint, UnknownNode

logger = logging.getLogger(__name__)


NODE_DEFAULTS: Dict[str, Any] = {
    'label': '',
    'color': '#999999',
    'base_color': '#999999',
    'size': 20,
    'x': 0.0,
    'y': 0.0,
    'highlighted': False,
    'image': None,
    'kind': None,
}

EDGE_DEFAULTS: Dict[str, Any] = {
    'label': '',
    'color': '#cccccc',
    'size': 2,
}


class GraphStore:
    """
    Owns node and edge records and their attributes.

    All handlers share one instance; none keeps a private copy of the graph.
    """

    def __init__(self):
        self.G = nx.DiGraph()
        self._edges: Dict[str, Tuple[str, str]] = {}

    # --- Queries ---

    @property
    def order(self) -> int:
        """Number of nodes."""
        return self.G.number_of_nodes()

    @property
    def size(self) -> int:
        """Number of edges."""
        return len(self._edges)

    def __len__(self) -> int:
        return self.order

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.G

    def has_node(self, node_id: str) -> bool:
        return node_id in self.G

    def has_edge(self, edge_id: str) -> bool:
        return edge_id in self._edges

    def nodes(self) -> List[str]:
        return list(self.G.nodes)

    def edges(self) -> List[str]:
        return list(self._edges)

    def iter_nodes(self) -> Iterator[Tuple[str, Dict[str, Any]]]:
        """Yield (node_id, attributes) pairs. Attributes are live; do not mutate."""
        return iter(self.G.nodes(data=True))

    def edge_between(self, a: str, b: str) -> Optional[str]:
        """Return the id of the edge connecting a and b in either direction, if any."""
        if self.G.has_edge(a, b):
            return self.G.edges[a, b]['id']
        if self.G.has_edge(b, a):
            return self.G.edges[b, a]['id']
        return None

    def edge_endpoints(self, edge_id: str) -> Tuple[str, str]:
        try:
            return self._edges[edge_id]
        except KeyError:
            raise UnknownNode(edge_id, kind="edge") from None

    def neighbors(self, node_id: str) -> List[str]:
        """Nodes reachable over exactly one incident edge, either direction."""
        self._require_node(node_id)
        seen = []
        for other in list(self.G.successors(node_id)) + list(self.G.predecessors(node_id)):
            if other != node_id and other not in seen:
                seen.append(other)
        return seen

    def incident_edges(self, node_id: str) -> List[str]:
        """Ids of inbound and outbound edges of node_id (a self-loop appears once)."""
        self._require_node(node_id)
        ids = [self.G.edges[u, v]['id'] for u, v in self.G.in_edges(node_id)]
        for u, v in self.G.out_edges(node_id):
            edge_id = self.G.edges[u, v]['id']
            if edge_id not in ids:
                ids.append(edge_id)
        return ids

    # --- Node attributes ---

    def node_attributes(self, node_id: str) -> Dict[str, Any]:
        """Return a copy of the node's attributes."""
        self._require_node(node_id)
        return dict(self.G.nodes[node_id])

    def get_node_attribute(self, node_id: str, key: str, default: Any = None) -> Any:
        self._require_node(node_id)
        return self.G.nodes[node_id].get(key, default)

    def set_node_attribute(self, node_id: str, key: str, value: Any) -> None:
        self._require_node(node_id)
        self.G.nodes[node_id][key] = value

    def update_node(self, node_id: str, **attrs) -> None:
        self._require_node(node_id)
        self.G.nodes[node_id].update(attrs)

    def position(self, node_id: str) -> Tuple[float, float]:
        self._require_node(node_id)
        data = self.G.nodes[node_id]
        return float(data.get('x') or 0.0), float(data.get('y') or 0.0)

    def set_position(self, node_id: str, x: float, y: float) -> None:
        self._require_node(node_id)
        self.G.nodes[node_id]['x'] = float(x)
        self.G.nodes[node_id]['y'] = float(y)

    def positions(self) -> Dict[str, Tuple[float, float]]:
        return {
            n: (float(d.get('x') or 0.0), float(d.get('y') or 0.0))
            for n, d in self.G.nodes(data=True)
        }

    # --- Edge attributes ---

    def edge_attributes(self, edge_id: str) -> Dict[str, Any]:
        u, v = self.edge_endpoints(edge_id)
        return dict(self.G.edges[u, v])

    def get_edge_attribute(self, edge_id: str, key: str, default: Any = None) -> Any:
        u, v = self.edge_endpoints(edge_id)
        return self.G.edges[u, v].get(key, default)

    def set_edge_attribute(self, edge_id: str, key: str, value: Any) -> None:
        if key == 'id':
            raise ValueError("Edge id is immutable")
        u, v = self.edge_endpoints(edge_id)
        self.G.edges[u, v][key] = value

    def update_edge(self, edge_id: str, **attrs) -> None:
        attrs.pop('id', None)
        u, v = self.edge_endpoints(edge_id)
        self.G.edges[u, v].update(attrs)

    # --- Mutations ---

    def add_node(self, node_id: str, **attrs) -> None:
        if node_id in self.G:
            raise DuplicateNode(node_id)
        data = dict(NODE_DEFAULTS)
        data.update(attrs)
        self.G.add_node(node_id, **data)

    def remove_node(self, node_id: str) -> List[str]:
        """
        Remove a node after dropping all of its incident edges.
        Returns the ids of the edges that were removed with it.
        """
        self._require_node(node_id)
        removed = self.incident_edges(node_id)
        for edge_id in removed:
            self.remove_edge(edge_id)
        self.G.remove_node(node_id)
        return removed

    def add_edge(self, edge_id: str, source: str, target: str, **attrs) -> None:
        for endpoint in (source, target):
            if endpoint not in self.G:
                raise UnknownEndpoint(edge_id, endpoint)
        existing = self.edge_between(source, target)
        if existing is not None:
            raise DuplicateEdge(source, target, existing)
        if edge_id in self._edges:
            raise DuplicateEdge(source, target, edge_id)
        data = dict(EDGE_DEFAULTS)
        data.update(attrs)
        data['id'] = edge_id
        self.G.add_edge(source, target, **data)
        self._edges[edge_id] = (source, target)

    def remove_edge(self, edge_id: str) -> Tuple[str, str]:
        u, v = self.edge_endpoints(edge_id)
        self.G.remove_edge(u, v)
        del self._edges[edge_id]
        return u, v

    def clear(self) -> None:
        self.G.clear()
        self._edges.clear()

    def _require_node(self, node_id: str) -> None:
        if node_id not in self.G:
            raise UnknownNode(node_id)
