# FILE: causal_search/models/graph.py
# ======================================================================================
# Causal Search Engine (CSE)
# Graph: nodes, endpoint-marked edges, and a mutable adjacency structure
# --------------------------------------------------------------------------------------
# Endpoint marks
# --------------
# Every edge carries one mark per side:
#   TAIL   '-'   (out of the node)
#   ARROW  '>'   (into the node; rendered '<' on the left-hand side)
#   CIRCLE 'o'   (undetermined; PAG style)
# Examples:
#   A --> B   (TAIL, ARROW)      A --- B   (TAIL, TAIL)
#   A <-> B   (ARROW, ARROW)     A o-> B   (CIRCLE, ARROW)
#
# Storage
# -------
# The graph keeps an adjacency map Dict[Node, Dict[Node, Edge]] with the same Edge
# object stored under both endpoints, so edge lookup is O(1) and neighbour
# enumeration is O(degree). There is at most one edge per unordered node pair.
#
# License
# -------
# MIT (c) 2025 Causal Search Engine contributors
# ======================================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from ..errors import GraphError


class NodeType(str, Enum):
    MEASURED = "measured"
    LATENT = "latent"
    ERROR = "error"


@dataclass(frozen=True, order=True)
class Node:
    """A named variable. Identity is the name; the type only filters search scope."""

    name: str
    node_type: NodeType = field(default=NodeType.MEASURED, compare=False)

    def is_measured(self) -> bool:
        return self.node_type == NodeType.MEASURED

    def __str__(self) -> str:
        return self.name


class Endpoint(str, Enum):
    TAIL = "-"
    ARROW = ">"
    CIRCLE = "o"


_LEFT = {Endpoint.TAIL: "-", Endpoint.ARROW: "<", Endpoint.CIRCLE: "o"}
_RIGHT = {Endpoint.TAIL: "-", Endpoint.ARROW: ">", Endpoint.CIRCLE: "o"}
_FROM_LEFT = {v: k for k, v in _LEFT.items()}
_FROM_RIGHT = {v: k for k, v in _RIGHT.items()}


class Edge:
    """
    Edge between node1 and node2 with one endpoint mark per side.
      node1 (endpoint1) --- (endpoint2) node2

    Two edges are equal when they join the same pair with the same mark at each
    node, whichever side was listed first.
    """

    __slots__ = ("node1", "node2", "endpoint1", "endpoint2")

    def __init__(self, node1: Node, node2: Node, endpoint1: Endpoint, endpoint2: Endpoint):
        if node1 == node2:
            raise GraphError(f"Self loops are not allowed: {node1}")
        self.node1 = node1
        self.node2 = node2
        self.endpoint1 = Endpoint(endpoint1)
        self.endpoint2 = Endpoint(endpoint2)

    # ---- queries ----

    def endpoint(self, node: Node) -> Endpoint:
        """Mark at `node`'s end of the edge."""
        if node == self.node1:
            return self.endpoint1
        if node == self.node2:
            return self.endpoint2
        raise GraphError(f"{node} is not an endpoint of {self}")

    def other(self, node: Node) -> Node:
        if node == self.node1:
            return self.node2
        if node == self.node2:
            return self.node1
        raise GraphError(f"{node} is not an endpoint of {self}")

    def nodes(self) -> Tuple[Node, Node]:
        return (self.node1, self.node2)

    def is_directed(self) -> bool:
        return {self.endpoint1, self.endpoint2} == {Endpoint.TAIL, Endpoint.ARROW}

    def is_undirected(self) -> bool:
        return self.endpoint1 == Endpoint.TAIL and self.endpoint2 == Endpoint.TAIL

    def is_bidirected(self) -> bool:
        return self.endpoint1 == Endpoint.ARROW and self.endpoint2 == Endpoint.ARROW

    def points_towards(self, node: Node) -> bool:
        """True for a directed edge whose arrowhead is at `node`."""
        return self.is_directed() and self.endpoint(node) == Endpoint.ARROW

    def tail_node(self) -> Node:
        if not self.is_directed():
            raise GraphError(f"Not a directed edge: {self}")
        return self.node1 if self.endpoint1 == Endpoint.TAIL else self.node2

    def head_node(self) -> Node:
        if not self.is_directed():
            raise GraphError(f"Not a directed edge: {self}")
        return self.node1 if self.endpoint1 == Endpoint.ARROW else self.node2

    def reversed(self) -> "Edge":
        return Edge(self.node2, self.node1, self.endpoint2, self.endpoint1)

    def connector(self) -> str:
        return _LEFT[self.endpoint1] + "-" + _RIGHT[self.endpoint2]

    # ---- dunder ----

    def _key(self) -> Tuple[str, str, str, str]:
        if self.node1.name <= self.node2.name:
            return (self.node1.name, self.node2.name, self.endpoint1.value, self.endpoint2.value)
        return (self.node2.name, self.node1.name, self.endpoint2.value, self.endpoint1.value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Edge):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __repr__(self) -> str:
        return f"Edge({self})"

    def __str__(self) -> str:
        return f"{self.node1.name} {self.connector()} {self.node2.name}"


def directed_edge(a: Node, b: Node) -> Edge:
    return Edge(a, b, Endpoint.TAIL, Endpoint.ARROW)


def undirected_edge(a: Node, b: Node) -> Edge:
    return Edge(a, b, Endpoint.TAIL, Endpoint.TAIL)


def bidirected_edge(a: Node, b: Node) -> Edge:
    return Edge(a, b, Endpoint.ARROW, Endpoint.ARROW)


def nondirected_edge(a: Node, b: Node) -> Edge:
    return Edge(a, b, Endpoint.CIRCLE, Endpoint.CIRCLE)


def partially_oriented_edge(a: Node, b: Node) -> Edge:
    return Edge(a, b, Endpoint.CIRCLE, Endpoint.ARROW)


def parse_connector(connector: str) -> Tuple[Endpoint, Endpoint]:
    """'-->' -> (TAIL, ARROW); '<-o' -> (ARROW, CIRCLE); ..."""
    if len(connector) != 3 or connector[1] != "-":
        raise GraphError(f"Unrecognized edge connector: {connector!r}")
    try:
        return _FROM_LEFT[connector[0]], _FROM_RIGHT[connector[2]]
    except KeyError:
        raise GraphError(f"Unrecognized edge connector: {connector!r}") from None


class Graph:
    """
    Mutable graph over named nodes with endpoint-marked edges.

    Node order is insertion order and is the order used for every deterministic
    iteration (adjacent_nodes, edges, searches).
    """

    def __init__(self, nodes: Optional[Iterable[Node]] = None):
        self._nodes: List[Node] = []
        self._index: Dict[Node, int] = {}
        self._by_name: Dict[str, Node] = {}
        self._adj: Dict[Node, Dict[Node, Edge]] = {}
        for n in nodes or ():
            self.add_node(n)

    @classmethod
    def complete(cls, nodes: Sequence[Node]) -> "Graph":
        """Fully connected undirected graph over `nodes`."""
        g = cls(nodes)
        for i, a in enumerate(g._nodes):
            for b in g._nodes[i + 1:]:
                g.add_undirected_edge(a, b)
        return g

    # ---- nodes ----

    def add_node(self, node: Node) -> Node:
        if node in self._index:
            raise GraphError(f"Duplicate node: {node}")
        self._index[node] = len(self._nodes)
        self._nodes.append(node)
        self._by_name[node.name] = node
        self._adj[node] = {}
        return node

    def remove_node(self, node: Node) -> None:
        node = self._require(node)
        for other in list(self._adj[node]):
            del self._adj[other][node]
        del self._adj[node]
        del self._by_name[node.name]
        self._nodes.remove(node)
        self._index = {n: i for i, n in enumerate(self._nodes)}

    def get_node(self, name: str) -> Node:
        try:
            return self._by_name[name]
        except KeyError:
            raise GraphError(f"Unknown node: {name}") from None

    def has_node(self, node: Node | str) -> bool:
        name = node if isinstance(node, str) else node.name
        return name in self._by_name

    @property
    def nodes(self) -> List[Node]:
        return list(self._nodes)

    @property
    def node_names(self) -> List[str]:
        return [n.name for n in self._nodes]

    def measured_nodes(self) -> List[Node]:
        return [n for n in self._nodes if n.is_measured()]

    def index_of(self, node: Node) -> int:
        return self._index[self._require(node)]

    def _require(self, node: Node | str) -> Node:
        name = node if isinstance(node, str) else node.name
        try:
            return self._by_name[name]
        except KeyError:
            raise GraphError(f"Unknown node: {name}") from None

    # ---- edges ----

    def add_edge(self, edge: Edge) -> Edge:
        a, b = self._require(edge.node1), self._require(edge.node2)
        if b in self._adj[a]:
            raise GraphError(f"Nodes {a} and {b} are already adjacent: {self._adj[a][b]}")
        edge = Edge(a, b, edge.endpoint1, edge.endpoint2)
        self._adj[a][b] = edge
        self._adj[b][a] = edge
        return edge

    def add_directed_edge(self, a: Node, b: Node) -> Edge:
        return self.add_edge(directed_edge(self._require(a), self._require(b)))

    def add_undirected_edge(self, a: Node, b: Node) -> Edge:
        return self.add_edge(undirected_edge(self._require(a), self._require(b)))

    def add_bidirected_edge(self, a: Node, b: Node) -> Edge:
        return self.add_edge(bidirected_edge(self._require(a), self._require(b)))

    def add_nondirected_edge(self, a: Node, b: Node) -> Edge:
        return self.add_edge(nondirected_edge(self._require(a), self._require(b)))

    def remove_edge(self, a: Node, b: Node) -> Optional[Edge]:
        a, b = self._require(a), self._require(b)
        edge = self._adj[a].pop(b, None)
        if edge is not None:
            del self._adj[b][a]
        return edge

    def get_edge(self, a: Node, b: Node) -> Optional[Edge]:
        a = self._require(a)
        return self._adj[a].get(b)

    def _replace(self, edge: Edge) -> Edge:
        a, b = edge.node1, edge.node2
        if b not in self._adj[a]:
            raise GraphError(f"No edge between {a} and {b}")
        self._adj[a][b] = edge
        self._adj[b][a] = edge
        return edge

    def set_endpoint(self, a: Node, b: Node, endpoint: Endpoint) -> Edge:
        """Set the mark at `b`'s end of the edge a *-* b."""
        edge = self.get_edge(a, b)
        if edge is None:
            raise GraphError(f"No edge between {a} and {b}")
        a, b = self._require(a), self._require(b)
        return self._replace(Edge(a, b, edge.endpoint(a), endpoint))

    def orient(self, a: Node, b: Node) -> Edge:
        """Make the existing a *-* b edge a --> b."""
        if self.get_edge(a, b) is None:
            raise GraphError(f"No edge between {a} and {b}")
        return self._replace(directed_edge(self._require(a), self._require(b)))

    def make_undirected(self, a: Node, b: Node) -> Edge:
        if self.get_edge(a, b) is None:
            raise GraphError(f"No edge between {a} and {b}")
        return self._replace(undirected_edge(self._require(a), self._require(b)))

    def edges(self) -> List[Edge]:
        """All edges, ordered by the index of their endpoints."""
        out: List[Edge] = []
        for a in self._nodes:
            ia = self._index[a]
            for b, e in self._adj[a].items():
                if self._index[b] > ia:
                    out.append(e)
        out.sort(key=lambda e: sorted((self._index[e.node1], self._index[e.node2])))
        return out

    def num_edges(self) -> int:
        return sum(len(v) for v in self._adj.values()) // 2

    def is_adjacent(self, a: Node, b: Node) -> bool:
        return b in self._adj[self._require(a)]

    def adjacent_nodes(self, node: Node) -> List[Node]:
        return sorted(self._adj[self._require(node)], key=self._index.__getitem__)

    def degree(self, node: Node) -> int:
        return len(self._adj[self._require(node)])

    def iter_adjacency(self) -> Iterator[Tuple[Node, Dict[Node, Edge]]]:
        for n in self._nodes:
            yield n, self._adj[n]

    # ---- orientation queries ----

    def is_directed_from_to(self, a: Node, b: Node) -> bool:
        e = self.get_edge(a, b)
        return e is not None and e.is_directed() and e.endpoint(b) == Endpoint.ARROW

    def is_undirected(self, a: Node, b: Node) -> bool:
        e = self.get_edge(a, b)
        return e is not None and e.is_undirected()

    def is_parent_of(self, a: Node, b: Node) -> bool:
        return self.is_directed_from_to(a, b)

    def parents(self, node: Node) -> List[Node]:
        return [n for n in self.adjacent_nodes(node) if self.is_directed_from_to(n, node)]

    def children(self, node: Node) -> List[Node]:
        return [n for n in self.adjacent_nodes(node) if self.is_directed_from_to(node, n)]

    def is_def_collider(self, a: Node, b: Node, c: Node) -> bool:
        """True if a *-> b <-* c (both marks at b are arrowheads)."""
        e1, e2 = self.get_edge(a, b), self.get_edge(c, b)
        if e1 is None or e2 is None:
            return False
        return e1.endpoint(b) == Endpoint.ARROW and e2.endpoint(b) == Endpoint.ARROW

    # ---- copying / comparison ----

    def copy(self) -> "Graph":
        g = Graph(self._nodes)
        for e in self.edges():
            g.add_edge(e)
        return g

    def subgraph(self, nodes: Iterable[Node]) -> "Graph":
        keep = [self._require(n) for n in nodes]
        keep_set = set(keep)
        g = Graph(keep)
        for e in self.edges():
            if e.node1 in keep_set and e.node2 in keep_set:
                g.add_edge(e)
        return g

    def undirected_skeleton(self) -> "Graph":
        g = Graph(self._nodes)
        for e in self.edges():
            g.add_undirected_edge(e.node1, e.node2)
        return g

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Graph):
            return NotImplemented
        return set(self._nodes) == set(other._nodes) and set(self.edges()) == set(other.edges())

    def __contains__(self, node: object) -> bool:
        if isinstance(node, (Node, str)):
            return self.has_node(node)
        return False

    def __len__(self) -> int:
        return len(self._nodes)

    def __str__(self) -> str:
        lines = ["Graph Nodes:", ";".join(self.node_names), "", "Graph Edges:"]
        for i, e in enumerate(self.edges(), 1):
            lines.append(f"{i}. {e}")
        return "\n".join(lines) + "\n"

    def __repr__(self) -> str:
        return f"Graph(nodes={len(self._nodes)}, edges={self.num_edges()})"


def nodes_from_names(names: Iterable[str], node_type: NodeType = NodeType.MEASURED) -> List[Node]:
    return [Node(str(n), node_type) for n in names]


def graph_from_edges(
    names: Sequence[str],
    directed: Iterable[Tuple[str, str]] = (),
    undirected: Iterable[Tuple[str, str]] = (),
    bidirected: Iterable[Tuple[str, str]] = (),
    latent: Iterable[str] = (),
) -> Graph:
    """
    Convenience builder used by the CLI, resampling and tests.

    Example
    -------
    >>> g = graph_from_edges(["A", "B", "C"], directed=[("A", "B"), ("C", "B")])
    """
    latent_set = set(latent)
    g = Graph(Node(n, NodeType.LATENT if n in latent_set else NodeType.MEASURED) for n in names)
    for a, b in directed:
        g.add_directed_edge(g.get_node(a), g.get_node(b))
    for a, b in undirected:
        g.add_undirected_edge(g.get_node(a), g.get_node(b))
    for a, b in bidirected:
        g.add_bidirected_edge(g.get_node(a), g.get_node(b))
    return g
