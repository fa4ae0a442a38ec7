from __future__ import annotations

import pytest

from causal_search.errors import GraphError
from causal_search.models.graph import (
    Edge,
    Endpoint,
    Graph,
    Node,
    NodeType,
    directed_edge,
    graph_from_edges,
    parse_connector,
)
from causal_search.models.sepsets import SepsetMap


def test_edge_equality_ignores_listing_order():
    a, b = Node("A"), Node("B")
    assert Edge(a, b, Endpoint.TAIL, Endpoint.ARROW) == Edge(b, a, Endpoint.ARROW, Endpoint.TAIL)
    assert Edge(a, b, Endpoint.TAIL, Endpoint.ARROW) != Edge(a, b, Endpoint.ARROW, Endpoint.TAIL)
    assert directed_edge(a, b).tail_node() == a
    assert directed_edge(a, b).head_node() == b
    assert str(directed_edge(b, a).reversed()) == "A <-- B"


def test_self_loop_and_duplicate_edges_rejected():
    g = Graph([Node("A"), Node("B")])
    with pytest.raises(GraphError):
        Edge(Node("A"), Node("A"), Endpoint.TAIL, Endpoint.ARROW)
    g.add_directed_edge(Node("A"), Node("B"))
    with pytest.raises(GraphError):
        g.add_undirected_edge(Node("B"), Node("A"))
    with pytest.raises(GraphError):
        g.add_node(Node("A"))


def test_complete_graph_and_adjacency_order():
    nodes = [Node(n) for n in "ABCD"]
    g = Graph.complete(nodes)
    assert g.num_edges() == 6
    assert all(e.is_undirected() for e in g.edges())
    assert [n.name for n in g.adjacent_nodes(Node("C"))] == ["A", "B", "D"]


def test_set_endpoint_orient_and_queries():
    g = graph_from_edges(["A", "B", "C"], undirected=[("A", "B"), ("B", "C")])
    A, B, C = (g.get_node(n) for n in "ABC")
    g.set_endpoint(A, B, Endpoint.ARROW)
    assert g.is_directed_from_to(A, B)
    g.set_endpoint(C, B, Endpoint.ARROW)
    assert g.is_def_collider(A, B, C)
    assert g.parents(B) == [A, C]
    assert g.children(A) == [B]
    g.make_undirected(A, B)
    assert g.is_undirected(A, B)
    g.orient(B, A)
    assert g.is_parent_of(B, A)


def test_remove_node_drops_its_edges():
    g = graph_from_edges(["A", "B", "C"], directed=[("A", "B"), ("B", "C")])
    g.remove_node(g.get_node("B"))
    assert g.node_names == ["A", "C"]
    assert g.num_edges() == 0
    with pytest.raises(GraphError):
        g.get_node("B")


def test_text_rendering():
    g = graph_from_edges(["A", "B", "C"], directed=[("A", "B")], undirected=[("B", "C")])
    assert str(g) == "Graph Nodes:\nA;B;C\n\nGraph Edges:\n1. A --> B\n2. B --- C\n"


def test_graph_equality_and_copy():
    g = graph_from_edges(["A", "B", "C"], directed=[("A", "B"), ("C", "B")])
    h = g.copy()
    assert h == g
    h.make_undirected(h.get_node("A"), h.get_node("B"))
    assert h != g
    assert g.is_directed_from_to(g.get_node("A"), g.get_node("B"))


def test_latent_nodes_and_subgraph():
    g = graph_from_edges(["L", "A", "B"], directed=[("L", "A"), ("L", "B")], latent=["L"])
    assert g.get_node("L").node_type == NodeType.LATENT
    assert [n.name for n in g.measured_nodes()] == ["A", "B"]
    sub = g.subgraph(g.measured_nodes())
    assert sub.num_edges() == 0


def test_parse_connector():
    assert parse_connector("-->") == (Endpoint.TAIL, Endpoint.ARROW)
    assert parse_connector("<-o") == (Endpoint.ARROW, Endpoint.CIRCLE)
    assert parse_connector("<->") == (Endpoint.ARROW, Endpoint.ARROW)
    with pytest.raises(GraphError):
        parse_connector("=>")


def test_sepset_map_is_symmetric():
    a, b, c = Node("A"), Node("B"), Node("C")
    s = SepsetMap()
    s.set(a, c, (b,), p_value=0.4)
    assert s.get(c, a) == (b,)
    assert (c, a) in s
    assert s.get(a, b) is None
    assert s.to_dict() == {"A|C": {"z": ["B"], "p": 0.4}}
