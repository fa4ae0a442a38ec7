from __future__ import annotations

import pytest

from causal_search.errors import ConfigurationError, GraphError
from causal_search.models.graph import graph_from_edges
from causal_search.models.transforms import (
    ancestors,
    cpdag_to_dag,
    dag_to_cpdag,
    descendants,
    directed_paths_from_to,
    exists_directed_cycle,
    exists_directed_path_from_to,
    is_legal_cpdag,
    is_legal_dag,
    path_string,
    semidirected_paths_from_to,
    treks,
)


def _names(paths):
    return [[n.name for n in p] for p in paths]


def _directed_pairs(g):
    return sorted((e.tail_node().name, e.head_node().name) for e in g.edges() if e.is_directed())


def test_chain_cpdag_is_undirected(chain_dag):
    cpdag = dag_to_cpdag(chain_dag)
    assert cpdag.num_edges() == 2
    assert all(e.is_undirected() for e in cpdag.edges())


def test_collider_survives_in_cpdag(collider_dag):
    assert dag_to_cpdag(collider_dag) == collider_dag


def test_five_node_cpdag(five_node_dag):
    cpdag = dag_to_cpdag(five_node_dag)
    assert _directed_pairs(cpdag) == [("X2", "X4"), ("X3", "X4")]
    assert sum(e.is_undirected() for e in cpdag.edges()) == 4
    assert is_legal_cpdag(cpdag)


def test_cpdag_to_dag_is_a_member_of_the_class(five_node_dag):
    cpdag = dag_to_cpdag(five_node_dag)
    dag = cpdag_to_dag(cpdag)
    assert is_legal_dag(dag)
    assert dag_to_cpdag(dag) == cpdag
    # the input is left alone
    assert sum(e.is_undirected() for e in cpdag.edges()) == 4


def test_chordless_cycle_has_no_extension():
    g = graph_from_edges(["A", "B", "C", "D"], undirected=[("A", "B"), ("B", "C"), ("C", "D"), ("D", "A")])
    with pytest.raises(GraphError):
        cpdag_to_dag(g)
    assert not is_legal_cpdag(g)


def test_legality_checks(chain_dag):
    assert is_legal_dag(chain_dag)
    assert not is_legal_cpdag(chain_dag)
    cyclic = graph_from_edges(["A", "B", "C"], directed=[("A", "B"), ("B", "C"), ("C", "A")])
    assert exists_directed_cycle(cyclic)
    assert not is_legal_dag(cyclic)
    with pytest.raises(GraphError):
        dag_to_cpdag(cyclic)
    assert not is_legal_dag(graph_from_edges(["A", "B"], undirected=[("A", "B")]))


def test_reachability(five_node_dag):
    g = five_node_dag
    x0, x3, x4 = g.get_node("X0"), g.get_node("X3"), g.get_node("X4")
    assert exists_directed_path_from_to(g, x0, x4)
    assert not exists_directed_path_from_to(g, x4, x0)
    assert [n.name for n in ancestors(g, [x3])] == ["X0", "X1", "X3"]
    assert [n.name for n in descendants(g, [x3])] == ["X3", "X4"]


def test_directed_paths_respect_max_length():
    g = graph_from_edges(["A", "B", "C"], directed=[("A", "B"), ("B", "C"), ("A", "C")])
    a, c = g.get_node("A"), g.get_node("C")
    assert _names(directed_paths_from_to(g, a, c)) == [["A", "B", "C"], ["A", "C"]]
    assert _names(directed_paths_from_to(g, a, c, max_length=1)) == [["A", "C"]]
    assert directed_paths_from_to(g, c, a) == []
    with pytest.raises(ConfigurationError):
        directed_paths_from_to(g, a, c, max_length=0)
    with pytest.raises(ConfigurationError):
        directed_paths_from_to(g, a, c, max_length=-2)


def test_semidirected_paths():
    g = graph_from_edges(["A", "B", "C"], directed=[("B", "C")], undirected=[("A", "B")])
    a, c = g.get_node("A"), g.get_node("C")
    assert _names(semidirected_paths_from_to(g, a, c)) == [["A", "B", "C"]]
    assert semidirected_paths_from_to(g, c, a) == []


def test_treks_through_common_cause_and_bidirected_edges():
    g = graph_from_edges(["L", "A", "B", "C"], directed=[("L", "A"), ("L", "B"), ("A", "C")])
    a, b, c = g.get_node("A"), g.get_node("B"), g.get_node("C")
    assert _names(treks(g, a, b)) == [["A", "L", "B"]]
    assert _names(treks(g, c, b)) == [["C", "A", "L", "B"]]
    assert _names(treks(g, c, b, max_length=2)) == []

    h = graph_from_edges(["A", "B"], bidirected=[("A", "B")])
    assert _names(treks(h, h.get_node("A"), h.get_node("B"))) == [["A", "B"]]


def test_no_trek_through_a_collider(collider_dag):
    a, c = collider_dag.get_node("A"), collider_dag.get_node("C")
    assert treks(collider_dag, a, c) == []


def test_path_string(collider_dag):
    nodes = [collider_dag.get_node(n) for n in "ABC"]
    assert path_string(collider_dag, nodes) == "A --> B <-- C"
    with pytest.raises(GraphError):
        path_string(collider_dag, [nodes[0], nodes[2]])
