from __future__ import annotations

from typing import List

import pytest

from causal_search.errors import ConfigurationError, IndependenceTestError
from causal_search.models.fas import Fas
from causal_search.models.graph import Graph, Node
from causal_search.models.independence import FisherZTest, IndependenceResult, MSeparationTest
from causal_search.models.knowledge import Knowledge
from causal_search.models.search_config import SearchConfig
from causal_search.runner import CancellationToken


def _skeleton_pairs(g: Graph) -> List[tuple]:
    return sorted(tuple(sorted((e.node1.name, e.node2.name))) for e in g.edges())


def test_chain_skeleton_and_sepset(chain_dag):
    graph, sepsets = Fas(MSeparationTest(chain_dag)).search()
    assert _skeleton_pairs(graph) == [("A", "B"), ("B", "C")]
    assert all(e.is_undirected() for e in graph.edges())
    assert sepsets.get(Node("A"), Node("C")) == (Node("B"),)


def test_collider_skeleton_and_empty_sepset(collider_dag):
    graph, sepsets = Fas(MSeparationTest(collider_dag)).search()
    assert _skeleton_pairs(graph) == [("A", "B"), ("B", "C")]
    assert sepsets.get(Node("A"), Node("C")) == ()


def test_oracle_recovers_true_skeleton(five_node_dag):
    result = Fas(MSeparationTest(five_node_dag)).search()
    assert _skeleton_pairs(result.graph) == _skeleton_pairs(five_node_dag)
    assert result.num_independence_tests > 0
    assert result.num_failed_tests == 0
    assert not result.cancelled


def test_edges_are_monotone_in_depth(gaussian_df):
    test = FisherZTest(gaussian_df, alpha=0.01)
    counts = [Fas(test, depth=d).search().graph.num_edges() for d in (0, 1, 2, 3)]
    assert counts == sorted(counts, reverse=True)
    edges = [set(_skeleton_pairs(Fas(test, depth=d).search().graph)) for d in (0, 1, 2)]
    assert edges[1] <= edges[0] and edges[2] <= edges[1]


def test_depth_zero_reports_depth_reached(five_node_dag):
    result = Fas(MSeparationTest(five_node_dag), depth=0).search()
    assert result.depth_reached == 0
    # every pair shares the ancestor X0, so nothing is marginally independent
    assert result.graph.num_edges() == 10


def test_depth_below_minus_one_rejected(chain_dag):
    with pytest.raises(ConfigurationError):
        Fas(MSeparationTest(chain_dag), depth=-2)


def test_knowledge_ignored_by_default(chain_dag):
    k = Knowledge(["A", "B", "C"])
    k.set_forbidden("A", "B")
    k.set_forbidden("B", "A")
    graph, _ = Fas(MSeparationTest(chain_dag), k).search()
    assert graph.is_adjacent(Node("A"), Node("B"))


def test_knowledge_in_fas_removes_forbidden_and_keeps_required(collider_dag):
    k = Knowledge(["A", "B", "C"])
    k.set_forbidden("A", "B")
    k.set_forbidden("B", "A")
    k.set_required("A", "C")
    cfg = SearchConfig(knowledge_in_fas=True)
    graph, sepsets = Fas(MSeparationTest(collider_dag), k, config=cfg).search()
    assert not graph.is_adjacent(Node("A"), Node("B"))
    assert sepsets.get(Node("A"), Node("B")) == ()
    assert graph.is_adjacent(Node("A"), Node("C"))


class _FlakyTest(MSeparationTest):
    """Oracle that cannot decide anything about the pair (A, C)."""

    def _check(self, x, y, z):
        if {x.name, y.name} == {"A", "C"}:
            raise IndependenceTestError("numerical trouble")
        return super()._check(x, y, z)


def test_failed_tests_keep_the_edge_and_are_counted(chain_dag):
    result = Fas(_FlakyTest(chain_dag)).search()
    assert result.graph.is_adjacent(Node("A"), Node("C"))
    assert result.num_failed_tests >= 2


class _RaisingTest(MSeparationTest):
    def check_independence(self, x, y, z=()):
        if {getattr(x, "name", x), getattr(y, "name", y)} == {"A", "C"}:
            raise IndependenceTestError("boom")
        return super().check_independence(x, y, z)


def test_raised_test_errors_are_treated_as_dependent(chain_dag):
    result = Fas(_RaisingTest(chain_dag)).search()
    assert result.graph.is_adjacent(Node("A"), Node("C"))
    assert result.num_failed_tests > 0


def test_cancel_before_start_returns_complete_graph(chain_dag):
    token = CancellationToken()
    token.cancel()
    result = Fas(MSeparationTest(chain_dag)).search(cancel_token=token)
    assert result.cancelled
    assert result.depth_reached == -1
    assert result.graph.num_edges() == 3


class _CancellingTest(MSeparationTest):
    """Cancels the token the first time a conditioning set is non-empty."""

    def __init__(self, graph, token):
        super().__init__(graph)
        self.token = token

    def check_independence(self, x, y, z=()) -> IndependenceResult:
        if len(z) >= 1:
            self.token.cancel()
        return super().check_independence(x, y, z)


def test_cancelled_round_is_discarded(five_node_dag):
    token = CancellationToken()
    result = Fas(_CancellingTest(five_node_dag, token)).search(cancel_token=token)
    expected = Fas(MSeparationTest(five_node_dag), depth=0).search()
    assert result.cancelled
    assert result.depth_reached == 0
    assert result.graph == expected.graph


def test_parallel_matches_serial(gaussian_df):
    serial = Fas(FisherZTest(gaussian_df, alpha=0.01), config=SearchConfig(n_jobs=1)).search()
    parallel = Fas(FisherZTest(gaussian_df, alpha=0.01), config=SearchConfig(n_jobs=4)).search()
    assert parallel.graph == serial.graph
    assert parallel.sepsets.to_dict() == serial.sepsets.to_dict()
    assert parallel.num_independence_tests == serial.num_independence_tests


def test_either_neighborhood_recovers_oracle_skeleton(five_node_dag):
    cfg = SearchConfig(neighborhood="either")
    result = Fas(MSeparationTest(five_node_dag), config=cfg).search()
    assert _skeleton_pairs(result.graph) == _skeleton_pairs(five_node_dag)


def test_result_unpacks(collider_dag):
    result = Fas(MSeparationTest(collider_dag)).search(nodes=["A", "C"])
    graph, sepsets = result
    assert graph.node_names == ["A", "C"]
    assert graph.num_edges() == 0
    assert sepsets.get(Node("A"), Node("C")) == ()
