from __future__ import annotations

import threading

import pytest

from causal_search.models.independence import MSeparationTest
from causal_search.models.pc import SearchConfig
from causal_search.models.transforms import dag_to_cpdag
from causal_search.resampling import bootstrap_edge_frequencies
from causal_search.runner import CancellationToken, SearchRunner


class _GatedTest(MSeparationTest):
    """Blocks the first conditional test until the gate opens."""

    def __init__(self, graph):
        super().__init__(graph)
        self.entered = threading.Event()
        self.gate = threading.Event()

    def check_independence(self, x, y, z=()):
        if len(z) >= 1:
            self.entered.set()
            self.gate.wait(10)
        return super().check_independence(x, y, z)


def test_background_run_returns_cpdag(five_node_dag):
    handle = SearchRunner(MSeparationTest(five_node_dag)).start()
    result = handle.result(timeout=30)
    assert handle.done()
    assert not handle.token.cancelled
    assert result.graph == dag_to_cpdag(five_node_dag)


def test_cancel_while_running_returns_last_complete_depth(five_node_dag):
    test = _GatedTest(five_node_dag)
    handle = SearchRunner(test).start()
    assert test.entered.wait(10)
    handle.cancel()
    test.gate.set()
    result = handle.result(timeout=30)
    assert result.cancelled
    assert result.depth_reached == 0
    assert result.graph.num_edges() == 10


def test_synchronous_run_dispatches_fas(chain_dag):
    result = SearchRunner(MSeparationTest(chain_dag), config=SearchConfig(algorithm="fas")).run()
    assert result.algorithm == "fas"
    assert result.graph.num_edges() == 2


def test_token_state():
    token = CancellationToken()
    assert not token.cancelled
    token.cancel()
    token.cancel()
    assert token.cancelled


def test_bootstrap_frequencies(gaussian_df):
    freqs = bootstrap_edge_frequencies(gaussian_df.head(600), SearchConfig(alpha=0.01), n_boot=3, seed=5)
    assert set(freqs) == {"skeleton", "arrow", "collider"}
    assert freqs["skeleton"]
    for table in freqs.values():
        assert all(0.0 < v <= 1.0 for v in table.values())
    assert freqs["skeleton"].get(("X0", "X1")) == 1.0


def test_bootstrap_argument_checks(gaussian_df):
    with pytest.raises(ValueError):
        bootstrap_edge_frequencies(gaussian_df, n_boot=0)
    with pytest.raises(ValueError):
        bootstrap_edge_frequencies(gaussian_df, frac=1.5)
