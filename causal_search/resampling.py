"""
Bootstrap stability of search results.

bootstrap_edge_frequencies() re-runs the configured search on resampled rows and
reports, per node pair, how often an adjacency, an arrow, or a collider arrowhead
appeared. Frequencies are fractions of `n_boot`.

    freqs = bootstrap_edge_frequencies(df, SearchConfig(alpha=0.05), n_boot=50)
    freqs["skeleton"][("X1", "X2")]  # -> 0.96
"""
from __future__ import annotations

from itertools import combinations
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd

from .models.independence import make_independence_test
from .models.knowledge import Knowledge
from .models.pc import SearchConfig
from .runner import SearchRunner
from .utils.logging_utils import get_logger

log = get_logger("cse.resampling")

Pair = Tuple[str, str]


def _canon(a: str, b: str) -> Pair:
    return (a, b) if a < b else (b, a)


def bootstrap_edge_frequencies(
    data: pd.DataFrame,
    config: Optional[SearchConfig] = None,
    knowledge: Optional[Knowledge] = None,
    n_boot: int = 20,
    frac: float = 1.0,
    seed: int = 123,
) -> Dict[str, Dict[Pair, float]]:
    """
    Returns {"skeleton": {(a, b): f}, "arrow": {(tail, head): f}, "collider": {(a, b): f}}.

    Skeleton keys are name-sorted pairs; arrow and collider keys are ordered
    (collider (a, b) means an arrowhead at b as part of a collider).
    """
    if n_boot < 1:
        raise ValueError("n_boot must be >= 1")
    if not (0.0 < frac <= 1.0):
        raise ValueError("frac must be in (0, 1]")
    config = config or SearchConfig()
    rng = np.random.default_rng(seed)
    N = len(data)
    size = int(max(2, frac * N))

    sk_counts: Dict[Pair, int] = {}
    ar_counts: Dict[Pair, int] = {}
    col_counts: Dict[Pair, int] = {}

    for b in range(n_boot):
        idx = rng.choice(N, size=size, replace=True)
        sample = data.iloc[idx].reset_index(drop=True)
        test = make_independence_test(config.test, data=sample, alpha=config.alpha)
        graph = SearchRunner(test, knowledge, config).run().graph

        for e in graph.edges():
            a, c = e.node1.name, e.node2.name
            sk_counts[_canon(a, c)] = sk_counts.get(_canon(a, c), 0) + 1
            if e.is_directed():
                key = (e.tail_node().name, e.head_node().name)
                ar_counts[key] = ar_counts.get(key, 0) + 1

        heads = set()
        for node in graph.nodes:
            for x, z in combinations(graph.adjacent_nodes(node), 2):
                if graph.is_def_collider(x, node, z):
                    heads.update(((x.name, node.name), (z.name, node.name)))
        for key in heads:
            col_counts[key] = col_counts.get(key, 0) + 1
        log.debug("Bootstrap %d/%d: %d edges", b + 1, n_boot, graph.num_edges())

    return {
        "skeleton": {k: v / n_boot for k, v in sorted(sk_counts.items())},
        "arrow": {k: v / n_boot for k, v in sorted(ar_counts.items())},
        "collider": {k: v / n_boot for k, v in sorted(col_counts.items())},
    }
