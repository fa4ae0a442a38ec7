# FILE: causal_search/models/fas.py
# ======================================================================================
# Causal Search Engine (CSE)
# FAS: fast adjacency search (skeleton discovery)
# --------------------------------------------------------------------------------------
# Procedure
# ---------
#   1) Start from the complete undirected graph over the test's variables.
#   2) For k = 0, 1, 2, ... up to `depth`:
#        for every adjacent pair (x, y) in node-index order, test every k-subset S of
#        the round's neighbour set N(x, y); the first S that makes x _||_ y | S
#        removes x --- y and is recorded as sepset(x, y).
#   3) Stop when no adjacent pair has |N| >= k or k exceeds the depth.
#
# Rounds are transactional: neighbour sets come from a snapshot taken at the start of
# the round and removals are applied only after the whole round. The result does not
# depend on pair order, which also lets pairs of a round run on a thread pool with
# output identical to a serial run. A cancelled round is discarded.
#
# Neighbourhoods
#   "union"  : N = (adj(x) ∪ adj(y)) \ {x, y}
#   "either" : subsets of adj(x) \ {y}, then subsets of adj(y) \ {x}
#
# License
# -------
# MIT (c) 2025 Causal Search Engine contributors
# ======================================================================================

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from itertools import combinations
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

from ..errors import ConfigurationError, IndependenceTestError
from ..utils.logging_utils import get_logger
from .graph import Graph, Node
from .independence import IndependenceTest
from .knowledge import Knowledge
from .search_config import SearchConfig, effective_depth
from .sepsets import SepsetMap

log = get_logger("cse.fas")


@dataclass
class FasResult:
    """Skeleton and separating sets; unpacks as `graph, sepsets = result`."""

    graph: Graph
    sepsets: SepsetMap
    num_independence_tests: int = 0
    num_failed_tests: int = 0
    depth_reached: int = -1
    cancelled: bool = False
    elapsed_s: float = 0.0

    def __iter__(self) -> Iterator[object]:
        yield self.graph
        yield self.sepsets


@dataclass
class _PairOutcome:
    x: Node
    y: Node
    sepset: Optional[Tuple[Node, ...]] = None
    p_value: float = 1.0
    tests: int = 0
    failures: int = 0
    skipped: bool = field(default=False)


class Fas:
    """
    Adjacency search over an IndependenceTest.

    Parameters
    ----------
    test : IndependenceTest
        Source of conditional-independence verdicts.
    knowledge : Knowledge, optional
        Only consulted when `config.knowledge_in_fas` is set.
    depth : int
        Largest conditioning-set size; -1 = unlimited.
    config : SearchConfig, optional
        neighborhood, knowledge_in_fas and n_jobs are read from it.
    """

    def __init__(
        self,
        test: IndependenceTest,
        knowledge: Optional[Knowledge] = None,
        depth: int = -1,
        config: Optional[SearchConfig] = None,
    ):
        if depth < -1:
            raise ConfigurationError(f"depth must be -1 (unlimited) or >= 0: {depth}")
        self.test = test
        self.knowledge = knowledge if knowledge is not None else Knowledge()
        self.depth = int(depth)
        self.config = config if config is not None else SearchConfig(depth=self.depth)

    # ------------------------------ public API ---------------------------------------

    def search(self, nodes: Optional[Sequence[Union[Node, str]]] = None, cancel_token=None) -> FasResult:
        t0 = time.perf_counter()
        if nodes is None:
            variables = self.test.variables
        else:
            variables = [self.test.get_variable(n if isinstance(n, str) else n.name) for n in nodes]

        graph = Graph.complete(variables)
        sepsets = SepsetMap()
        result = FasResult(graph, sepsets)

        if self.config.knowledge_in_fas:
            self._remove_forbidden(graph, sepsets)

        max_depth = effective_depth(self.depth)
        k = 0
        while k <= max_depth:
            if _is_cancelled(cancel_token):
                result.cancelled = True
                break
            adj: Dict[Node, List[Node]] = {n: graph.adjacent_nodes(n) for n in graph.nodes}
            pairs = [(e.node1, e.node2) for e in graph.edges()]
            if not any(len(self._neighborhood(adj, x, y)) >= k for x, y in pairs):
                break

            outcomes = self._run_round(pairs, adj, k, cancel_token)
            result.num_independence_tests += sum(o.tests for o in outcomes)
            result.num_failed_tests += sum(o.failures for o in outcomes)
            if _is_cancelled(cancel_token):
                result.cancelled = True
                log.warning("FAS cancelled during depth %d; keeping the depth %d graph.", k, k - 1)
                break

            for o in outcomes:
                if o.sepset is not None:
                    graph.remove_edge(o.x, o.y)
                    sepsets.set(o.x, o.y, o.sepset, o.p_value)
                    log.debug("Removed %s --- %s | %s (p=%.4g)", o.x, o.y, [n.name for n in o.sepset], o.p_value)
            result.depth_reached = k
            log.info(
                "FAS depth %d: %d edges left, %d tests so far.", k, graph.num_edges(), result.num_independence_tests
            )
            k += 1

        if result.num_failed_tests:
            log.warning("FAS: %d independence tests failed and were treated as dependent.", result.num_failed_tests)
        result.elapsed_s = time.perf_counter() - t0
        return result

    # ------------------------------ internals ----------------------------------------

    def _remove_forbidden(self, graph: Graph, sepsets: SepsetMap) -> None:
        k = self.knowledge
        for e in graph.edges():
            x, y = e.node1, e.node2
            if k.is_forbidden(x, y) and k.is_forbidden(y, x):
                graph.remove_edge(x, y)
                sepsets.set(x, y, ())
                log.debug("Removed %s --- %s (forbidden both ways)", x, y)

    def _neighborhood(self, adj: Dict[Node, List[Node]], x: Node, y: Node) -> List[Node]:
        if self.config.neighborhood == "either":
            return max(
                ([n for n in adj[x] if n != y], [n for n in adj[y] if n != x]), key=len
            )
        seen = set(adj[x]) | set(adj[y])
        seen.discard(x)
        seen.discard(y)
        return [n for n in self.test.variables if n in seen]

    def _candidate_sets(self, adj: Dict[Node, List[Node]], x: Node, y: Node, k: int) -> Iterator[Tuple[Node, ...]]:
        if self.config.neighborhood == "either":
            for side in ([n for n in adj[x] if n != y], [n for n in adj[y] if n != x]):
                yield from combinations(side, k)
        else:
            yield from combinations(self._neighborhood(adj, x, y), k)

    def _run_round(
        self, pairs: List[Tuple[Node, Node]], adj: Dict[Node, List[Node]], k: int, cancel_token
    ) -> List[_PairOutcome]:
        def work(pair: Tuple[Node, Node]) -> _PairOutcome:
            return self._test_pair(pair[0], pair[1], adj, k, cancel_token)

        if self.config.n_jobs > 1 and len(pairs) > 1:
            with ThreadPoolExecutor(max_workers=self.config.n_jobs) as pool:
                return list(pool.map(work, pairs))
        return [work(p) for p in pairs]

    def _test_pair(
        self, x: Node, y: Node, adj: Dict[Node, List[Node]], k: int, cancel_token
    ) -> _PairOutcome:
        out = _PairOutcome(x, y)
        if _is_cancelled(cancel_token):
            out.skipped = True
            return out
        if self.config.knowledge_in_fas and not self.knowledge.no_edge_required(x, y):
            return out
        for S in self._candidate_sets(adj, x, y, k):
            out.tests += 1
            try:
                r = self.test.check_independence(x, y, S)
            except IndependenceTestError as e:
                log.debug("Test error for %s, %s | %s: %s", x, y, [n.name for n in S], e)
                out.failures += 1
                continue
            if r.failed:
                out.failures += 1
                continue
            if r.independent:
                out.sepset = tuple(S)
                out.p_value = r.p_value
                break
        return out


def _is_cancelled(cancel_token) -> bool:
    return cancel_token is not None and cancel_token.cancelled
