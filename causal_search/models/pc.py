# FILE: causal_search/models/pc.py
# ======================================================================================
# Causal Search Engine (CSE)
# PC / CPC: constraint-based search from an independence test to a CPDAG
# --------------------------------------------------------------------------------------
# Pipeline
#   FAS (skeleton + sepsets)
#     -> collider orientation  ("sepsets" = PC, "conservative" = CPC)
#     -> Meek rules with knowledge
#
# The returned graph is always a new object owned by the caller. A cancelled FAS
# skips orientation and returns the last completed skeleton with cancelled=True.
#
# Example
# -------
#   >>> from causal_search.models.independence import FisherZTest
#   >>> res = Pc(FisherZTest(df, alpha=0.01)).search()
#   >>> print(res.graph)
#
# License
# -------
# MIT (c) 2025 Causal Search Engine contributors
# ======================================================================================

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..utils.logging_utils import get_logger
from .colliders import orient_colliders_conservatively, orient_colliders_using_sepsets
from .fas import Fas, FasResult
from .graph import Graph, Node
from .independence import IndependenceTest
from .knowledge import Knowledge
from .meek import MeekRules
from .search_config import SearchConfig
from .sepsets import SepsetMap

__all__ = ["Pc", "SearchConfig", "SearchResult", "run_fas"]

log = get_logger("cse.pc")


@dataclass
class SearchResult:
    graph: Graph
    sepsets: SepsetMap
    algorithm: str = "pc"
    ambiguous_triples: List[Tuple[Node, Node, Node]] = field(default_factory=list)
    skipped_required: List[Tuple[str, str]] = field(default_factory=list)
    num_independence_tests: int = 0
    num_failed_tests: int = 0
    depth_reached: int = -1
    elapsed_s: float = 0.0
    cancelled: bool = False

    def summary(self) -> Dict[str, Any]:
        """JSON-friendly counters (the graph itself is written separately)."""
        return {
            "algorithm": self.algorithm,
            "num_nodes": len(self.graph),
            "num_edges": self.graph.num_edges(),
            "num_directed": sum(1 for e in self.graph.edges() if e.is_directed()),
            "num_undirected": sum(1 for e in self.graph.edges() if e.is_undirected()),
            "num_independence_tests": self.num_independence_tests,
            "num_failed_tests": self.num_failed_tests,
            "depth_reached": self.depth_reached,
            "ambiguous_triples": [[n.name for n in t] for t in self.ambiguous_triples],
            "skipped_required": [list(p) for p in self.skipped_required],
            "elapsed_s": round(self.elapsed_s, 4),
            "cancelled": self.cancelled,
        }


def _from_fas(fas_result: FasResult, algorithm: str) -> SearchResult:
    return SearchResult(
        graph=fas_result.graph,
        sepsets=fas_result.sepsets,
        algorithm=algorithm,
        num_independence_tests=fas_result.num_independence_tests,
        num_failed_tests=fas_result.num_failed_tests,
        depth_reached=fas_result.depth_reached,
        elapsed_s=fas_result.elapsed_s,
        cancelled=fas_result.cancelled,
    )


def run_fas(
    test: IndependenceTest,
    knowledge: Optional[Knowledge] = None,
    config: Optional[SearchConfig] = None,
    cancel_token=None,
) -> SearchResult:
    """Skeleton only: the undirected FAS graph and its sepsets."""
    config = config or SearchConfig(algorithm="fas")
    fr = Fas(test, knowledge, depth=config.depth, config=config).search(cancel_token=cancel_token)
    return _from_fas(fr, "fas")


class Pc:
    """
    PC search (CPC when `config.collider_rule == "conservative"`).

    Parameters
    ----------
    test : IndependenceTest
    knowledge : Knowledge, optional
    config : SearchConfig, optional
    """

    def __init__(
        self,
        test: IndependenceTest,
        knowledge: Optional[Knowledge] = None,
        config: Optional[SearchConfig] = None,
    ):
        self.test = test
        self.knowledge = knowledge if knowledge is not None else Knowledge()
        self.config = config if config is not None else SearchConfig()
        self.meek: Optional[MeekRules] = None

    def search(self, cancel_token=None) -> SearchResult:
        t0 = time.perf_counter()
        cfg = self.config
        algorithm = "cpc" if cfg.collider_rule == "conservative" else "pc"

        fr = Fas(self.test, self.knowledge, depth=cfg.depth, config=cfg).search(cancel_token=cancel_token)
        result = _from_fas(fr, algorithm)
        if fr.cancelled:
            log.warning("%s cancelled during adjacency search; returning the skeleton.", algorithm.upper())
            return result

        graph = fr.graph.copy()
        if cfg.collider_rule == "conservative":
            before = self.test.num_tests
            failures_before = self.test.num_failures
            result.ambiguous_triples = orient_colliders_conservatively(
                graph, self.test, self.knowledge, depth=cfg.depth
            )
            result.num_independence_tests += self.test.num_tests - before
            result.num_failed_tests += self.test.num_failures - failures_before
        else:
            orient_colliders_using_sepsets(graph, fr.sepsets, self.knowledge)

        self.meek = MeekRules(self.knowledge, prevent_cycles=cfg.prevent_cycles, use_rule4=cfg.use_rule4)
        self.meek.orient(graph, cancel_token=cancel_token)
        result.graph = graph
        result.skipped_required = list(self.meek.skipped_required)
        result.cancelled = self.meek.cancelled
        result.elapsed_s = time.perf_counter() - t0
        log.info(
            "%s done: %d edges (%d directed), %d tests, %.3fs.",
            algorithm.upper(),
            graph.num_edges(),
            sum(1 for e in graph.edges() if e.is_directed()),
            result.num_independence_tests,
            result.elapsed_s,
        )
        return result
