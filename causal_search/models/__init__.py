# causal_search/models/__init__.py
# ======================================================================================
# Causal Search Engine (CSE)
# models package: import surface for graphs, tests and searches
# --------------------------------------------------------------------------------------
# Public surface
# --------------
#   • Graph, Node, Edge, Endpoint, NodeType, graph_from_edges
#   • Knowledge, SepsetMap
#   • IndependenceTest, IndependenceResult, FisherZTest, GSquareTest, MSeparationTest,
#     IndTestType, make_independence_test
#   • Fas, FasResult, MeekRules, Pc, SearchConfig, SearchResult, run_fas
#
# License
# -------
# MIT (c) 2025 Causal Search Engine contributors
# ======================================================================================

from __future__ import annotations

from .fas import Fas, FasResult
from .graph import Edge, Endpoint, Graph, Node, NodeType, graph_from_edges
from .independence import (
    FisherZTest,
    GSquareTest,
    IndependenceResult,
    IndependenceTest,
    IndTestType,
    MSeparationTest,
    make_independence_test,
)
from .knowledge import Knowledge
from .meek import MeekRules
from .pc import Pc, SearchConfig, SearchResult, run_fas
from .sepsets import SepsetMap

__all__ = [
    "Edge",
    "Endpoint",
    "Fas",
    "FasResult",
    "FisherZTest",
    "GSquareTest",
    "Graph",
    "IndTestType",
    "IndependenceResult",
    "IndependenceTest",
    "Knowledge",
    "MSeparationTest",
    "MeekRules",
    "Node",
    "NodeType",
    "Pc",
    "SearchConfig",
    "SearchResult",
    "SepsetMap",
    "graph_from_edges",
    "make_independence_test",
    "run_fas",
]
