# FILE: causal_search/models/colliders.py
# ======================================================================================
# Causal Search Engine (CSE)
# Collider orientation on an adjacency skeleton
# --------------------------------------------------------------------------------------
# For every unshielded triple x --- y --- z (x, z nonadjacent):
#
#   sepsets rule       y not in sepset(x, z)                 =>  x --> y <-- z
#   conservative rule  y in no separating set of x, z found  =>  collider
#                      y in every one of them                =>  noncollider
#                      otherwise                             =>  ambiguous (left alone)
#
# Arrowheads forbidden by knowledge are not placed. Two colliders that disagree
# over one edge leave it bidirected; such edges are reset to undirected before
# the Meek rules run.
#
# License
# -------
# MIT (c) 2025 Causal Search Engine contributors
# ======================================================================================

from __future__ import annotations

from itertools import combinations
from typing import List, Optional, Set, Tuple

from ..utils.logging_utils import get_logger
from .graph import Endpoint, Graph, Node
from .independence import IndependenceTest
from .knowledge import Knowledge
from .search_config import effective_depth
from .sepsets import SepsetMap

log = get_logger("cse.colliders")

Triple = Tuple[Node, Node, Node]


def unshielded_triples(graph: Graph) -> List[Triple]:
    """All (x, y, z) with x --- y --- z adjacent and x, z nonadjacent; x precedes z."""
    out: List[Triple] = []
    for y in graph.nodes:
        adj = graph.adjacent_nodes(y)
        for x, z in combinations(adj, 2):
            if not graph.is_adjacent(x, z):
                out.append((x, y, z))
    return out


def _arrowhead_allowed(knowledge: Optional[Knowledge], a: Node, b: Node) -> bool:
    if knowledge is None:
        return True
    return not knowledge.is_forbidden(a, b) and not knowledge.is_required(b, a)


def _orient_collider(graph: Graph, x: Node, y: Node, z: Node, knowledge: Optional[Knowledge]) -> bool:
    if not (_arrowhead_allowed(knowledge, x, y) and _arrowhead_allowed(knowledge, z, y)):
        log.debug("Collider %s --> %s <-- %s blocked by knowledge.", x, y, z)
        return False
    graph.set_endpoint(x, y, Endpoint.ARROW)
    graph.set_endpoint(z, y, Endpoint.ARROW)
    log.debug("Collider: %s --> %s <-- %s", x, y, z)
    return True


def reset_bidirected_edges(graph: Graph) -> int:
    n = 0
    for e in graph.edges():
        if e.is_bidirected():
            graph.make_undirected(e.node1, e.node2)
            n += 1
    if n:
        log.debug("Reset %d conflicting bidirected edges to undirected.", n)
    return n


def orient_colliders_using_sepsets(
    graph: Graph, sepsets: SepsetMap, knowledge: Optional[Knowledge] = None
) -> List[Triple]:
    """Orient every unshielded collider the sepsets imply. Returns the colliders placed."""
    colliders: List[Triple] = []
    for x, y, z in unshielded_triples(graph):
        sepset = sepsets.get(x, z)
        if sepset is None or y in sepset:
            continue
        if _orient_collider(graph, x, y, z, knowledge):
            colliders.append((x, y, z))
    reset_bidirected_edges(graph)
    return colliders


def _separating_sets(
    graph: Graph, test: IndependenceTest, x: Node, z: Node, depth: int
) -> List[Set[Node]]:
    found: List[Set[Node]] = []
    seen: Set[frozenset] = set()
    for a, b in ((x, z), (z, x)):
        adj = [n for n in graph.adjacent_nodes(a) if n != b]
        for k in range(0, min(depth, len(adj)) + 1):
            for S in combinations(adj, k):
                key = frozenset(S)
                if key in seen:
                    continue
                seen.add(key)
                if test.check_independence(x, z, S).independent:
                    found.append(set(S))
    return found


def orient_colliders_conservatively(
    graph: Graph,
    test: IndependenceTest,
    knowledge: Optional[Knowledge] = None,
    depth: int = -1,
) -> List[Triple]:
    """
    Conservative collider orientation (CPC).

    Each unshielded triple is re-examined against every separating set of x and z
    drawn from adj(x) or adj(z) up to `depth`. Only unanimous verdicts orient;
    mixed verdicts are returned as ambiguous triples.
    """
    depth = effective_depth(depth)
    ambiguous: List[Triple] = []
    colliders: List[Triple] = []
    for x, y, z in unshielded_triples(graph):
        sepsets = _separating_sets(graph, test, x, z, depth)
        with_y = sum(1 for S in sepsets if y in S)
        if sepsets and with_y == 0:
            colliders.append((x, y, z))
        elif not sepsets or with_y < len(sepsets):
            ambiguous.append((x, y, z))

    for x, y, z in colliders:
        _orient_collider(graph, x, y, z, knowledge)
    reset_bidirected_edges(graph)
    if ambiguous:
        log.info("CPC: %d ambiguous triples left unoriented.", len(ambiguous))
    return ambiguous
