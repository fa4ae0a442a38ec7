# FILE: causal_search/models/meek.py
# ======================================================================================
# Causal Search Engine (CSE)
# Meek orientation rules
# --------------------------------------------------------------------------------------
# Input: a graph whose edges are undirected or directed (colliders already marked).
# Output: the same graph with every edge orientation implied by the rules applied.
#
#   R1  a --> b --- c, a and c nonadjacent                  =>  b --> c
#   R2  a --> c --> b, a --- b                              =>  a --> b
#   R3  a --- c --> b, a --- d --> b, c and d nonadjacent, a --- b
#                                                           =>  a --> b
#   R4  a --- k --> l --> b, a adjacent l, k and b nonadjacent, a --- b
#                                                           =>  a --> b
#
# R4 only matters when background knowledge has pre-oriented edges; it runs when
# knowledge is non-empty or when asked for explicitly.
#
# Every candidate orientation a --> b is skipped when the edge is no longer
# undirected, when knowledge forbids a --> b, or (prevent_cycles) when b already
# reaches a along directed edges. Required edges get the same cycle check; one that
# would close a cycle is skipped and reported. Passes repeat until nothing changes.
#
# License
# -------
# MIT (c) 2025 Causal Search Engine contributors
# ======================================================================================

from __future__ import annotations

from typing import List, Optional, Tuple

from ..utils.logging_utils import get_logger
from .graph import Edge, Graph, Node
from .knowledge import Knowledge
from .transforms import exists_directed_path_from_to

log = get_logger("cse.meek")


class MeekRules:
    """
    Orientation closure under Meek's rules, with background knowledge.

    Parameters
    ----------
    knowledge : Knowledge, optional
        Required edges are oriented up front; forbidden directions are never applied.
        With prevent_cycles, a required edge that would close a directed cycle is
        left alone and listed in `skipped_required`.
    prevent_cycles : bool
        Skip orientations that would close a directed cycle.
    use_rule4 : bool or None
        None = run R4 only when knowledge is non-empty.
    """

    def __init__(
        self,
        knowledge: Optional[Knowledge] = None,
        prevent_cycles: bool = False,
        use_rule4: Optional[bool] = None,
    ):
        self.knowledge = knowledge if knowledge is not None else Knowledge()
        self.prevent_cycles = bool(prevent_cycles)
        self.use_rule4 = use_rule4
        self.changed_edges: List[Tuple[Edge, str]] = []
        self.skipped_required: List[Tuple[str, str]] = []
        self.num_passes = 0
        self.cancelled = False

    # ------------------------------ public API ---------------------------------------

    def orient(self, graph: Graph, cancel_token=None) -> Graph:
        """Mutate `graph` in place and return it."""
        self.changed_edges = []
        self.skipped_required = []
        self.num_passes = 0
        self.cancelled = False
        rule4 = self.use_rule4 if self.use_rule4 is not None else not self.knowledge.is_empty()

        self._orient_using_knowledge(graph)

        while True:
            if cancel_token is not None and cancel_token.cancelled:
                self.cancelled = True
                log.warning("Meek orientation cancelled after %d passes.", self.num_passes)
                break
            changed = self._one_pass(graph, rule4)
            self.num_passes += 1
            if not changed:
                break

        log.debug("Meek: %d orientations in %d passes.", len(self.changed_edges), self.num_passes)
        return graph

    # ------------------------------ knowledge ----------------------------------------

    def _orient_using_knowledge(self, graph: Graph) -> None:
        k = self.knowledge
        if k.is_empty():
            return
        for a_name, b_name in k.required_edges():
            if not (graph.has_node(a_name) and graph.has_node(b_name)):
                continue
            a, b = graph.get_node(a_name), graph.get_node(b_name)
            if not graph.is_adjacent(a, b) or graph.is_directed_from_to(a, b):
                continue
            if self.prevent_cycles and self._closes_cycle(graph, a, b):
                log.warning("Required edge %s --> %s would create a cycle; skipped.", a, b)
                self.skipped_required.append((a_name, b_name))
                continue
            graph.orient(a, b)
            self._record(graph, a, b, "knowledge")

        for e in graph.edges():
            if not e.is_undirected():
                continue
            x, y = e.node1, e.node2
            if k.is_forbidden(x, y) and not k.is_forbidden(y, x):
                self._direct(graph, y, x, "knowledge")
            elif k.is_forbidden(y, x) and not k.is_forbidden(x, y):
                self._direct(graph, x, y, "knowledge")

    # ------------------------------ rules --------------------------------------------

    def _one_pass(self, graph: Graph, rule4: bool) -> bool:
        changed = False
        for e in graph.edges():
            if not graph.is_undirected(e.node1, e.node2):
                continue
            for a, b in ((e.node1, e.node2), (e.node2, e.node1)):
                rule = self._firing_rule(graph, a, b, rule4)
                if rule and self._direct(graph, a, b, rule):
                    changed = True
                    break
        return changed

    def _firing_rule(self, graph: Graph, a: Node, b: Node, rule4: bool) -> Optional[str]:
        if self._r1(graph, a, b):
            return "R1"
        if self._r2(graph, a, b):
            return "R2"
        if self._r3(graph, a, b):
            return "R3"
        if rule4 and self._r4(graph, a, b):
            return "R4"
        return None

    @staticmethod
    def _r1(graph: Graph, a: Node, b: Node) -> bool:
        return any(not graph.is_adjacent(c, b) for c in graph.parents(a) if c != b)

    @staticmethod
    def _r2(graph: Graph, a: Node, b: Node) -> bool:
        return any(graph.is_directed_from_to(c, b) for c in graph.children(a))

    @staticmethod
    def _r3(graph: Graph, a: Node, b: Node) -> bool:
        cands = [
            c for c in graph.adjacent_nodes(a)
            if c != b and graph.is_undirected(a, c) and graph.is_directed_from_to(c, b)
        ]
        for i, c in enumerate(cands):
            for d in cands[i + 1:]:
                if not graph.is_adjacent(c, d):
                    return True
        return False

    @staticmethod
    def _r4(graph: Graph, a: Node, b: Node) -> bool:
        for l in graph.parents(b):
            if l == a or not graph.is_adjacent(a, l):
                continue
            for k in graph.parents(l):
                if k != a and k != b and graph.is_undirected(a, k) and not graph.is_adjacent(k, b):
                    return True
        return False

    # ------------------------------ application --------------------------------------

    def _direct(self, graph: Graph, a: Node, b: Node, rule: str) -> bool:
        if not graph.is_undirected(a, b):
            return False
        if self.knowledge.is_forbidden(a, b):
            log.debug("%s: %s --> %s is forbidden; skipped.", rule, a, b)
            return False
        if self.prevent_cycles and exists_directed_path_from_to(graph, b, a):
            log.debug("%s: %s --> %s would create a cycle; skipped.", rule, a, b)
            return False
        graph.orient(a, b)
        self._record(graph, a, b, rule)
        return True

    @staticmethod
    def _closes_cycle(graph: Graph, a: Node, b: Node) -> bool:
        """True if b reaches a by a directed path that avoids the a-b edge itself."""
        return any(exists_directed_path_from_to(graph, c, a) for c in graph.children(b) if c != a)

    def _record(self, graph: Graph, a: Node, b: Node, rule: str) -> None:
        edge = graph.get_edge(a, b)
        self.changed_edges.append((edge, rule))
        log.debug("%s: oriented %s", rule, edge)
