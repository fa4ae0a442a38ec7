# FILE: causal_search/models/transforms.py
# ======================================================================================
# Causal Search Engine (CSE)
# Graph transforms and path queries
# --------------------------------------------------------------------------------------
# Equivalence classes
#   dag_to_cpdag(dag)        skeleton + unshielded colliders, closed under Meek rules
#   cpdag_to_dag(cpdag)      one consistent DAG extension (Dor & Tarsi)
#   is_legal_dag / is_legal_cpdag
#
# Reachability
#   exists_directed_path_from_to, exists_directed_cycle, ancestors, descendants,
#   is_m_separated (used by the m-separation oracle test)
#
# Path enumeration (bounded, simple paths)
#   directed_paths_from_to, semidirected_paths_from_to, treks, path_string
#
# License
# -------
# MIT (c) 2025 Causal Search Engine contributors
# ======================================================================================

from __future__ import annotations

from collections import deque
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from ..errors import ConfigurationError, GraphError
from .graph import Edge, Endpoint, Graph, Node

Path = List[Node]


# --------------------------------------------------------------------------------------
# Reachability
# --------------------------------------------------------------------------------------

def exists_directed_path_from_to(graph: Graph, a: Node, b: Node) -> bool:
    """True if a --> ... --> b exists (at least one edge)."""
    seen: Set[Node] = set()
    queue = deque(graph.children(a))
    while queue:
        n = queue.popleft()
        if n == b:
            return True
        if n in seen:
            continue
        seen.add(n)
        queue.extend(graph.children(n))
    return False


def descendants(graph: Graph, nodes: Iterable[Node]) -> List[Node]:
    """The given nodes plus everything reachable from them along directed edges."""
    out: Set[Node] = set()
    queue = deque(nodes)
    while queue:
        n = queue.popleft()
        if n in out:
            continue
        out.add(n)
        queue.extend(graph.children(n))
    return sorted(out, key=graph.index_of)


def ancestors(graph: Graph, nodes: Iterable[Node]) -> List[Node]:
    """The given nodes plus every node with a directed path into one of them."""
    out: Set[Node] = set()
    queue = deque(nodes)
    while queue:
        n = queue.popleft()
        if n in out:
            continue
        out.add(n)
        queue.extend(graph.parents(n))
    return sorted(out, key=graph.index_of)


def exists_directed_cycle(graph: Graph) -> bool:
    indegree = {n: len(graph.parents(n)) for n in graph.nodes}
    queue = deque(n for n, d in indegree.items() if d == 0)
    visited = 0
    while queue:
        n = queue.popleft()
        visited += 1
        for c in graph.children(n):
            indegree[c] -= 1
            if indegree[c] == 0:
                queue.append(c)
    return visited < len(graph)


def is_m_separated(graph: Graph, x: Node, y: Node, z: Sequence[Node]) -> bool:
    """
    True if every path between x and y is blocked by z.

    A path is open when each of its colliders is an ancestor of z (or in z) and
    none of its non-colliders is in z. Reachability runs over (previous, current)
    node states, which is enough for directed, bidirected and undirected edges.
    """
    x, y = graph.get_node(x.name), graph.get_node(y.name)
    zset = {graph.get_node(v.name) for v in z}
    anc_z = set(ancestors(graph, zset))

    seen: Set[Tuple[Node, Node]] = set()
    queue = deque((x, w) for w in graph.adjacent_nodes(x))
    while queue:
        prev, cur = queue.popleft()
        if (prev, cur) in seen:
            continue
        seen.add((prev, cur))
        if cur == y:
            return False
        into_cur = graph.get_edge(prev, cur).endpoint(cur) == Endpoint.ARROW
        for nxt in graph.adjacent_nodes(cur):
            if nxt == prev:
                continue
            collider = into_cur and graph.get_edge(nxt, cur).endpoint(cur) == Endpoint.ARROW
            if (collider and cur in anc_z) or (not collider and cur not in zset):
                queue.append((cur, nxt))
    return True


# --------------------------------------------------------------------------------------
# Legality
# --------------------------------------------------------------------------------------

def is_legal_dag(graph: Graph) -> bool:
    return all(e.is_directed() for e in graph.edges()) and not exists_directed_cycle(graph)


def is_legal_cpdag(graph: Graph) -> bool:
    """True if the graph is exactly the CPDAG of one of its DAG extensions."""
    if not all(e.is_directed() or e.is_undirected() for e in graph.edges()):
        return False
    try:
        dag = cpdag_to_dag(graph)
    except GraphError:
        return False
    return dag_to_cpdag(dag) == graph


# --------------------------------------------------------------------------------------
# DAG <-> CPDAG
# --------------------------------------------------------------------------------------

def dag_to_cpdag(dag: Graph) -> Graph:
    """
    Markov equivalence class of a DAG: keep the skeleton, orient the unshielded
    colliders, then close under the Meek rules (no knowledge).
    """
    from .meek import MeekRules

    if not is_legal_dag(dag):
        raise GraphError("dag_to_cpdag needs a directed acyclic graph.")
    out = dag.undirected_skeleton()
    for b in dag.nodes:
        parents = dag.parents(b)
        for i, a in enumerate(parents):
            for c in parents[i + 1:]:
                if not dag.is_adjacent(a, c):
                    out.orient(a, b)
                    out.orient(c, b)
    MeekRules().orient(out)
    return out


def cpdag_to_dag(cpdag: Graph) -> Graph:
    """
    A DAG in the equivalence class of `cpdag`.

    Repeatedly removes a sink whose undirected neighbours are adjacent to all its
    other neighbours, orienting those undirected edges into it. Raises GraphError
    if the graph admits no consistent extension.
    """
    for e in cpdag.edges():
        if not (e.is_directed() or e.is_undirected()):
            raise GraphError(f"Cannot extend a graph with edge {e} to a DAG.")
    out = cpdag.copy()
    work = cpdag.copy()
    while len(work):
        sink = None
        for x in work.nodes:
            if work.children(x):
                continue
            nbrs = work.adjacent_nodes(x)
            und = [y for y in nbrs if work.is_undirected(x, y)]
            if all(work.is_adjacent(y, w) for y in und for w in nbrs if w != y):
                sink = x
                break
        if sink is None:
            raise GraphError("Graph has no consistent DAG extension.")
        for y in work.adjacent_nodes(sink):
            if work.is_undirected(sink, y):
                out.orient(y, sink)
        work.remove_node(sink)
    return out


# --------------------------------------------------------------------------------------
# Path enumeration
# --------------------------------------------------------------------------------------

def _limit(graph: Graph, max_length: int) -> int:
    if max_length == -1:
        return len(graph)
    if max_length < 1:
        raise ConfigurationError(f"max_length must be >= 1 or -1: {max_length}")
    return int(max_length)


def _enumerate(graph: Graph, a: Node, b: Node, max_length: int, step) -> List[Path]:
    limit = _limit(graph, max_length)
    a, b = graph.get_node(a.name), graph.get_node(b.name)
    out: List[Path] = []
    path: Path = [a]
    on_path = {a}

    def dfs(cur: Node) -> None:
        if len(path) - 1 >= limit:
            return
        for nxt in graph.adjacent_nodes(cur):
            if nxt in on_path or not step(graph.get_edge(cur, nxt), cur, nxt):
                continue
            path.append(nxt)
            if nxt == b:
                out.append(list(path))
            else:
                on_path.add(nxt)
                dfs(nxt)
                on_path.discard(nxt)
            path.pop()

    if a != b:
        dfs(a)
    return out


def directed_paths_from_to(graph: Graph, a: Node, b: Node, max_length: int = -1) -> List[Path]:
    """Simple paths a --> ... --> b with at most `max_length` edges."""
    return _enumerate(graph, a, b, max_length, lambda e, cur, nxt: e.points_towards(nxt))


def semidirected_paths_from_to(graph: Graph, a: Node, b: Node, max_length: int = -1) -> List[Path]:
    """Simple paths from a to b on which no edge has an arrowhead pointing back."""
    return _enumerate(graph, a, b, max_length, lambda e, cur, nxt: e.endpoint(cur) != Endpoint.ARROW)


def treks(graph: Graph, a: Node, b: Node, max_length: int = -1) -> List[Path]:
    """
    Collider-free paths a <-- ... <-- s --> ... --> b.

    The walk first climbs against the arrows, may cross one bidirected edge at the
    turning point, and then only descends.
    """
    limit = _limit(graph, max_length)
    a, b = graph.get_node(a.name), graph.get_node(b.name)
    out: List[Path] = []
    path: Path = [a]
    on_path = {a}

    def dfs(cur: Node, descending: bool) -> None:
        if len(path) - 1 >= limit:
            return
        for nxt in graph.adjacent_nodes(cur):
            if nxt in on_path:
                continue
            e = graph.get_edge(cur, nxt)
            if e.points_towards(nxt):
                nxt_descending = True
            elif not descending and (e.points_towards(cur) or e.is_bidirected()):
                nxt_descending = e.is_bidirected()
            else:
                continue
            path.append(nxt)
            if nxt == b:
                out.append(list(path))
            else:
                on_path.add(nxt)
                dfs(nxt, nxt_descending)
                on_path.discard(nxt)
            path.pop()

    if a != b:
        dfs(a, False)
    return out


def path_string(graph: Graph, path: Sequence[Node]) -> str:
    """Render a path with its edge marks, e.g. 'X1 --> X2 <-- X3'."""
    if not path:
        return ""
    parts = [path[0].name]
    for u, v in zip(path, path[1:]):
        e: Optional[Edge] = graph.get_edge(u, v)
        if e is None:
            raise GraphError(f"Not a path: {u} and {v} are not adjacent.")
        parts.append(Edge(u, v, e.endpoint(u), e.endpoint(v)).connector())
        parts.append(v.name)
    return " ".join(parts)
