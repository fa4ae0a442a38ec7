from __future__ import annotations

import random

from causal_search.models.graph import Graph, Node, graph_from_edges
from causal_search.models.knowledge import Knowledge
from causal_search.models.meek import MeekRules
from causal_search.models.transforms import exists_directed_cycle
from causal_search.runner import CancellationToken


def _n(g: Graph, name: str) -> Node:
    return g.get_node(name)


def test_rule1_propagates_away_from_arrow():
    g = graph_from_edges(["A", "B", "C"], directed=[("A", "B")], undirected=[("B", "C")])
    meek = MeekRules()
    meek.orient(g)
    assert g.is_directed_from_to(_n(g, "B"), _n(g, "C"))
    assert [rule for _, rule in meek.changed_edges] == ["R1"]


def test_rule2_avoids_cycle():
    g = graph_from_edges(["A", "B", "C"], directed=[("A", "C"), ("C", "B")], undirected=[("A", "B")])
    MeekRules().orient(g)
    assert g.is_directed_from_to(_n(g, "A"), _n(g, "B"))


def test_rule3_two_nonadjacent_parents():
    g = graph_from_edges(
        ["A", "B", "C", "D"],
        directed=[("C", "B"), ("D", "B")],
        undirected=[("A", "B"), ("A", "C"), ("A", "D")],
    )
    meek = MeekRules()
    meek.orient(g)
    assert g.is_directed_from_to(_n(g, "A"), _n(g, "B"))
    assert g.is_undirected(_n(g, "A"), _n(g, "C"))
    assert g.is_undirected(_n(g, "A"), _n(g, "D"))
    assert ("R3" in [rule for _, rule in meek.changed_edges])


def _rule4_graph() -> Graph:
    return graph_from_edges(
        ["I", "J", "K", "L"],
        directed=[("K", "L"), ("L", "J")],
        undirected=[("I", "K"), ("I", "L"), ("I", "J")],
    )


def test_rule4_runs_only_when_enabled():
    g = _rule4_graph()
    MeekRules().orient(g)
    assert g.is_undirected(_n(g, "I"), _n(g, "J"))

    g = _rule4_graph()
    meek = MeekRules(use_rule4=True)
    meek.orient(g)
    assert g.is_directed_from_to(_n(g, "I"), _n(g, "J"))
    assert meek.changed_edges[0][1] == "R4"
    assert g.is_undirected(_n(g, "I"), _n(g, "K"))
    assert g.is_undirected(_n(g, "I"), _n(g, "L"))


def test_orientation_is_idempotent():
    g = graph_from_edges(
        ["A", "B", "C", "D"], directed=[("A", "B")], undirected=[("B", "C"), ("C", "D")]
    )
    meek = MeekRules()
    meek.orient(g)
    once = g.copy()
    meek.orient(g)
    assert g == once
    assert meek.changed_edges == []
    assert meek.num_passes == 1


def test_prevent_cycles_keeps_random_graphs_acyclic():
    rng = random.Random(2024)
    names = [f"V{i}" for i in range(7)]
    for _ in range(25):
        order = names[:]
        rng.shuffle(order)
        rank = {n: i for i, n in enumerate(order)}
        directed, undirected = [], []
        for i, a in enumerate(names):
            for b in names[i + 1:]:
                if rng.random() < 0.45:
                    lo, hi = sorted((a, b), key=rank.__getitem__)
                    (directed if rng.random() < 0.4 else undirected).append((lo, hi))
        g = graph_from_edges(names, directed=directed, undirected=undirected)
        MeekRules(prevent_cycles=True).orient(g)
        assert not exists_directed_cycle(g)


def test_forbidden_direction_is_reversed_and_never_applied():
    g = graph_from_edges(["A", "B", "C"], directed=[("A", "B")], undirected=[("B", "C")])
    k = Knowledge(["A", "B", "C"])
    k.set_forbidden("B", "C")
    MeekRules(k).orient(g)
    assert g.is_directed_from_to(_n(g, "C"), _n(g, "B"))


def test_edge_forbidden_both_ways_stays_undirected():
    g = graph_from_edges(["A", "B", "C"], directed=[("A", "B")], undirected=[("B", "C")])
    k = Knowledge(["A", "B", "C"])
    k.set_forbidden("B", "C")
    k.set_forbidden("C", "B")
    MeekRules(k).orient(g)
    assert g.is_undirected(_n(g, "B"), _n(g, "C"))


def test_required_edges_are_oriented_first():
    g = graph_from_edges(["A", "B", "C"], undirected=[("A", "B"), ("B", "C")])
    k = Knowledge(["A", "B", "C"])
    k.set_required("B", "A")
    meek = MeekRules(k)
    meek.orient(g)
    assert g.is_directed_from_to(_n(g, "B"), _n(g, "A"))
    assert g.is_undirected(_n(g, "B"), _n(g, "C"))
    assert meek.changed_edges[0][1] == "knowledge"
    assert not k.is_violated_by(g)


def test_tiers_orient_cross_tier_edges():
    g = graph_from_edges(["A", "B", "C"], undirected=[("A", "B"), ("B", "C")])
    k = Knowledge(["A", "B", "C"])
    k.set_tier(0, ["C"])
    k.set_tier(1, ["A", "B"])
    MeekRules(k).orient(g)
    assert g.is_directed_from_to(_n(g, "C"), _n(g, "B"))
    # B is now a child of C with A nonadjacent to C
    assert g.is_directed_from_to(_n(g, "B"), _n(g, "A"))


def test_cancelled_token_stops_before_first_pass():
    g = graph_from_edges(["A", "B", "C"], directed=[("A", "B")], undirected=[("B", "C")])
    token = CancellationToken()
    token.cancel()
    meek = MeekRules()
    meek.orient(g, cancel_token=token)
    assert meek.cancelled
    assert meek.num_passes == 0
    assert g.is_undirected(_n(g, "B"), _n(g, "C"))


def test_required_edge_closing_a_cycle_is_skipped():
    g = graph_from_edges(["A", "B", "C"], directed=[("A", "B"), ("B", "C")], undirected=[("A", "C")])
    k = Knowledge(["A", "B", "C"])
    k.set_required("C", "A")
    meek = MeekRules(k, prevent_cycles=True)
    meek.orient(g)
    assert meek.skipped_required == [("C", "A")]
    assert not exists_directed_cycle(g)

    g = graph_from_edges(["A", "B", "C"], directed=[("A", "B"), ("B", "C")], undirected=[("A", "C")])
    MeekRules(k).orient(g)
    assert g.is_directed_from_to(_n(g, "C"), _n(g, "A"))
