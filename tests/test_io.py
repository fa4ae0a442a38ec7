from __future__ import annotations

import json

import pandas as pd
import pytest

from causal_search.errors import ConfigurationError, GraphFormatError, KnowledgeConflictError
from causal_search.models.graph import graph_from_edges
from causal_search.models.knowledge import Knowledge
from causal_search.models.layout import circle_layout, default_layout
from causal_search.utils.io import (
    graph_from_json,
    graph_from_text,
    graph_to_dot,
    graph_to_json,
    knowledge_from_text,
    knowledge_to_text,
    load_table,
    read_graph,
    read_knowledge,
    write_graph,
    write_knowledge,
)

KNOWLEDGE_TEXT = """\
/knowledge
addtemporal
1 A B
2*- C D
3 E

forbiddirect
E D

requiredirect
A C
"""


def test_graph_text_round_trip(tmp_path):
    g = graph_from_edges(
        ["A", "B", "C", "D"], directed=[("A", "B")], undirected=[("B", "C")], bidirected=[("C", "D")]
    )
    p = write_graph(tmp_path / "g.txt", g)
    assert read_graph(p) == g


def test_graph_text_tolerates_comma_separated_nodes():
    g = graph_from_text("Graph Nodes:\nX,Y\n\nGraph Edges:\n1. X --> Y\n")
    assert g.node_names == ["X", "Y"]
    assert g.is_directed_from_to(g.get_node("X"), g.get_node("Y"))


def test_bad_graph_text_raises():
    with pytest.raises(GraphFormatError):
        graph_from_text("nothing here")
    with pytest.raises(GraphFormatError):
        graph_from_text("Graph Nodes:\nA;B\n\nGraph Edges:\n1. A --> Z\n")
    with pytest.raises(GraphFormatError):
        graph_from_text("Graph Nodes:\nA;B\n\nGraph Edges:\nA --> B\n")


def test_graph_json_round_trip(tmp_path):
    g = graph_from_edges(["L", "A", "B"], directed=[("L", "A"), ("L", "B")], latent=["L"])
    obj = graph_to_json(g)
    assert obj["edges"][0] == {"from": "L", "to": "A", "type": "-->"}
    h = graph_from_json(json.loads(json.dumps(obj)))
    assert h == g
    assert not h.get_node("L").is_measured()

    p = tmp_path / "g.json"
    p.write_text(json.dumps(obj), encoding="utf-8")
    assert read_graph(p) == g
    with pytest.raises(GraphFormatError):
        graph_from_json({"edges": []})

    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(GraphFormatError):
        read_graph(bad)


def test_dot_marks_and_positions(collider_dag):
    dot = graph_to_dot(collider_dag, circle_layout(collider_dag))
    assert dot.startswith("digraph G {")
    assert '"A" -> "B" [dir=both, arrowtail=none, arrowhead=normal];' in dot
    assert 'pos="350.0,200.0!"' in dot


def test_knowledge_text_parse():
    k = knowledge_from_text(KNOWLEDGE_TEXT)
    assert k.tiers() == [["A", "B"], ["C", "D"], ["E"]]
    assert k.is_tier_forbidden_within(1)
    assert k.is_only_can_cause_next_tier(1)
    assert k.is_forbidden("C", "D")
    assert k.is_forbidden("E", "D")
    assert k.is_required("A", "C")
    assert k.is_forbidden("C", "A")


def test_knowledge_text_round_trip(tmp_path):
    k = knowledge_from_text(KNOWLEDGE_TEXT)
    p = write_knowledge(tmp_path / "k.txt", k)
    assert read_knowledge(p) == k
    assert knowledge_to_text(k).splitlines()[3] == "2*- C D"


def test_knowledge_text_errors():
    with pytest.raises(ConfigurationError):
        knowledge_from_text("A B\n")
    with pytest.raises(ConfigurationError):
        knowledge_from_text("forbiddirect\nA B C\n")
    with pytest.raises(ConfigurationError):
        knowledge_from_text("addtemporal\n0 A\n")
    with pytest.raises(KnowledgeConflictError):
        knowledge_from_text("addtemporal\n1 A\n2 B\n\nrequiredirect\nB A\n")


def test_load_table_tsv_and_variable_subset(tmp_path):
    p = tmp_path / "d.tsv"
    pd.DataFrame({"A": [1.0, 2.0], "B": [3.0, 4.0], "C": [5.0, 6.0]}).to_csv(p, sep="\t", index=False)
    df = load_table(p)
    assert list(df.columns) == ["A", "B", "C"]
    assert list(load_table(p, variables=["C", "A"]).columns) == ["C", "A"]
    with pytest.raises(ConfigurationError):
        load_table(p, variables=["Z"])
    with pytest.raises(FileNotFoundError):
        load_table(tmp_path / "missing.csv")


def test_default_layout_uses_tiers_when_asked(chain_dag):
    k = Knowledge(["A", "B", "C"])
    k.set_tier(0, ["A"])
    k.set_tier(1, ["B"])
    assert set(default_layout(chain_dag, k)) == {"A", "B", "C"}
    k.default_to_knowledge_layout = True
    pos = default_layout(chain_dag, k)
    assert pos["A"] == (50.0, 50.0)
    assert pos["B"] == (50.0, 130.0)
    assert pos["C"] == (50.0, 210.0)
