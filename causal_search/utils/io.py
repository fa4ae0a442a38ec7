# FILE: causal_search/utils/io.py
# ======================================================================================
# Causal Search Engine (CSE)
# File formats: tables, graphs, knowledge
# --------------------------------------------------------------------------------------
# Graph text format
#
#   Graph Nodes:
#   X1;X2;X3
#
#   Graph Edges:
#   1. X1 --> X2
#   2. X2 --- X3
#
# Knowledge text format (tiers are 1-based; '*' = edges within the tier forbidden,
# '-' = the tier can only cause the next tier)
#
#   /knowledge
#   addtemporal
#   1 X1 X2
#   2* X3
#
#   forbiddirect
#   X3 X1
#
#   requiredirect
#   X1 X2
#
# License
# -------
# MIT (c) 2025 Causal Search Engine contributors
# ======================================================================================

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd

from ..errors import ConfigurationError, GraphFormatError
from ..models.graph import Edge, Endpoint, Graph, Node, NodeType, parse_connector
from ..models.knowledge import Knowledge

PathLike = Union[str, Path]

_EDGE_LINE = re.compile(r"^\s*\d+\.\s+(\S+)\s+(\S{3})\s+(\S+)\s*$")
_TIER_LINE = re.compile(r"^(\d+)(\*?)(-?)\s*(.*)$")


# --------------------------------------------------------------------------------------
# Generic
# --------------------------------------------------------------------------------------

def ensure_dir(path: PathLike) -> Path:
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def write_json(path: PathLike, obj: Any) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(obj, indent=2, ensure_ascii=False), encoding="utf-8")
    return p


def write_text(path: PathLike, text: str) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding="utf-8")
    return p


def load_table(
    path: PathLike, delimiter: Optional[str] = ",", variables: Optional[Sequence[str]] = None
) -> pd.DataFrame:
    """Load a delimited data file with a header row (.tsv/.txt default to tabs)."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Data file not found: {p}")
    if p.suffix.lower() in (".tsv", ".txt") and delimiter in (None, ","):
        delimiter = "\t"
    df = pd.read_csv(p, sep=delimiter or ",")
    df.columns = [str(c).strip() for c in df.columns]
    if variables:
        missing = [v for v in variables if v not in df.columns]
        if missing:
            raise ConfigurationError(f"Variables not in {p.name}: {missing}")
        df = df[list(variables)]
    return df


# --------------------------------------------------------------------------------------
# Graph text / JSON / DOT
# --------------------------------------------------------------------------------------

def graph_to_text(graph: Graph) -> str:
    return str(graph)


def graph_from_text(text: str) -> Graph:
    lines = [ln.rstrip() for ln in text.splitlines()]
    try:
        i = next(k for k, ln in enumerate(lines) if ln.strip() == "Graph Nodes:")
    except StopIteration:
        raise GraphFormatError("Missing 'Graph Nodes:' section.") from None

    names: List[str] = []
    j = i + 1
    while j < len(lines) and lines[j].strip() and lines[j].strip() != "Graph Edges:":
        names.extend(n.strip() for n in re.split(r"[;,]", lines[j]) if n.strip())
        j += 1
    g = Graph(Node(n) for n in names)

    in_edges = False
    for ln in lines[j:]:
        s = ln.strip()
        if s == "Graph Edges:":
            in_edges = True
            continue
        if not in_edges or not s:
            continue
        if s.endswith(":"):
            break
        m = _EDGE_LINE.match(s)
        if not m:
            raise GraphFormatError(f"Bad edge line: {s!r}")
        a, conn, b = m.groups()
        e1, e2 = parse_connector(conn)
        for n in (a, b):
            if not g.has_node(n):
                raise GraphFormatError(f"Edge mentions unknown node {n!r}: {s!r}")
        g.add_edge(Edge(g.get_node(a), g.get_node(b), e1, e2))
    return g


def write_graph(path: PathLike, graph: Graph) -> Path:
    return write_text(path, graph_to_text(graph))


def read_graph(path: PathLike) -> Graph:
    p = Path(path)
    if p.suffix.lower() == ".json":
        try:
            obj = json.loads(p.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise GraphFormatError(f"Invalid graph JSON in {p}: {e}") from e
        return graph_from_json(obj)
    return graph_from_text(p.read_text(encoding="utf-8"))


def graph_to_json(graph: Graph) -> Dict[str, Any]:
    return {
        "nodes": [{"name": n.name, "type": n.node_type.value} for n in graph.nodes],
        "edges": [
            {"from": e.node1.name, "to": e.node2.name, "type": e.connector()} for e in graph.edges()
        ],
    }


def graph_from_json(obj: Dict[str, Any]) -> Graph:
    try:
        g = Graph(Node(str(n["name"]), NodeType(n.get("type", "measured"))) for n in obj["nodes"])
        for e in obj.get("edges", []):
            e1, e2 = parse_connector(e["type"])
            g.add_edge(Edge(g.get_node(e["from"]), g.get_node(e["to"]), e1, e2))
    except (KeyError, TypeError, ValueError) as err:
        raise GraphFormatError(f"Bad graph JSON: {err}") from err
    return g


def graph_to_dot(graph: Graph, positions: Optional[Dict[str, Tuple[float, float]]] = None) -> str:
    """Graphviz DOT; edge marks become arrowhead/arrowtail attributes."""

    def end_attr(mark: Endpoint) -> str:
        return {Endpoint.ARROW: "normal", Endpoint.CIRCLE: "odot", Endpoint.TAIL: "none"}[mark]

    lines = ["digraph G {", "  graph [splines=true];", "  node [shape=ellipse];"]
    for n in graph.nodes:
        attrs = [f'label="{n.name}"']
        if not n.is_measured():
            attrs.append("style=dashed")
        if positions and n.name in positions:
            x, y = positions[n.name]
            attrs.append(f'pos="{x:.1f},{y:.1f}!"')
        lines.append(f'  "{n.name}" [{", ".join(attrs)}];')
    for e in graph.edges():
        lines.append(
            f'  "{e.node1.name}" -> "{e.node2.name}" '
            f"[dir=both, arrowtail={end_attr(e.endpoint1)}, arrowhead={end_attr(e.endpoint2)}];"
        )
    lines.append("}")
    return "\n".join(lines) + "\n"


# --------------------------------------------------------------------------------------
# Knowledge text
# --------------------------------------------------------------------------------------

def knowledge_to_text(knowledge: Knowledge) -> str:
    out = ["/knowledge", "addtemporal"]
    for i, tier in enumerate(knowledge.tiers()):
        flag = ("*" if knowledge.is_tier_forbidden_within(i) else "") + (
            "-" if knowledge.is_only_can_cause_next_tier(i) else ""
        )
        out.append(" ".join([f"{i + 1}{flag}"] + tier))
    out += ["", "forbiddirect"]
    out += [f"{a} {b}" for a, b in knowledge.forbidden_edges()]
    out += ["", "requiredirect"]
    out += [f"{a} {b}" for a, b in knowledge.required_edges()]
    return "\n".join(out) + "\n"


def knowledge_from_text(text: str, variables: Optional[Sequence[str]] = None) -> Knowledge:
    k = Knowledge(variables)
    section = None
    for lineno, raw in enumerate(text.splitlines(), 1):
        s = raw.split("//", 1)[0].strip()
        if not s or s == "/knowledge":
            continue
        low = s.lower()
        if low in ("addtemporal", "forbiddirect", "requiredirect"):
            section = low
            continue
        if section == "addtemporal":
            m = _TIER_LINE.match(s)
            if not m:
                raise ConfigurationError(f"Line {lineno}: bad tier line {s!r}")
            tier = int(m.group(1)) - 1
            if tier < 0:
                raise ConfigurationError(f"Line {lineno}: tiers are numbered from 1")
            k.set_tier(tier, m.group(4).split())
            if m.group(2):
                k.set_tier_forbidden_within(tier, True)
            if m.group(3):
                k.set_only_can_cause_next_tier(tier, True)
        elif section in ("forbiddirect", "requiredirect"):
            parts = s.split()
            if len(parts) != 2:
                raise ConfigurationError(f"Line {lineno}: expected two variables, got {s!r}")
            if section == "forbiddirect":
                k.set_forbidden(*parts)
            else:
                k.set_required(*parts)
        else:
            raise ConfigurationError(f"Line {lineno}: content outside a section: {s!r}")
    return k


def write_knowledge(path: PathLike, knowledge: Knowledge) -> Path:
    return write_text(path, knowledge_to_text(knowledge))


def read_knowledge(path: PathLike, variables: Optional[Sequence[str]] = None) -> Knowledge:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Knowledge file not found: {p}")
    return knowledge_from_text(p.read_text(encoding="utf-8"), variables)
