"""
Node placement for rendered graphs.

Two layouts:
- circle_layout: nodes evenly on a circle (default).
- knowledge_tier_layout: one row per knowledge tier, untiered nodes on a last row.

Positions are {name: (x, y)} in screen coordinates (y grows downwards).
"""
from __future__ import annotations

from typing import Dict, Optional, Tuple

import numpy as np

from .graph import Graph
from .knowledge import Knowledge

Positions = Dict[str, Tuple[float, float]]


def circle_layout(graph: Graph, center: Tuple[float, float] = (200.0, 200.0), radius: float = 150.0) -> Positions:
    n = len(graph)
    if n == 0:
        return {}
    angles = 2.0 * np.pi * np.arange(n) / n
    xs = center[0] + radius * np.cos(angles)
    ys = center[1] + radius * np.sin(angles)
    return {node.name: (float(x), float(y)) for node, x, y in zip(graph.nodes, xs, ys)}


def knowledge_tier_layout(
    graph: Graph, knowledge: Knowledge, x_step: float = 90.0, y_step: float = 80.0, margin: float = 50.0
) -> Positions:
    rows = [[n for n in tier if graph.has_node(n)] for tier in knowledge.tiers()]
    tiered = {n for row in rows for n in row}
    rest = [n.name for n in graph.nodes if n.name not in tiered]
    if rest:
        rows.append(rest)

    pos: Positions = {}
    y = margin
    for row in rows:
        if not row:
            continue
        for i, name in enumerate(row):
            pos[name] = (margin + i * x_step, y)
        y += y_step
    return pos


def default_layout(graph: Graph, knowledge: Optional[Knowledge] = None) -> Positions:
    if knowledge is not None and knowledge.is_default_to_knowledge_layout():
        return knowledge_tier_layout(graph, knowledge)
    return circle_layout(graph)
