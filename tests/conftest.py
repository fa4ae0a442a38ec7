"""
Shared pytest fixtures for CSE tests.

Provides canonical DAGs, simulated linear-Gaussian data, and a minimal search
config written into a temp folder (outputs pointed at tmp_path).
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd
import pytest

from causal_search.models.graph import Graph, graph_from_edges
from causal_search.models.transforms import ancestors
from causal_search.utils.config_loader import resolve_config


_MIN_SEARCH_YAML = """\
run:
  output_dir: "{OUT}"

data:
  path: "{DATA}"
  delimiter: ","

search:
  algorithm: pc
  test: fisher_z
  alpha: 0.01
  depth: -1

logging:
  level: "INFO"
  to_file: false
"""

# X0 -> X1, X0 -> X2, X1 -> X2, X1 -> X3, X2 -> X4, X3 -> X4
FIVE_NODE_EDGES = [("X0", "X1"), ("X0", "X2"), ("X1", "X2"), ("X1", "X3"), ("X2", "X4"), ("X3", "X4")]
# weaker inputs into X2 keep X0 -- X1 clearly dependent given the collider
FIVE_NODE_WEIGHTS = {("X0", "X2"): 0.4, ("X1", "X2"): 0.4}


def simulate_linear_gaussian(
    dag: Graph,
    n: int = 2000,
    seed: int = 7,
    coef: float = 0.8,
    weights: Optional[Dict[Tuple[str, str], float]] = None,
) -> pd.DataFrame:
    """Each node = sum(w * parent) + N(0, 0.7^2), simulated in topological order (w defaults to coef)."""
    rng = np.random.default_rng(seed)
    order = sorted(dag.nodes, key=lambda v: len(ancestors(dag, [v])))
    cols: Dict[str, np.ndarray] = {}
    for v in order:
        x = 0.7 * rng.standard_normal(n)
        for p in dag.parents(v):
            x = x + (weights or {}).get((p.name, v.name), coef) * cols[p.name]
        cols[v.name] = x
    return pd.DataFrame({v.name: cols[v.name] for v in dag.nodes})


@pytest.fixture
def chain_dag() -> Graph:
    return graph_from_edges(["A", "B", "C"], directed=[("A", "B"), ("B", "C")])


@pytest.fixture
def collider_dag() -> Graph:
    return graph_from_edges(["A", "B", "C"], directed=[("A", "B"), ("C", "B")])


@pytest.fixture
def five_node_dag() -> Graph:
    return graph_from_edges(["X0", "X1", "X2", "X3", "X4"], directed=FIVE_NODE_EDGES)


@pytest.fixture
def gaussian_df(five_node_dag: Graph) -> pd.DataFrame:
    return simulate_linear_gaussian(five_node_dag, n=3000, seed=7, weights=FIVE_NODE_WEIGHTS)


def write_config(tmp_path: Path, df: pd.DataFrame, extra: Optional[str] = None) -> Path:
    cfg_dir = tmp_path / "configs"
    cfg_dir.mkdir(parents=True, exist_ok=True)
    data_path = tmp_path / "data" / "data.csv"
    data_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(data_path, index=False)
    text = _MIN_SEARCH_YAML.replace("{OUT}", str((tmp_path / "outputs").as_posix())).replace(
        "{DATA}", str(data_path.as_posix())
    )
    if extra:
        text += extra
    p = cfg_dir / "search.yaml"
    p.write_text(text, encoding="utf-8")
    return p


@pytest.fixture(scope="function")
def cfg_path(tmp_path: Path, gaussian_df: pd.DataFrame) -> Path:
    """Writes data.csv and a minimal search.yaml into tmp_path and returns the config path."""
    return write_config(tmp_path, gaussian_df)


@pytest.fixture(scope="function")
def cfg(cfg_path: Path) -> Dict:
    """Resolved config (defaults filled in) for the files written by cfg_path."""
    return resolve_config(cfg_path)
