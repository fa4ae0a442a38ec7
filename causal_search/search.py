# FILE: causal_search/search.py
# ======================================================================================
# Causal Search Engine (CSE)
# Search stage: config in, graph artifacts out
# --------------------------------------------------------------------------------------
# Responsibilities
# ----------------
# 1) Load the dataset (data.path) or, for the m-separation oracle, a true graph
#    (data.true_graph).
# 2) Build knowledge from knowledge.path (text format) and/or inline sections.
# 3) Build the independence test and run PC / CPC / FAS per `search:`.
# 4) Write artifacts under run.output_dir:
#      search_result.json   summary, graph JSON, sepsets, knowledge, config
#      graph.txt            graph text format
#      graph.dot            Graphviz, positioned by the default layout
#
# Expected Config (subset)
# ------------------------
# cfg["run"]["output_dir"]        : str
# cfg["data"]["path"]             : str (csv/tsv)
# cfg["data"]["true_graph"]       : str (graph text/JSON; m_separation only)
# cfg["knowledge"]["path"]        : str (optional)
# cfg["search"]                   : SearchConfig fields
#
# License
# -------
# MIT (c) 2025 Causal Search Engine contributors
# ======================================================================================

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

from .errors import ConfigurationError
from .models.independence import IndependenceTest, IndTestType, make_independence_test, parse_test_type
from .models.knowledge import Knowledge
from .models.layout import default_layout
from .models.pc import SearchConfig, SearchResult
from .runner import CancellationToken, SearchRunner
from .utils.io import (
    ensure_dir,
    graph_to_dot,
    graph_to_json,
    load_table,
    read_graph,
    read_knowledge,
    write_json,
    write_text,
)
from .utils.logging_utils import get_logger

log = get_logger("cse.search")


def build_knowledge(cfg: Dict[str, Any], variables: Optional[Sequence[str]] = None) -> Knowledge:
    kc = dict(cfg.get("knowledge") or {})
    path = kc.pop("path", None)
    k = read_knowledge(path, variables) if path else Knowledge(variables)
    k.apply_dict(kc)
    return k


def build_test(cfg: Dict[str, Any], search_cfg: SearchConfig) -> IndependenceTest:
    dc = cfg.get("data") or {}
    kind = parse_test_type(search_cfg.test)
    if kind == IndTestType.M_SEPARATION:
        if not dc.get("true_graph"):
            raise ConfigurationError("search.test=m_separation needs data.true_graph.")
        graph = read_graph(dc["true_graph"])
        return make_independence_test(kind, graph=graph, variables=dc.get("variables"))
    if not dc.get("path"):
        raise ConfigurationError("data.path is required for data-driven tests.")
    df = load_table(dc["path"], delimiter=dc.get("delimiter", ","), variables=dc.get("variables"))
    log.info("Loaded %s: %d rows x %d variables.", Path(dc["path"]).name, len(df), df.shape[1])
    return make_independence_test(kind, data=df, alpha=search_cfg.alpha)


def prepare(cfg: Dict[str, Any]) -> Tuple[IndependenceTest, Knowledge, SearchConfig]:
    """Resolve config into the three inputs of a search (raises on bad config)."""
    search_cfg = SearchConfig.from_dict(cfg.get("search"))
    test = build_test(cfg, search_cfg)
    knowledge = build_knowledge(cfg, test.variable_names)
    unknown = [v for v in knowledge.variables if v not in set(test.variable_names)]
    if unknown:
        log.warning("Knowledge mentions variables not in the data: %s", unknown)
    return test, knowledge, search_cfg


def write_artifacts(
    cfg: Dict[str, Any], result: SearchResult, knowledge: Knowledge, search_cfg: SearchConfig
) -> Dict[str, Any]:
    out_dir = ensure_dir(cfg["run"]["output_dir"])
    positions = default_layout(result.graph, knowledge)
    payload = {
        "summary": result.summary(),
        "graph": graph_to_json(result.graph),
        "sepsets": result.sepsets.to_dict(),
        "knowledge": knowledge.to_dict(),
        "search": search_cfg.to_dict(),
        "layout": {k: list(v) for k, v in positions.items()},
    }
    res_path = write_json(out_dir / "search_result.json", payload)
    txt_path = write_text(out_dir / "graph.txt", str(result.graph))
    dot_path = write_text(out_dir / "graph.dot", graph_to_dot(result.graph, positions))
    return {
        "output_dir": str(out_dir.as_posix()),
        "search_result": str(res_path.as_posix()),
        "graph_txt": str(txt_path.as_posix()),
        "graph_dot": str(dot_path.as_posix()),
        "summary": result.summary(),
    }


def run_search(cfg: Dict[str, Any], cancel_token: Optional[CancellationToken] = None) -> Dict[str, Any]:
    """
    Run the configured search end to end and write its artifacts.

    Returns
    -------
    dict
        Artifact paths plus the result summary.
    """
    test, knowledge, search_cfg = prepare(cfg)
    result = SearchRunner(test, knowledge, search_cfg).run(cancel_token=cancel_token)
    if knowledge.is_violated_by(result.graph):
        log.warning("Result graph violates the background knowledge.")
    artifacts = write_artifacts(cfg, result, knowledge, search_cfg)
    log.info("Search artifacts → %s", artifacts["output_dir"])
    return artifacts
