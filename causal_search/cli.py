# FILE: causal_search/cli.py
# =============================================================================
# Causal Search Engine (CSE): Typer CLI
#
# Commands
# --------
#   version            Package version (+ config hash when -c is given)
#   effective-config   Fully resolved config (after overrides) as JSON or YAML
#   search             Run the configured search (PC / CPC / FAS) and write artifacts
#   fas                Same, adjacency search only
#   cpdag              DAG file -> CPDAG (graph text format)
#   dag                CPDAG file -> one DAG in its equivalence class
#   paths              Directed / semidirected paths or treks between two nodes
#   check-knowledge    Validate a knowledge file; optionally check a graph against it
#
# Logging controls on config-driven commands:
#   --run-id auto|<str>, --log-level LEVEL, --log-file/--no-log-file, --log-json/--no-log-json
#
# Usage examples
# --------------
#   python -m causal_search search -c configs/search.yaml --run-id auto --log-file
#   python -m causal_search search -c configs/search.yaml -o '{"search": {"alpha": 0.05}}'
#   python -m causal_search paths graph.txt --from X1 --to X4 --kind treks --max-length 4
# =============================================================================

from __future__ import annotations

import hashlib
import json
import os
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
import typer
import yaml

from . import __version__
from .errors import CausalSearchError
from .models.transforms import (
    cpdag_to_dag,
    dag_to_cpdag,
    directed_paths_from_to,
    path_string,
    semidirected_paths_from_to,
    treks,
)
from .search import run_search
from .utils.config_loader import resolve_config, with_defaults
from .utils.io import read_graph, read_knowledge
from .utils.logging_utils import add_run_metadata, get_logger, init_logging

app = typer.Typer(add_completion=False, help="Causal Search Engine (CSE): constraint-based causal search CLI")

PATH_KINDS = ("directed", "semidirected", "treks")

# =============================================================================
# Helpers
# =============================================================================


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _sha256_bytes(b: bytes) -> str:
    return "sha256:" + hashlib.sha256(b).hexdigest()


def _sha256_file(path: Path) -> str:
    return _sha256_bytes(path.read_bytes())


def _git_short_hash() -> Optional[str]:
    try:
        out = subprocess.check_output(["git", "rev-parse", "--short", "HEAD"], stderr=subprocess.DEVNULL)
        return out.decode("utf-8").strip()
    except (OSError, subprocess.CalledProcessError):
        return None


def _auto_run_id() -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    g = _git_short_hash()
    return f"{ts}_{g}" if g else ts


def _merge_logging_overrides(cfg: Dict[str, Any],
                             level: Optional[str],
                             to_file: Optional[bool],
                             to_json: Optional[bool]) -> Dict[str, Any]:
    c = dict(cfg or {})
    lc = dict(c.get("logging", {}) or {})
    if level:
        lc["level"] = level
    if to_file is not None:
        lc["to_file"] = bool(to_file)
    if to_json is not None:
        lc["to_json"] = bool(to_json)
    lc.setdefault("dir", "logs")
    c["logging"] = lc
    return c


def _bootstrap_logging(cfg: Dict[str, Any],
                       run_id: Optional[str],
                       level: Optional[str],
                       to_file: Optional[bool],
                       to_json: Optional[bool]) -> Tuple[Dict[str, Any], str]:
    """
    Apply CLI logging overrides, compute run_id (auto|str), and initialize logging.
    Returns (merged_cfg, resolved_run_id).
    """
    merged = _merge_logging_overrides(cfg, level, to_file, to_json)
    rid = _auto_run_id() if (run_id == "auto" or not run_id) else run_id
    init_logging(merged, run_id=rid)
    add_run_metadata(get_logger("cse.cli"), rid, _sha256_bytes(json.dumps(merged, sort_keys=True).encode("utf-8")))
    return merged, rid


def _fail(err: Exception, code: int = 2) -> None:
    get_logger("cse.cli").error("%s", err)
    typer.echo(f"Error: {err}", err=True)
    raise typer.Exit(code=code)


def _emit(text: str, out: Optional[str]) -> None:
    if out:
        p = Path(out)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(text, encoding="utf-8")
        typer.echo(f"Wrote → {p.as_posix()}")
    else:
        typer.echo(text, nl=False)


# =============================================================================
# Core commands
# =============================================================================


@app.command("version")
def cli_version(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to search config YAML."),
):
    cfg_hash = None
    if config:
        p = Path(config)
        if p.exists():
            cfg_hash = _sha256_file(p)
    payload = {
        "cse_version": os.environ.get("CSE_CLI_VERSION", __version__),
        "config_hash": cfg_hash,
        "timestamp_utc": _utc_now_iso(),
    }
    typer.echo(json.dumps(payload, indent=2))


@app.command("effective-config")
def cli_effective_config(
    config: str = typer.Option(..., "--config", "-c", help="Path to YAML config."),
    overrides: Optional[str] = typer.Option(None, "--override", "-o", help="JSON string of overrides."),
    out: Optional[str] = typer.Option(None, "--out", help="Write resolved config to this path (json|yaml)."),
):
    """
    Render the fully-resolved config (after JSON overrides and defaults).
    """
    try:
        cfg = resolve_config(config, overrides_json=overrides)
    except (CausalSearchError, FileNotFoundError) as e:
        _fail(e)
    if out:
        outp = Path(out)
        outp.parent.mkdir(parents=True, exist_ok=True)
        if outp.suffix.lower() in (".yml", ".yaml"):
            outp.write_text(yaml.safe_dump(cfg, sort_keys=False), encoding="utf-8")
        else:
            outp.write_text(json.dumps(cfg, indent=2), encoding="utf-8")
        typer.echo(f"Wrote resolved config → {outp.as_posix()}")
    else:
        typer.echo(json.dumps(cfg, indent=2))


def _search_entry(
    config: str,
    overrides: Optional[str],
    algorithm: Optional[str],
    dry_run: bool,
    run_id: str,
    log_level: Optional[str],
    log_file: Optional[bool],
    log_json: Optional[bool],
) -> None:
    try:
        cfg = resolve_config(config, overrides_json=overrides)
    except (CausalSearchError, FileNotFoundError) as e:
        _fail(e)
    if algorithm:
        cfg["search"]["algorithm"] = algorithm
    cfg, rid = _bootstrap_logging(cfg, run_id, log_level, log_file, log_json)
    if dry_run:
        typer.echo(json.dumps({"stage": "search", "dry_run": True, "run_id": rid, "search": cfg["search"]}, indent=2))
        return
    log = get_logger("cse.cli")
    log.info("=== CSE :: %s :: run_id=%s ===", str(cfg["search"]["algorithm"]).upper(), rid)
    try:
        artifacts = run_search(cfg)
    except (CausalSearchError, FileNotFoundError) as e:
        _fail(e)
    artifacts["run_id"] = rid
    typer.echo(json.dumps(artifacts, indent=2))


@app.command("search")
def cli_search(
    config: str = typer.Option(..., "--config", "-c", help="Path to search config YAML."),
    overrides: Optional[str] = typer.Option(None, "--override", "-o", help="JSON string of overrides."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview without executing."),
    run_id: str = typer.Option("auto", "--run-id", help='Run identifier ("auto" => timestamp+git).'),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override logging level (e.g. INFO, DEBUG)."),
    log_file: Optional[bool] = typer.Option(None, "--log-file/--no-log-file", help="Enable/disable file logging."),
    log_json: Optional[bool] = typer.Option(None, "--log-json/--no-log-json", help="Enable/disable JSONL logging."),
):
    _search_entry(config, overrides, None, dry_run, run_id, log_level, log_file, log_json)


@app.command("fas")
def cli_fas(
    config: str = typer.Option(..., "--config", "-c"),
    overrides: Optional[str] = typer.Option(None, "--override", "-o"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview without executing."),
    run_id: str = typer.Option("auto", "--run-id"),
    log_level: Optional[str] = typer.Option(None, "--log-level"),
    log_file: Optional[bool] = typer.Option(None, "--log-file/--no-log-file"),
    log_json: Optional[bool] = typer.Option(None, "--log-json/--no-log-json"),
):
    _search_entry(config, overrides, "fas", dry_run, run_id, log_level, log_file, log_json)


# =============================================================================
# Graph utilities
# =============================================================================


def _graph_logging(log_level: Optional[str]) -> None:
    init_logging(_merge_logging_overrides(with_defaults({}), log_level, False, False))


@app.command("cpdag")
def cli_cpdag(
    graph: str = typer.Argument(..., help="DAG file (graph text format or JSON)."),
    out: Optional[str] = typer.Option(None, "--out", help="Write the CPDAG here instead of stdout."),
    log_level: Optional[str] = typer.Option(None, "--log-level"),
):
    _graph_logging(log_level)
    try:
        result = dag_to_cpdag(read_graph(graph))
    except (CausalSearchError, FileNotFoundError) as e:
        _fail(e)
    _emit(str(result), out)


@app.command("dag")
def cli_dag(
    graph: str = typer.Argument(..., help="CPDAG file (graph text format or JSON)."),
    out: Optional[str] = typer.Option(None, "--out", help="Write the DAG here instead of stdout."),
    log_level: Optional[str] = typer.Option(None, "--log-level"),
):
    _graph_logging(log_level)
    try:
        result = cpdag_to_dag(read_graph(graph))
    except (CausalSearchError, FileNotFoundError) as e:
        _fail(e)
    _emit(str(result), out)


@app.command("paths")
def cli_paths(
    graph: str = typer.Argument(..., help="Graph file (graph text format or JSON)."),
    source: str = typer.Option(..., "--from", help="Start node."),
    target: str = typer.Option(..., "--to", help="End node."),
    kind: str = typer.Option(
        "directed", "--kind", click_type=click.Choice(PATH_KINDS), help="directed|semidirected|treks"
    ),
    max_length: int = typer.Option(3, "--max-length", help="Maximum number of edges (-1 = number of nodes)."),
    log_level: Optional[str] = typer.Option(None, "--log-level"),
):
    _graph_logging(log_level)
    finders = {"directed": directed_paths_from_to, "semidirected": semidirected_paths_from_to, "treks": treks}
    try:
        g = read_graph(graph)
        a, b = g.get_node(source), g.get_node(target)
        found = finders[kind](g, a, b, max_length)
    except (CausalSearchError, FileNotFoundError) as e:
        _fail(e)
    if not found:
        typer.echo(f"No {kind} paths from {source} to {target} (max length {max_length}).")
        return
    for i, p in enumerate(found, 1):
        typer.echo(f"{i}. {path_string(g, p)}")


@app.command("check-knowledge")
def cli_check_knowledge(
    knowledge: str = typer.Argument(..., help="Knowledge file (text format)."),
    graph: Optional[str] = typer.Option(None, "--graph", help="Check this graph against the knowledge."),
    log_level: Optional[str] = typer.Option(None, "--log-level"),
):
    _graph_logging(log_level)
    try:
        k = read_knowledge(knowledge)
        g = read_graph(graph) if graph else None
    except (CausalSearchError, FileNotFoundError) as e:
        _fail(e)
    report: Dict[str, Any] = {"knowledge": k.to_dict(), "variables_not_in_tiers": k.variables_not_in_tiers()}
    if g is not None:
        report["violated"] = k.is_violated_by(g)
    typer.echo(json.dumps(report, indent=2))
    if report.get("violated"):
        raise typer.Exit(code=1)


# =============================================================================
# Entrypoint
# =============================================================================


@app.callback(invoke_without_command=False)
def _root() -> None:
    """Causal Search Engine (CSE): CLI entrypoint."""
    return


def main() -> None:
    app()


if __name__ == "__main__":
    main()
