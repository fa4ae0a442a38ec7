"""
Config loader & resolver

- load_yaml(path): loads YAML into dict (requires PyYAML)
- resolve_config(path, overrides_json): loads and applies optional JSON overrides,
  then fills in the default sections used by the search stage
"""
from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..errors import ConfigurationError

DEFAULTS: Dict[str, Any] = {
    "run": {"output_dir": "outputs"},
    "data": {"path": None, "delimiter": ",", "variables": None, "true_graph": None},
    "knowledge": {},
    "search": {
        "algorithm": "pc",
        "test": "fisher_z",
        "alpha": 0.01,
        "depth": -1,
        "collider_rule": "sepsets",
        "neighborhood": "union",
        "knowledge_in_fas": False,
        "prevent_cycles": True,
        "use_rule4": None,
        "n_jobs": 1,
    },
    "logging": {"level": "INFO", "to_file": False, "to_json": False, "dir": "logs"},
}


def load_yaml(path: str | Path) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")
    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config root must be a mapping: {p}")
    return data


def deep_merge(a: Dict, b: Dict) -> Dict:
    """Recursively merge dict b into a (returns a new dict)."""
    out = dict(a)
    for k, v in b.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def with_defaults(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Fill every missing section/key from DEFAULTS without touching given values."""
    return deep_merge(copy.deepcopy(DEFAULTS), cfg or {})


def resolve_config(path: str | Path, overrides_json: Optional[str] = None) -> Dict:
    cfg = load_yaml(path)
    if overrides_json:
        # Accept a JSON string (e.g. {"search": {"alpha": 0.05, "depth": 2}})
        try:
            overrides = json.loads(overrides_json)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON overrides: {e}") from e
        cfg = deep_merge(cfg, overrides)
    cfg = with_defaults(cfg)
    # Relative data/knowledge paths are resolved against the config file location.
    base = Path(path).resolve().parent
    for section, key in (("data", "path"), ("data", "true_graph"), ("knowledge", "path")):
        rel = (cfg.get(section) or {}).get(key)
        if rel and not Path(rel).is_absolute():
            cfg[section][key] = str((base / rel).as_posix())
    return cfg
