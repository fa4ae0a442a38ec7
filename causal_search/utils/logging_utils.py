# causal_search/utils/logging_utils.py
# ======================================================================================
# Causal Search Engine (CSE)
# Logging Utilities: Config-driven, reproducible logging for searches
# --------------------------------------------------------------------------------------
# Purpose
#   Provide a unified logging setup for the search runners and the CLI:
#     • Configurable levels and destinations (console, file, JSON lines).
#     • Defaults: INFO to stdout; file logs optional.
#     • Log file names stamped with a run id so repeated searches do not collide.
#
# Design
#   - init_logging(cfg): sets root logger with console + optional file/JSON handlers.
#   - get_logger(name): retrieve a namespaced logger ("cse.fas", "cse.meek", ...).
#   - add_run_metadata(logger, run_id, cfg_hash): one INFO line for CI parsing.
#
# Dependencies: Python stdlib only (logging, json, datetime, pathlib).
#
# License
#   MIT (c) 2025 Causal Search Engine contributors
# ======================================================================================

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

_CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class _JSONLogHandler(logging.Handler):
    """
    A logging handler that writes structured JSON logs to a file.
    Each record is stored as one JSON object per line (JSONL).
    """

    def __init__(self, path: Path, level: int = logging.INFO) -> None:
        super().__init__(level)
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = self.path.open("a", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        try:
            log_entry = {
                "time": datetime.now(timezone.utc).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
                "module": record.module,
                "func": record.funcName,
                "line": record.lineno,
            }
            self._fh.write(json.dumps(log_entry, ensure_ascii=False) + "\n")
            self._fh.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        try:
            if not self._fh.closed:
                self._fh.close()
        finally:
            super().close()


def _run_tag(run_id: Optional[str]) -> str:
    return run_id or datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")


def init_logging(cfg: Dict[str, Any], run_id: Optional[str] = None) -> None:
    """
    Configure logging from a config dictionary.

    Parameters
    ----------
    cfg : dict
        Config dictionary (reads the optional "logging" section).
    run_id : str, optional
        Run identifier used in log file names.
    """
    log_cfg = cfg.get("logging", {}) if cfg else {}
    level_str = str(log_cfg.get("level", "INFO")).upper()
    level = getattr(logging, level_str, logging.INFO)

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    root.setLevel(level)

    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(level)
    ch.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    root.addHandler(ch)

    log_dir = Path(log_cfg.get("dir", "logs"))
    if log_cfg.get("to_file", False):
        log_file = log_dir / f"cse_{_run_tag(run_id)}.log"
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(_FILE_FORMAT))
        root.addHandler(fh)

    if log_cfg.get("to_json", False):
        json_file = log_dir / f"cse_{_run_tag(run_id)}.jsonl"
        root.addHandler(_JSONLogHandler(json_file, level=level))

    root.debug("Logging initialized (run_id=%s)", run_id)


def get_logger(name: str) -> logging.Logger:
    """
    Retrieve a module-specific logger.
    """
    return logging.getLogger(name)


def add_run_metadata(logger: logging.Logger, run_id: str, cfg_hash: str) -> None:
    logger.info("[RunMeta] run_id=%s cfg_hash=%s", run_id, cfg_hash)
