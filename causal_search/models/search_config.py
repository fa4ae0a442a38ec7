"""
Explicit search configuration.

One SearchConfig is built from the `search:` config section (or by hand) and
passed into every search; nothing is read from global state.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional

from ..errors import ConfigurationError

ALGORITHMS = ("pc", "cpc", "fas")
COLLIDER_RULES = ("sepsets", "conservative")
NEIGHBORHOODS = ("union", "either")
UNLIMITED_DEPTH = 1000


def effective_depth(depth: int) -> int:
    """Map -1 (unlimited) to the working cap on conditioning-set size."""
    return UNLIMITED_DEPTH if depth == -1 else depth


@dataclass
class SearchConfig:
    algorithm: str = "pc"
    test: str = "fisher_z"
    alpha: float = 0.01
    depth: int = -1
    collider_rule: str = "sepsets"
    neighborhood: str = "union"
    knowledge_in_fas: bool = False
    prevent_cycles: bool = True
    use_rule4: Optional[bool] = None
    n_jobs: int = 1

    def __post_init__(self) -> None:
        self.algorithm = str(self.algorithm).lower()
        if self.algorithm not in ALGORITHMS:
            raise ConfigurationError(f"Unknown algorithm {self.algorithm!r}. Valid: {', '.join(ALGORITHMS)}")
        if self.algorithm == "cpc":
            self.collider_rule = "conservative"
        if self.collider_rule not in COLLIDER_RULES:
            raise ConfigurationError(f"Unknown collider_rule {self.collider_rule!r}.")
        if self.neighborhood not in NEIGHBORHOODS:
            raise ConfigurationError(f"Unknown neighborhood {self.neighborhood!r}.")
        self.alpha = float(self.alpha)
        if not (0.0 < self.alpha < 1.0):
            raise ConfigurationError(f"alpha must be in (0, 1): {self.alpha}")
        self.depth = int(self.depth)
        if self.depth < -1:
            raise ConfigurationError(f"depth must be -1 (unlimited) or >= 0: {self.depth}")
        self.n_jobs = int(self.n_jobs)
        if self.n_jobs < 1:
            raise ConfigurationError(f"n_jobs must be >= 1: {self.n_jobs}")

    @property
    def effective_depth(self) -> int:
        return effective_depth(self.depth)

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "SearchConfig":
        d = dict(d or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(d) - known)
        if unknown:
            raise ConfigurationError(f"Unknown search option(s): {unknown}")
        return cls(**d)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
