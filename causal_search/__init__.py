"""
Causal Search Engine (CSE): Core Python Package

Constraint-based causal structure search:
1) fas       → adjacency search (skeleton + separating sets)
2) colliders → unshielded collider orientation (sepsets or conservative)
3) meek      → orientation closure under Meek's rules with background knowledge
4) pc        → PC / CPC orchestration and search results

Design goals
------------
- CLI-first: the Typer CLI runs searches from a YAML config.
- Config-driven: one explicit SearchConfig per search, no global state.
- Reproducible: deterministic iteration order, logged runs, JSON/text artifacts.

License: MIT
"""
__version__ = "0.1.0"

__all__ = [
    "cli",
    "search",
    "runner",
    "resampling",
    "models",
    "utils",
]
