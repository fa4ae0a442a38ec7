# FILE: causal_search/__main__.py
# =============================================================================
# Causal Search Engine (CSE)
# Package Entrypoint: enables `python -m causal_search` to launch the CLI.
#
#     python -m causal_search --help
#     python -m causal_search search -c configs/search.yaml
# =============================================================================

from __future__ import annotations

import sys


def _run() -> int:
    """
    Import and invoke the Typer CLI entrypoint.

    Returns
    -------
    int
        Process exit code (0 on success).
    """
    from causal_search.cli import main as _cli_main

    _cli_main()
    return 0


if __name__ == "__main__":
    sys.exit(_run())
