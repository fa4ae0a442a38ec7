# FILE: causal_search/runner.py
# ======================================================================================
# Causal Search Engine (CSE)
# Background execution and cooperative cancellation
# --------------------------------------------------------------------------------------
# A search runs on one dedicated worker thread. The caller keeps a SearchHandle and
# may cancel at any time; the search notices at its next checkpoint (start of a FAS
# round, each processed pair, between Meek passes) and returns the last completed
# state with `cancelled=True`. Cancellation is a normal return, not an error.
#
#   handle = SearchRunner(test, knowledge, config).start()
#   ...
#   handle.cancel()
#   result = handle.result(timeout=10)
#
# License
# -------
# MIT (c) 2025 Causal Search Engine contributors
# ======================================================================================

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from .models.independence import IndependenceTest
from .models.knowledge import Knowledge
from .models.pc import Pc, SearchConfig, SearchResult, run_fas
from .utils.logging_utils import get_logger

log = get_logger("cse.runner")


class CancellationToken:
    """Thread-safe flag polled by the search between units of work."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"


class SearchHandle:
    def __init__(self, future: "Future[SearchResult]", token: CancellationToken, executor: ThreadPoolExecutor):
        self._future = future
        self._token = token
        self._executor = executor
        future.add_done_callback(lambda _f: executor.shutdown(wait=False))

    @property
    def token(self) -> CancellationToken:
        return self._token

    def cancel(self) -> None:
        log.info("Cancellation requested.")
        self._token.cancel()

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: Optional[float] = None) -> SearchResult:
        return self._future.result(timeout=timeout)


class SearchRunner:
    """
    Runs PC, CPC or FAS (per `config.algorithm`) synchronously or on a worker thread.
    """

    def __init__(
        self,
        test: IndependenceTest,
        knowledge: Optional[Knowledge] = None,
        config: Optional[SearchConfig] = None,
    ):
        self.test = test
        self.knowledge = knowledge
        self.config = config if config is not None else SearchConfig()

    def run(self, cancel_token: Optional[CancellationToken] = None) -> SearchResult:
        cfg = self.config
        log.info(
            "Starting %s: test=%s alpha=%.4g depth=%d over %d variables.",
            cfg.algorithm.upper(), self.test.name, self.test.alpha, cfg.depth, len(self.test.variables),
        )
        if cfg.algorithm == "fas":
            result = run_fas(self.test, self.knowledge, cfg, cancel_token=cancel_token)
        else:
            result = Pc(self.test, self.knowledge, cfg).search(cancel_token=cancel_token)
        if result.cancelled:
            log.warning("Search cancelled; partial result returned (depth %d).", result.depth_reached)
        return result

    def start(self) -> SearchHandle:
        token = CancellationToken()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cse-search")
        future = executor.submit(self.run, token)
        return SearchHandle(future, token, executor)
