"""Background fetch worker feeding results back to the foreground loop."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from queue import Empty, Queue
from typing import Any

from glt.exceptions import FetchError

logger = logging.getLogger("gitlab_tree.loader")


@dataclass(frozen=True)
class LoadRequest:
    """One fetch job. `index` is None for a full tree rebuild."""

    generation: int
    index: int | None
    job: Callable[[], Any]


@dataclass(frozen=True)
class LoadResult:
    """Completed job, tagged with the generation it was issued for."""

    generation: int
    index: int | None
    payload: Any = None
    error: FetchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BackgroundLoader:
    """
    Single-threaded FIFO fetch worker.

    Jobs run one at a time on a daemon thread, so the cache and the API
    client never see concurrent callers. Results are posted to a queue
    drained by the foreground with `drain_results()`. With `inline=True`
    jobs run synchronously inside `submit()`, which is what tests use.
    """

    def __init__(self, *, inline: bool = False) -> None:
        self._inline = inline
        self._lock = threading.Lock()
        self._pending: Queue[LoadRequest] = Queue()
        self._results: Queue[LoadResult] = Queue()
        self._running = False
        self._closed = False

    def _run(self, request: LoadRequest) -> LoadResult:
        try:
            payload = request.job()
        except FetchError as err:
            return LoadResult(request.generation, request.index, error=err)
        except Exception as e:
            logger.exception("Background load crashed (index=%s).", request.index)
            return LoadResult(request.generation, request.index, error=FetchError(str(e)))
        return LoadResult(request.generation, request.index, payload=payload)

    def _worker(self) -> None:
        while True:
            with self._lock:
                try:
                    request = self._pending.get_nowait()
                except Empty:
                    self._running = False
                    return
            self._results.put(self._run(request))

    def submit(self, generation: int, index: int | None, job: Callable[[], Any]) -> None:
        """Queue a job; its LoadResult shows up in a later `drain_results()`."""
        request = LoadRequest(generation, index, job)
        if self._inline:
            self._results.put(self._run(request))
            return

        with self._lock:
            if self._closed:
                return
            self._pending.put(request)
            if self._running:
                return
            self._running = True

        worker = threading.Thread(
            target=self._worker,
            name="gitlab-tree-loader",
            daemon=True,
        )
        worker.start()

    def drain_results(self) -> list[LoadResult]:
        """Drain all completed results without blocking."""
        results: list[LoadResult] = []
        while True:
            try:
                results.append(self._results.get_nowait())
            except Empty:
                return results

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._running

    def close(self) -> None:
        """Stop accepting jobs. In-flight calls are not aborted; their results are simply never drained."""
        with self._lock:
            self._closed = True
            while True:
                try:
                    self._pending.get_nowait()
                except Empty:
                    break
