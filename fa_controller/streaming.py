"""Unbounded fan-out that emits results in launch order."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Dict, List, Sequence, Tuple

from fa_common.errors import FAError, TaskError
from fa_controller.task import TaskResult

logger = logging.getLogger(__name__)

Job = Tuple[str, Callable[[], str]]
Sink = Callable[[TaskResult], None]


class OrderedFanout:
    """One thread per job; results reach ``sink`` strictly by index.

    Each instance owns its queue, threads and pending map and runs once, so
    concurrent fan-outs never share state.
    """

    def __init__(self, sink: Sink | None = None) -> None:
        self._sink = sink
        self._results: "queue.Queue[TaskResult]" = queue.Queue()
        self._pending: Dict[int, TaskResult] = {}
        self._threads: List[threading.Thread] = []
        self._next = 0
        self._started = False

    def _launch(self, index: int, host: str, job: Callable[[], str]) -> None:
        try:
            output = job()
        except Exception as exc:  # noqa: BLE001
            error = exc if isinstance(exc, FAError) else TaskError(str(exc), host=host, cause=exc)
            self._results.put(
                TaskResult(index=index, host=host, ok=False, error=error, output=getattr(error, "output", ""))
            )
            return
        self._results.put(TaskResult(index=index, host=host, ok=True, output=output))

    def _flush(self, emitted: List[TaskResult]) -> None:
        while self._next in self._pending:
            result = self._pending.pop(self._next)
            emitted.append(result)
            if self._sink is not None:
                self._sink(result)
            self._next += 1

    def run(self, jobs: Sequence[Job]) -> List[TaskResult]:
        if self._started:
            raise RuntimeError("OrderedFanout instances run once")
        self._started = True

        for index, (host, job) in enumerate(jobs):
            thread = threading.Thread(
                target=self._launch, args=(index, host, job), name=f"fa-fanout-{index}", daemon=True
            )
            self._threads.append(thread)
            thread.start()

        emitted: List[TaskResult] = []
        for _ in range(len(jobs)):
            result = self._results.get()
            self._pending[result.index] = result
            self._flush(emitted)

        for thread in self._threads:
            thread.join()
        logger.debug("Fan-out finished: %d job(s)", len(emitted))
        return emitted
