"""Bounded concurrent execution of a step's tasks with ordered results."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from fa_common.errors import AggregateError, FAError, TaskError
from fa_controller.steps import ExecOptions
from fa_controller.task import Task, TaskResult, TaskRuntime
from fa_controller.ui_interfaces import EngineUI, NoOpProgressHandle, NoOpUI, ProgressHandle

logger = logging.getLogger(__name__)


@dataclass
class StepReport:
    """Per-task results of one step, in submission order."""

    title: str
    results: List[TaskResult] = field(default_factory=list)
    error: Optional[FAError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def failures(self) -> List[TaskResult]:
        return [result for result in self.results if result.error is not None]

    @property
    def skipped(self) -> List[TaskResult]:
        return [result for result in self.results if result.skipped]


class _Counter:
    """Completed-task counter driving the main bar."""

    def __init__(self, handle: ProgressHandle) -> None:
        self._handle = handle
        self._lock = threading.Lock()
        self.value = 0

    def tick(self) -> None:
        with self._lock:
            self.value += 1
            self._handle.update(self.value)


class TaskExecutor:
    """Runs tasks on at most ``concurrency`` worker threads.

    With ``skip_error`` off, the first failure stops dispatch of tasks that
    have not started yet; running ones finish and keep their results. With
    ``skip_error`` on, every task runs and failures merge into an
    ``AggregateError`` ordered by submission index.
    """

    def __init__(self, runtime: TaskRuntime, ui: EngineUI | None = None) -> None:
        self.runtime = runtime
        self.ui = ui or NoOpUI()

    def execute(self, title: str, tasks: Sequence[Task], options: ExecOptions) -> StepReport:
        report = StepReport(title=title)
        total = len(tasks)
        if total == 0:
            return report

        workers = options.concurrency if 0 < options.concurrency < total else total
        main_bar = NoOpProgressHandle() if options.silent_main_bar else self.ui.main_bar(title, total)
        counter = _Counter(main_bar)
        halt = threading.Event()
        first_error: List[FAError] = []
        error_lock = threading.Lock()
        results: List[Optional[TaskResult]] = [None] * total

        def worker(index: int, task: Task) -> None:
            if halt.is_set():
                results[index] = TaskResult(
                    index=index, host=task.host, ok=False, skipped=True,
                    tid=task.tid, ptid=task.ptid, name=task.name,
                )
                return
            sub_bar = (
                NoOpProgressHandle()
                if options.silent_sub_bar
                else self.ui.sub_bar(f"{task.host}: {task.name}", max(len(task), 1))
            )
            try:
                output = task.run(self.runtime, sub_bar)
            except Exception as exc:  # noqa: BLE001
                error = exc if isinstance(exc, FAError) else TaskError(str(exc), host=task.host, cause=exc)
                sub_bar.finish(ok=False)
                logger.error("[%s] %s failed: %s", task.host, task.name, error)
                results[index] = TaskResult(
                    index=index, host=task.host, ok=False, error=error,
                    output=getattr(error, "output", ""), tid=task.tid, ptid=task.ptid, name=task.name,
                )
                with error_lock:
                    if not first_error:
                        first_error.append(error)
                if not options.skip_error:
                    halt.set()
            else:
                sub_bar.finish(ok=True)
                results[index] = TaskResult(
                    index=index, host=task.host, ok=True, output=output,
                    tid=task.tid, ptid=task.ptid, name=task.name,
                )
            finally:
                counter.tick()

        logger.debug("Executing %d task(s) for %s with %d worker(s)", total, title, workers)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="fa-task") as pool:
            futures = [pool.submit(worker, idx, task) for idx, task in enumerate(tasks)]
            for future in futures:
                future.result()

        report.results = [result for result in results if result is not None]
        failures = [result.error for result in report.results if result.error is not None]
        main_bar.finish(ok=not failures)
        if failures:
            if options.skip_error:
                report.error = AggregateError(failures)
            else:
                report.error = first_error[0]
        return report
