"""Tests for bounded concurrent task execution."""

from __future__ import annotations

import threading
import time

import pytest

from fa_common.errors import (
    ERR_CONTAINER_NOT_FOUND,
    ERR_PORT_IN_USE,
    AggregateError,
    TaskError,
)
from fa_controller.context import SharedContext
from fa_controller.executor import TaskExecutor
from fa_controller.steps import ExecOptions
from fa_controller.task import Task, TaskRuntime


pytestmark = pytest.mark.unit_controller


class Gauge:
    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.active = 0
        self.peak = 0

    def step(self, ctx) -> None:
        with self.lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        time.sleep(0.02)
        with self.lock:
            self.active -= 1


def _executor() -> TaskExecutor:
    return TaskExecutor(TaskRuntime(shared=SharedContext()))


def _failing(code):
    def step(ctx) -> None:
        raise code.f("on %s", ctx.host, error_cls=TaskError)

    return step


def test_concurrency_is_bounded() -> None:
    gauge = Gauge()
    tasks = [Task("t", f"h{i}").add_step(gauge.step) for i in range(8)]
    report = _executor().execute("bounded", tasks, ExecOptions(concurrency=3))
    assert report.ok
    assert 1 <= gauge.peak <= 3
    assert [result.host for result in report.results] == [f"h{i}" for i in range(8)]


def test_zero_concurrency_runs_every_task_at_once() -> None:
    gauge = Gauge()
    tasks = [Task("t", f"h{i}").add_step(gauge.step) for i in range(4)]
    assert _executor().execute("all", tasks, ExecOptions()).ok


def test_first_failure_halts_remaining_tasks() -> None:
    ran = []
    tasks = [
        Task("t", "h0").add_step(lambda ctx: ran.append(ctx.host)),
        Task("t", "h1").add_step(_failing(ERR_PORT_IN_USE)),
        Task("t", "h2").add_step(lambda ctx: ran.append(ctx.host)),
    ]
    report = _executor().execute("halt", tasks, ExecOptions(concurrency=1))
    assert isinstance(report.error, TaskError)
    assert report.error.host == "h1"
    assert ran == ["h0"]
    assert [result.host for result in report.skipped] == ["h2"]


def test_skip_error_runs_everything_and_aggregates() -> None:
    tasks = []
    for i in range(10):
        task = Task("t", f"h{i}")
        if i == 3:
            task.add_step(_failing(ERR_CONTAINER_NOT_FOUND))
        elif i == 7:
            task.add_step(_failing(ERR_PORT_IN_USE))
        else:
            task.add_step(lambda ctx: ctx.emit("fine"))
        tasks.append(task)

    report = _executor().execute("agg", tasks, ExecOptions(concurrency=4, skip_error=True))
    assert len(report.results) == 10
    assert [result.host for result in report.failures] == ["h3", "h7"]
    assert isinstance(report.error, AggregateError)
    # lowest non-zero code wins
    assert report.error.code is ERR_CONTAINER_NOT_FOUND
    lines = str(report.error).splitlines()
    assert lines[0].startswith("[h3]")
    assert lines[1].startswith("[h7]")
    assert report.results[0].output == "fine"


def test_unexpected_exception_is_wrapped_with_host() -> None:
    def explode(ctx) -> None:
        raise KeyError("nope")

    report = _executor().execute("wrap", [Task("boom", "h9").add_step(explode)], ExecOptions())
    assert isinstance(report.error, TaskError)
    assert report.error.host == "h9"


def test_empty_task_list() -> None:
    report = _executor().execute("empty", [], ExecOptions())
    assert report.ok
    assert report.results == []


def test_exec_options_reject_negative_values() -> None:
    with pytest.raises(ValueError):
        ExecOptions(concurrency=-1)
    with pytest.raises(ValueError):
        ExecOptions(limit=-1)
