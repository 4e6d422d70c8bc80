"""Sequential step runner with always-run post steps."""

from __future__ import annotations

import logging
from typing import List, Optional

from fa_common.errors import FAError
from fa_controller.executor import StepReport, TaskExecutor
from fa_controller.factory import BuildDeps, TaskFactory
from fa_controller.steps import Step
from fa_controller.task import TaskRuntime
from fa_controller.ui_interfaces import EngineUI, NoOpUI

logger = logging.getLogger(__name__)


class Playbook:
    """Ordered steps plus cleanup steps that run regardless of outcome.

    A failing step with ``skip_error`` off stops the main chain. A failing
    step with ``skip_error`` on lets the chain continue but its error is
    still what :meth:`run` raises if it came first. Post-step failures are
    logged and never raised.
    """

    def __init__(
        self,
        deps: BuildDeps,
        runtime: TaskRuntime | None = None,
        ui: EngineUI | None = None,
        factory: TaskFactory | None = None,
    ) -> None:
        self.deps = deps
        self.runtime = runtime or TaskRuntime(shared=deps.shared, settings=deps.settings)
        self.ui = ui or NoOpUI()
        self.factory = factory or TaskFactory(deps)
        self.executor = TaskExecutor(self.runtime, self.ui)
        self.steps: List[Step] = []
        self.post_steps: List[Step] = []
        self.reports: List[StepReport] = []
        self.post_reports: List[StepReport] = []

    def add_step(self, step: Step) -> "Playbook":
        self.steps.append(step)
        return self

    def add_post_step(self, step: Step) -> "Playbook":
        self.post_steps.append(step)
        return self

    def _run_step(self, step: Step) -> StepReport:
        tasks = self.factory.build(step)
        logger.info("Step %s: %d task(s)", step.title, len(tasks))
        report = self.executor.execute(step.title, tasks, step.exec)
        if report.error is not None:
            logger.info("Step %s finished with errors: %s", step.title, report.error)
        else:
            logger.info("Step %s finished", step.title)
        return report

    def run(self) -> None:
        """Run main steps in order, then every post step; raise the first main error."""
        first_error: Optional[FAError] = None
        try:
            for step in self.steps:
                report = self._run_step(step)
                self.reports.append(report)
                if report.error is None:
                    continue
                if first_error is None:
                    first_error = report.error
                if not step.exec.skip_error:
                    break
        finally:
            self._run_post_steps()
        if first_error is not None:
            raise first_error

    def _run_post_steps(self) -> None:
        for step in self.post_steps:
            try:
                report = self._run_step(step)
            except FAError as exc:
                logger.warning("Post step %s could not run: %s", step.title, exc)
                continue
            self.post_reports.append(report)
            if report.error is not None:
                logger.warning("Post step %s failed: %s", step.title, report.error)

    def results(self, index: int = -1):
        """Per-task results of a main step (last by default)."""
        return self.reports[index].results if self.reports else []
