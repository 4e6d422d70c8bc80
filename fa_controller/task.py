"""Host-bound units of work and the context they run in."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from fa_common.errors import (
    ERR_EXECUTE_COMMAND_FAILED,
    ErrorCode,
    FAError,
    TaskError,
)
from fa_common.hosts import HostSpec
from fa_common.settings import FleetSettings
from fa_controller.context import SharedContext
from fa_controller.transport import CommandResult, RemoteShell, ShellFactory, fabric_shell_factory
from fa_controller.ui_interfaces import NoOpProgressHandle, ProgressHandle

logger = logging.getLogger(__name__)

StepFn = Callable[["TaskContext"], None]


@dataclass
class TaskRuntime:
    """Collaborators shared by every task of one playbook run."""

    shared: SharedContext
    settings: FleetSettings = field(default_factory=FleetSettings)
    shell_factory: Optional[ShellFactory] = None

    def open_shell(self, spec: HostSpec) -> RemoteShell:
        factory = self.shell_factory or fabric_shell_factory(self.settings)
        return factory(spec)


class TaskContext:
    """Per-execution state handed to each sub-step of a task."""

    def __init__(
        self,
        task: "Task",
        runtime: TaskRuntime,
        progress: ProgressHandle | None = None,
    ) -> None:
        self.task = task
        self.runtime = runtime
        self.progress = progress or NoOpProgressHandle()
        self._shell: Optional[RemoteShell] = None
        self._output: List[str] = []

    @property
    def host(self) -> str:
        return self.task.host

    @property
    def shared(self) -> SharedContext:
        return self.runtime.shared

    @property
    def settings(self) -> FleetSettings:
        return self.runtime.settings

    @property
    def shell(self) -> RemoteShell:
        if self._shell is None:
            if self.task.spec is None:
                raise TaskError(f"task {self.task.name} has no host to connect to", host=self.host)
            self._shell = self.runtime.open_shell(self.task.spec)
        return self._shell

    def run(
        self,
        command: str,
        *,
        sudo: bool = False,
        check: bool = True,
        code: ErrorCode = ERR_EXECUTE_COMMAND_FAILED,
        timeout: Optional[int] = None,
    ) -> CommandResult:
        """Run a remote command; a non-zero exit raises ``TaskError`` when ``check``."""
        result = self.shell.run(command, sudo=sudo, timeout=timeout)
        if check and not result.ok:
            detail = result.stderr.strip() or result.stdout.strip()
            message = f"{code.description}: `{command}` exited with {result.exited}"
            raise TaskError(
                f"{message}: {detail}" if detail else message,
                code=code,
                host=self.host,
                output=result.stdout,
                stderr=result.stderr,
                context={"exit_code": result.exited},
            )
        return result

    def engine(self, args: str, **kwargs) -> CommandResult:
        """Run a container engine subcommand with the sudo alias."""
        return self.run(self.settings.engine_command(args), **kwargs)

    def emit(self, text: str) -> None:
        if text:
            self._output.append(text)

    @property
    def output(self) -> str:
        return "\n".join(self._output)

    def close(self) -> None:
        if self._shell is not None:
            self._shell.close()
            self._shell = None


class Task:
    """One host-scoped operation built for a step entry.

    Sub-steps run in order; the first failure stops the task.
    """

    def __init__(
        self,
        name: str,
        host: str,
        *,
        subname: str = "",
        spec: HostSpec | None = None,
    ) -> None:
        self.name = name
        self.subname = subname
        self.host = host
        self.spec = spec
        self.tid = ""
        self.ptid = ""
        self._steps: List[Tuple[str, StepFn]] = []
        self._sealed = False

    def add_step(self, fn: StepFn, name: str = "") -> "Task":
        if self._sealed:
            raise RuntimeError(f"task {self.name} is sealed")
        self._steps.append((name or getattr(fn, "__name__", "step"), fn))
        return self

    def stamp(self, tid: str, ptid: str) -> None:
        if self._sealed:
            raise RuntimeError(f"task {self.name} is sealed")
        self.tid = tid
        self.ptid = ptid

    def seal(self) -> "Task":
        self._sealed = True
        return self

    @property
    def steps(self) -> List[str]:
        return [name for name, _ in self._steps]

    def __len__(self) -> int:
        return len(self._steps)

    def run(self, runtime: TaskRuntime, progress: ProgressHandle | None = None) -> str:
        """Execute every sub-step and return the collected output."""
        ctx = TaskContext(self, runtime, progress)
        try:
            for done, (step_name, fn) in enumerate(self._steps, start=1):
                logger.debug("[%s] %s: %s", self.host, self.name, step_name)
                try:
                    fn(ctx)
                except TaskError as exc:
                    if exc.host is None:
                        exc.host = self.host
                    if not exc.output:
                        exc.output = ctx.output
                    raise
                except FAError as exc:
                    raise TaskError(
                        str(exc), code=exc.code, host=self.host, output=ctx.output,
                        context=exc.context, cause=exc,
                    ) from exc
                except Exception as exc:
                    raise TaskError(
                        f"{self.name}: {exc}", host=self.host, output=ctx.output, cause=exc
                    ) from exc
                ctx.progress.update(done)
            return ctx.output
        finally:
            ctx.close()

    def __repr__(self) -> str:
        return f"Task({self.name!r}, host={self.host!r}, tid={self.tid!r})"


@dataclass
class TaskResult:
    index: int
    host: str
    ok: bool
    error: Optional[FAError] = None
    output: str = ""
    tid: str = ""
    ptid: str = ""
    name: str = ""
    skipped: bool = False
