"""Ad-hoc script execution across hosts, streamed back in host order."""

from __future__ import annotations

import logging
import secrets
import shlex
import tempfile
from pathlib import Path
from typing import Callable, List, Sequence

from fa_common.errors import ERR_PLAYBOOK_NOT_FOUND, ConfigurationError, FAError, TaskError
from fa_common.hosts import HostSpec
from fa_controller.streaming import OrderedFanout
from fa_controller.task import TaskResult, TaskRuntime

logger = logging.getLogger(__name__)

ANY_SCRIPT_NAME = "any.sh"
ANY_SCRIPT = '#!/usr/bin/env bash\n\n"$@"\n'
REMOTE_TMP_DIR = "/tmp"

Writer = Callable[[str], None]


def any_script_path(tmp_dir: str | None = None) -> Path:
    """Local wrapper script running its arguments as a command."""
    path = Path(tmp_dir or tempfile.gettempdir()) / ANY_SCRIPT_NAME
    if not path.exists():
        path.write_text(ANY_SCRIPT)
    return path


def resolve_script(args: Sequence[str], tmp_dir: str | None = None) -> tuple[Path, List[str]]:
    """Split ``SCRIPT [ARGS...]``; a lone argument is run as a command."""
    items = list(args)
    if len(items) == 1:
        items.insert(0, str(any_script_path(tmp_dir)))
    script = Path(items[0]).expanduser()
    if not script.is_file():
        raise ERR_PLAYBOOK_NOT_FOUND.f("%s: no such file", script, error_cls=ConfigurationError)
    return script, items[1:]


def remote_command(spec: HostSpec, target: str, args: Sequence[str]) -> str:
    parts = list(spec.envs) + ["bash", target] + list(args)
    return " ".join(part for part in parts if part)


def format_block(result: TaskResult) -> List[str]:
    """Lines printed for one host: header, separator, output."""
    lines = ["", f"{result.host} [{'SUCCESS' if result.ok else 'FAIL'}]", "---"]
    if result.output:
        lines.append(result.output.rstrip("\n"))
    if result.error is not None:
        lines.append(str(result.error))
    return lines


class AdhocPlaybook:
    """Copies one script to every host, runs it and streams per-host blocks."""

    def __init__(self, runtime: TaskRuntime, write: Writer) -> None:
        self.runtime = runtime
        self.write = write

    @staticmethod
    def _remove(shell, spec: HostSpec, target: str) -> None:
        try:
            shell.run(f"rm -rf {shlex.quote(target)}")
        except FAError as exc:
            logger.warning("Could not remove %s on %s: %s", target, spec.host, exc)

    def _job(self, spec: HostSpec, script: Path, args: Sequence[str]) -> Callable[[], str]:
        def run() -> str:
            target = f"{REMOTE_TMP_DIR}/{secrets.token_hex(4)}"
            shell = self.runtime.open_shell(spec)
            try:
                shell.put(str(script), target)
                try:
                    result = shell.run(remote_command(spec, target, args))
                finally:
                    self._remove(shell, spec, target)
            finally:
                shell.close()
            if not result.ok:
                raise TaskError(
                    f"`bash {script.name}` exited with {result.exited}",
                    host=spec.host,
                    output=result.stdout + result.stderr,
                    stderr=result.stderr,
                    context={"exit_code": result.exited},
                )
            return result.stdout

        return run

    def _sink(self, result: TaskResult) -> None:
        for line in format_block(result):
            self.write(line)

    def run(self, hosts: Sequence[HostSpec], script: Path, args: Sequence[str] = ()) -> List[TaskResult]:
        self.write(f"TOTAL: {len(hosts)} hosts")
        jobs = [(spec.host, self._job(spec, script, args)) for spec in hosts]
        results = OrderedFanout(sink=self._sink).run(jobs)
        failed = sum(1 for result in results if not result.ok)
        logger.info("Playbook %s finished on %d host(s), %d failed", script.name, len(results), failed)
        return results
