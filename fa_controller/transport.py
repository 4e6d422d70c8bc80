"""SSH transport used by tasks: command execution, file copy, attach."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import tempfile
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from fabric import Connection
from invoke.exceptions import CommandTimedOut, UnexpectedExit

from fa_common.errors import (
    ERR_CONNECT_REMOTE_HOST_FAILED,
    ERR_COPY_FILE_FAILED,
    ERR_EXECUTE_COMMAND_TIMED_OUT,
    ERR_HOST_NOT_FOUND,
    ERR_NO_HOSTS_MATCHED,
    ConfigurationError,
    ConstructionError,
    RemoteExecutionError,
)
from fa_common.hosts import HostSpec
from fa_common.settings import FleetSettings

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of one remote command; non-zero exits are not raised."""

    stdout: str
    stderr: str
    exited: int

    @property
    def ok(self) -> bool:
        return self.exited == 0

    @property
    def output(self) -> str:
        return self.stdout.strip()


class RemoteShell:
    """One fabric connection bound to one host."""

    def __init__(self, spec: HostSpec, settings: FleetSettings | None = None) -> None:
        self.spec = spec
        self.settings = settings or FleetSettings()
        self._conn: Optional[Connection] = None

    @property
    def host(self) -> str:
        return self.spec.host

    def _get_connection(self) -> Connection:
        if self._conn is None:
            connect_kwargs: Dict[str, object] = {"banner_timeout": 30}
            if self.spec.key_path:
                connect_kwargs["key_filename"] = self.spec.key_path
            self._conn = Connection(
                host=self.spec.hostname,
                user=self.spec.user,
                port=self.spec.ssh_port,
                forward_agent=self.spec.forward_agent,
                connect_timeout=self.settings.ssh_timeout,
                connect_kwargs=connect_kwargs,
            )
        return self._conn

    def template(self, command: str, *, sudo: bool = False) -> str:
        """Apply the sudo alias and the host's become prefix."""
        if sudo and self.settings.sudo():
            command = f"{self.settings.sudo()} {command}"
        become = self.spec.become_prefix()
        if become:
            command = f"{become} {command}"
        return command

    def run(
        self,
        command: str,
        *,
        sudo: bool = False,
        timeout: Optional[int] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> CommandResult:
        full_cmd = self.template(command, sudo=sudo)
        logger.debug("[%s] run: %s", self.host, full_cmd)
        try:
            result = self._get_connection().run(
                full_cmd,
                hide=True,
                warn=True,
                in_stream=False,
                timeout=timeout or self.settings.command_timeout,
                env=env or {},
            )
        except CommandTimedOut as exc:
            raise ERR_EXECUTE_COMMAND_TIMED_OUT.error(
                f"{self.host}: {command}",
                error_cls=RemoteExecutionError,
                context={"host": self.host, "timeout": exc.timeout},
                cause=exc,
            ) from exc
        except UnexpectedExit as exc:
            return CommandResult(exc.result.stdout, exc.result.stderr, exc.result.exited)
        except Exception as exc:
            raise ERR_CONNECT_REMOTE_HOST_FAILED.error(
                f"{self.spec.user}@{self.spec.hostname}:{self.spec.ssh_port}: {exc}",
                error_cls=RemoteExecutionError,
                context={"host": self.host},
                cause=exc,
            ) from exc
        return CommandResult(result.stdout, result.stderr, result.exited)

    def put(self, local: str, remote: str) -> None:
        try:
            self._get_connection().put(local, remote)
        except Exception as exc:
            raise ERR_COPY_FILE_FAILED.error(
                f"{local} -> {self.host}:{remote}: {exc}",
                error_cls=RemoteExecutionError,
                context={"host": self.host},
                cause=exc,
            ) from exc

    def write_file(self, content: str, remote: str) -> None:
        """Upload ``content`` as a remote file."""
        with tempfile.NamedTemporaryFile("w", delete=False) as handle:
            handle.write(content)
            local_tmp = handle.name
        try:
            self.put(local_tmp, remote)
        finally:
            os.unlink(local_tmp)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None


ShellFactory = Callable[[HostSpec], RemoteShell]


def fabric_shell_factory(settings: FleetSettings) -> ShellFactory:
    def factory(spec: HostSpec) -> RemoteShell:
        return RemoteShell(spec, settings)

    return factory


class HostDirectory:
    """Host name -> SSH parameters."""

    def __init__(self, specs: Iterable[HostSpec] = ()) -> None:
        self._specs: Dict[str, HostSpec] = {spec.host: spec for spec in specs}

    def __contains__(self, host: str) -> bool:
        return host in self._specs

    def __len__(self) -> int:
        return len(self._specs)

    def resolve(self, host: str) -> HostSpec:
        spec = self._specs.get(host)
        if spec is None:
            raise ERR_HOST_NOT_FOUND.f("host: %s", host, error_cls=ConstructionError)
        return spec

    def all(self) -> List[HostSpec]:
        return list(self._specs.values())

    def select(self, labels: Iterable[str] = ()) -> List[HostSpec]:
        """Hosts carrying every label, in file order."""
        wanted = [label for label in labels if label]
        selected = [spec for spec in self._specs.values() if spec.has_labels(wanted)]
        if not selected:
            raise ERR_NO_HOSTS_MATCHED.f(
                "labels: %s", ",".join(wanted) or "-", error_cls=ConfigurationError
            )
        return selected

    def hostnames(self) -> Dict[str, str]:
        return {name: spec.hostname for name, spec in self._specs.items()}


def ssh_command(
    spec: HostSpec,
    command: str = "",
    *,
    tty: bool = False,
    settings: FleetSettings | None = None,
) -> List[str]:
    """Argument vector for the system ssh client."""
    settings = settings or FleetSettings()
    argv = ["ssh"]
    if tty:
        argv.append("-tt")
    argv += [
        f"{spec.user}@{spec.hostname}",
        "-p",
        str(spec.ssh_port),
        "-o",
        "StrictHostKeyChecking=no",
        "-o",
        f"ConnectTimeout={settings.ssh_timeout}",
    ]
    if spec.forward_agent:
        argv.append("-A")
    elif spec.key_path:
        argv += ["-i", spec.key_path]
    if command:
        become = spec.become_prefix()
        argv.append(f"{become} {command}" if become else command)
    return argv


def attach(
    spec: HostSpec,
    command: str = "",
    settings: FleetSettings | None = None,
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> int:
    """Open an interactive session on the host, or run ``command`` in a tty."""
    argv = ssh_command(spec, command, tty=True, settings=settings)
    logger.debug("attach: %s", shlex.join(argv))
    return runner(argv, check=False).returncode


def container_exec_command(settings: FleetSettings, container_id: str, shell: str = "/bin/bash") -> str:
    """Command attaching to a shell inside a container."""
    return settings.engine_command(f"exec -it {container_id} {shell}")
