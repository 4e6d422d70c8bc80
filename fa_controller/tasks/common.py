"""Container helpers shared by service, client and monitor tasks."""

from __future__ import annotations

import time
from typing import Callable, Dict, Iterable, List

from fa_common.errors import (
    ERR_CONTAINER_IS_ABNORMAL,
    ERR_CONTAINER_NOT_FOUND,
    TaskError,
)
from fa_controller.task import StepFn, TaskContext

CONTAINER_ID_DISPLAY = 12


def trim_container_id(container_id: str) -> str:
    return container_id[:CONTAINER_ID_DISPLAY] if container_id else "-"


def subname(host: str, role: str, container_id: str = "") -> str:
    parts = [f"host={host}", f"role={role}"]
    if container_id:
        parts.append(f"containerId={trim_container_id(container_id)}")
    return " ".join(parts)


def pull_image(image: str) -> StepFn:
    def step(ctx: TaskContext) -> None:
        ctx.engine(f"pull {image}")

    step.__name__ = "pull_image"
    return step


def check_container_exists(container_id: str, role: str = "") -> StepFn:
    def step(ctx: TaskContext) -> None:
        found = bool(container_id) and bool(
            ctx.engine(f'ps --all --filter id={container_id} --format "{{{{.ID}}}}"').output
        )
        if not found:
            raise TaskError(
                f"{ERR_CONTAINER_NOT_FOUND.description}: "
                f"{subname(ctx.host, role, container_id)}",
                code=ERR_CONTAINER_NOT_FOUND,
            )

    step.__name__ = "check_container_exists"
    return step


def wait(seconds: float, sleep: Callable[[float], None] = time.sleep) -> StepFn:
    def step(ctx: TaskContext) -> None:
        if seconds > 0:
            sleep(seconds)

    step.__name__ = "wait"
    return step


def check_container_running(container_id: str, role: str = "") -> StepFn:
    def step(ctx: TaskContext) -> None:
        result = ctx.engine(f"inspect --format '{{{{.State.Status}}}}' {container_id}", check=False)
        state = result.output.strip("'\"")
        if not result.ok or state != "running":
            raise TaskError(
                f"{ERR_CONTAINER_IS_ABNORMAL.description}: {subname(ctx.host, role, container_id)} "
                f"state={state or 'unknown'}",
                code=ERR_CONTAINER_IS_ABNORMAL,
                output=result.stdout,
                stderr=result.stderr,
            )

    step.__name__ = "check_container_running"
    return step


def engine_step(args: str, name: str, *, check: bool = True) -> StepFn:
    """A step running one container engine subcommand."""

    def step(ctx: TaskContext) -> None:
        ctx.engine(args, check=check)

    step.__name__ = name
    return step


def remote_step(command: str, name: str, *, sudo: bool = True, check: bool = True) -> StepFn:
    def step(ctx: TaskContext) -> None:
        ctx.run(command, sudo=sudo, check=check)

    step.__name__ = name
    return step


def create_args(
    *,
    name: str,
    image: str,
    envs: Iterable[str] = (),
    volumes: Dict[str, str] | None = None,
    restart: str = "always",
    network: str = "host",
    command: str = "",
    extra: Iterable[str] = (),
    action: str = "create",
) -> str:
    """Arguments for ``<engine> <action>``, ``create`` by default."""
    parts: List[str] = [action, f"--name {name}", f"--network {network}", f"--restart {restart}"]
    parts += [f"--env {env}" for env in envs]
    parts += [f"--volume {src}:{dst}" for src, dst in (volumes or {}).items()]
    parts += list(extra)
    parts.append(image)
    if command:
        parts.append(command)
    return " ".join(parts)


def status_of(ctx: TaskContext, container_id: str) -> str:
    """Human status of a container as shown by ``ps``, or ``""``."""
    result = ctx.engine(
        f'ps --all --filter id={container_id} --format "{{{{.Status}}}}"', check=False
    )
    return result.output if result.ok else ""
