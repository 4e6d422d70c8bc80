"""Precheck task constructors."""

from __future__ import annotations

import logging
import re
import time
from typing import Dict, List, Optional, Tuple

from fa_common.errors import (
    ERR_HOST_DATE_SKEW,
    ERR_HOST_NOT_FOUND,
    ERR_HOST_UNREACHABLE,
    ERR_INVALID_DATE_FORMAT,
    ERR_INVALID_TOPOLOGY,
    ERR_INVALID_TOPOLOGY_ADDRESS,
    ERR_KERNEL_TOO_OLD,
    ERR_PERMISSION_DENIED,
    ERR_PORT_IN_USE,
    ERR_UNRECOGNIZED_KERNEL_VERSION,
    TaskError,
)
from fa_controller.context import KEY_HOST_DATES, KEY_HTTP_SERVER_PORTS, KEY_MAX_DATE_SKEW
from fa_controller.factory import BuildDeps, BuildRequest, constructor
from fa_controller.steps import StepType
from fa_controller.task import Task, TaskContext
from fa_controller.tasks.common import subname
from fa_topology.models import (
    KIND_DINGODB,
    KIND_DINGOSTORE,
    ROLE_COORDINATOR,
    DeployConfig,
)

logger = logging.getLogger(__name__)

LEAST_KERNEL_VERSION = "3.15.0"
KERNEL_VERSION_PATTERN = re.compile(r"^(\d+\.\d+\.\d+)(?:[-_].+)?$")
MAX_DATE_SKEW_SECONDS = 15
HTTP_SERVER_CONTAINER_PREFIX = "fleetadm-precheck-nginx"
HTTP_SERVER_ENTRYPOINT = "/usr/bin/start_nginx"


def kernel_version_number(version: str) -> int:
    """``"4.19.91"`` -> ``4019091``, comparable as an integer."""
    number = 0
    for item in version.split("."):
        number = number * 1000 + (int(item) if item.isdigit() else 0)
    return number


def http_server_container(dc: DeployConfig) -> str:
    return f"{HTTP_SERVER_CONTAINER_PREFIX}-{dc.role}-{dc.id}"


# topology


def _check_topology(configs: List[DeployConfig], deps: BuildDeps):
    def step(ctx: TaskContext) -> None:
        missing = sorted({dc.host for dc in configs if dc.host not in deps.hosts})
        if missing:
            raise ERR_HOST_NOT_FOUND.f("hosts %s", ", ".join(missing), error_cls=TaskError)

        owners: Dict[Tuple[str, int], str] = {}
        for dc in configs:
            for port in dc.ports():
                address = (dc.listen_ip, port)
                owner = owners.setdefault(address, dc.name)
                if owner != dc.name:
                    raise ERR_INVALID_TOPOLOGY_ADDRESS.f(
                        "%s:%d used by %s and %s", address[0], port, owner, dc.name,
                        error_cls=TaskError,
                    )

        kind = configs[0].kind if configs else ""
        if kind in (KIND_DINGOSTORE, KIND_DINGODB) and not any(
            dc.role == ROLE_COORDINATOR for dc in configs
        ):
            raise ERR_INVALID_TOPOLOGY.f(
                "%s cluster has no coordinator", kind, error_cls=TaskError
            )
        ctx.emit(f"{len(configs)} service(s) checked")

    return step


@constructor(StepType.CHECK_TOPOLOGY)
def new_check_topology_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    configs = list(req.projection)
    task = Task("Check Topology <topology>", "-", subname=f"services={len(configs)}")
    task.add_step(_check_topology(configs, deps), "check_topology")
    return task


# ssh / permission / kernel


@constructor(StepType.CHECK_SSH_CONNECT)
def new_check_ssh_connect_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    dc = req.config
    spec = deps.hosts.resolve(dc.host)
    task = Task(
        "Check SSH Connect <ssh>",
        dc.host,
        subname=f"host={dc.host} address={spec.user}@{spec.hostname}:{spec.ssh_port}",
        spec=spec,
    )

    def connect(ctx: TaskContext) -> None:
        ctx.run("echo SUCCESS")

    task.add_step(connect, "connect")
    return task


def _check_permission(dc: DeployConfig):
    def step(ctx: TaskContext) -> None:
        result = ctx.run("id -u", sudo=True, check=False)
        if not result.ok:
            raise ERR_PERMISSION_DENIED.f(
                "%s cannot run privileged commands: %s", ctx.host, result.stderr.strip(),
                error_cls=TaskError,
            )
        for directory in (dc.log_dir, dc.data_dir):
            if not directory:
                continue
            result = ctx.run(f"mkdir -p {directory}", sudo=True, check=False)
            if not result.ok:
                raise ERR_PERMISSION_DENIED.f(
                    "create directory %s: %s", directory, result.stderr.strip(), error_cls=TaskError
                )
        result = ctx.engine("info", check=False)
        if not result.ok:
            raise ERR_PERMISSION_DENIED.f(
                "container engine is not usable: %s", result.stderr.strip(), error_cls=TaskError
            )

    return step


@constructor(StepType.CHECK_PERMISSION)
def new_check_permission_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    dc = req.config
    task = Task(
        "Check Permission <permission>",
        dc.host,
        subname=subname(dc.host, dc.role),
        spec=deps.hosts.resolve(dc.host),
    )
    task.add_step(_check_permission(dc), "check_permission")
    return task


def _check_kernel_version(least: str):
    def step(ctx: TaskContext) -> None:
        release = ctx.run("uname -r").output
        match = KERNEL_VERSION_PATTERN.match(release)
        if match is None:
            raise ERR_UNRECOGNIZED_KERNEL_VERSION.f("kernel version: %s", release, error_cls=TaskError)
        if kernel_version_number(match.group(1)) < kernel_version_number(least):
            raise ERR_KERNEL_TOO_OLD.f(
                "kernel version %s, require >= %s", release, least, error_cls=TaskError
            )
        ctx.emit(release)

    return step


@constructor(StepType.CHECK_KERNEL_VERSION)
def new_check_kernel_version_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    dc = req.config
    least = str(dc.get("kernel.least_version", LEAST_KERNEL_VERSION))
    task = Task(
        "Check Kernel Version <kernel>",
        dc.host,
        subname=f"{subname(dc.host, dc.role)} require=(>={least})",
        spec=deps.hosts.resolve(dc.host),
    )
    task.add_step(_check_kernel_version(least), "check_kernel_version")
    return task


# network


def _check_ports_free(ports: List[int]):
    def step(ctx: TaskContext) -> None:
        for port in ports:
            result = ctx.run(f"ss -H -tln '( sport = :{port} )'", sudo=True, check=False)
            if result.ok and result.output:
                raise ERR_PORT_IN_USE.f("%s:%d", ctx.host, port, error_cls=TaskError)

    return step


@constructor(StepType.CHECK_PORT_IN_USE)
def new_check_port_in_use_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    dc = req.config
    ports = dc.ports()
    if not ports:
        return None
    task = Task(
        "Check Port In Use <network>",
        dc.host,
        subname=f"{subname(dc.host, dc.role)} ports={{{','.join(map(str, ports))}}}",
        spec=deps.hosts.resolve(dc.host),
    )
    task.add_step(_check_ports_free(ports), "check_ports")
    return task


@constructor(StepType.START_HTTP_SERVER)
def new_start_http_server_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    dc = req.config
    ports = dc.ports()
    if not ports:
        return None
    listens = " ".join(f"listen {dc.listen_ip}:{port};" for port in ports)
    name = http_server_container(dc)
    task = Task(
        "Start Mock HTTP Server <network>",
        dc.host,
        subname=f"{subname(dc.host, dc.role)} ports={{{','.join(map(str, ports))}}}",
        spec=deps.hosts.resolve(dc.host),
    )

    def start(ctx: TaskContext) -> None:
        ctx.engine(f"rm -f {name}", check=False)
        ctx.engine(
            f"run -d --name {name} --network host --entrypoint {HTTP_SERVER_ENTRYPOINT} "
            f"{dc.container_image} '{listens}'"
        )
        ctx.shared.merge(KEY_HTTP_SERVER_PORTS, dc.id, [(dc.listen_ip, port) for port in ports])

    task.add_step(start, "start_http_server")
    return task


def _unique_ips(configs: List[DeployConfig]) -> List[str]:
    seen: List[str] = []
    for dc in configs:
        if dc.listen_ip not in seen:
            seen.append(dc.listen_ip)
    return seen


@constructor(StepType.CHECK_DESTINATION_REACHABLE)
def new_check_destination_reachable_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    dc = req.config
    targets = [ip for ip in _unique_ips(list(req.projection)) if ip != dc.listen_ip]
    if not targets:
        return None
    task = Task(
        "Check Destination Reachable <network>",
        dc.host,
        subname=f"{subname(dc.host, dc.role)} ping={{{','.join(targets)}}}",
        spec=deps.hosts.resolve(dc.host),
    )

    def ping(ctx: TaskContext) -> None:
        for ip in targets:
            result = ctx.run(f"ping -c 1 -W 1 {ip}", check=False)
            if not result.ok:
                raise ERR_HOST_UNREACHABLE.f("%s -> %s", ctx.host, ip, error_cls=TaskError)

    task.add_step(ping, "ping")
    return task


# date


@constructor(StepType.GET_HOST_DATE)
def new_get_host_date_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    dc = req.config
    task = Task(
        "Get Host Date <date>",
        dc.host,
        subname=f"host={dc.host} start={int(time.time())}",
        spec=deps.hosts.resolve(dc.host),
    )

    def read_date(ctx: TaskContext) -> None:
        out = ctx.run("date +%s").output
        if not out:
            raise ERR_INVALID_DATE_FORMAT.f("date is empty", error_cls=TaskError)
        try:
            seconds = int(out)
        except ValueError as exc:
            raise ERR_INVALID_DATE_FORMAT.f("date: %s", out, error_cls=TaskError) from exc
        ctx.shared.merge(KEY_HOST_DATES, dc.host, seconds)

    task.add_step(read_date, "read_date")
    return task


def check_date_skew(dates: Dict[str, int], max_skew: int) -> None:
    """Raise when the spread of collected host dates exceeds ``max_skew`` seconds."""
    if len(dates) < 2:
        return
    low_host = min(dates, key=dates.get)
    high_host = max(dates, key=dates.get)
    skew = dates[high_host] - dates[low_host]
    if skew > max_skew:
        raise ERR_HOST_DATE_SKEW.f(
            "difference=%d %s(%d) %s(%d)",
            skew, high_host, dates[high_host], low_host, dates[low_host],
            error_cls=TaskError,
        )


@constructor(StepType.CHECK_HOST_DATE)
def new_check_host_date_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    max_skew = int(deps.option(KEY_MAX_DATE_SKEW, MAX_DATE_SKEW_SECONDS))
    task = Task("Check Host Date <date>", "-", subname=f"max_skew={max_skew}s")

    def compare(ctx: TaskContext) -> None:
        check_date_skew(ctx.shared.snapshot(KEY_HOST_DATES), max_skew)

    task.add_step(compare, "check_date")
    return task


# cleanup


@constructor(StepType.CLEAN_PRECHECK_ENVIRONMENT)
def new_clean_precheck_environment_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    dc = req.config
    name = http_server_container(dc)
    task = Task(
        "Clean Precheck Environment",
        dc.host,
        subname=subname(dc.host, dc.role),
        spec=deps.hosts.resolve(dc.host),
    )

    def remove(ctx: TaskContext) -> None:
        ctx.engine(f"rm -f {name}", check=False)
        logger.debug("Removed precheck container %s on %s", name, ctx.host)

    task.add_step(remove, "remove_containers")
    return task
