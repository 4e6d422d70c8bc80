"""Filesystem client task constructors."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from fa_common.errors import (
    ERR_KERNEL_MODULE_MISSING,
    ERR_MOUNT_FAILED,
    ERR_UMOUNT_FAILED,
    ConstructionError,
    TaskError,
)
from fa_controller.context import KEY_ALL_CLIENT_STATUS, KEY_MOUNT_OPTIONS, KEY_UMOUNT_FORCE
from fa_controller.factory import BuildDeps, BuildRequest, constructor
from fa_controller.status import STATUS_LOST, ClientStatus
from fa_controller.steps import StepType
from fa_controller.store import ClientRecord
from fa_controller.task import Task, TaskContext
from fa_controller.tasks.common import (
    check_container_running,
    create_args,
    pull_image,
    remote_step,
    status_of,
    trim_container_id,
    wait,
)
from fa_rpc.client import ProbeStub, Rpc, call_rpc
from fa_topology.models import ClientConfig

logger = logging.getLogger(__name__)

CLIENT_MOUNT_DIR = "/dingofs/client/mnt"
CLIENT_ENTRYPOINT = "/dingofs/client/sbin/mount.sh"
MOUNT_WAIT_SECONDS = 3


def client_container_name(cc: ClientConfig) -> str:
    return f"dingofs-client-{cc.id}"


def client_envs(cc: ClientConfig, options: Dict[str, str]) -> List[str]:
    envs = [
        f"FS_NAME={cc.fs_name}",
        f"MDS_ADDR={','.join(cc.mds_addrs)}",
        f"MOUNT_POINT={CLIENT_MOUNT_DIR}",
    ]
    envs += [f"{key}={value}" for key, value in sorted(options.items())]
    return envs


@constructor(StepType.CHECK_KERNEL_MODULE)
def new_check_kernel_module_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    cc = req.config
    task = Task(
        "Check Kernel Module",
        cc.host,
        subname=f"host={cc.host} module={cc.kernel_module}",
        spec=deps.hosts.resolve(cc.host),
    )

    def check(ctx: TaskContext) -> None:
        loaded = ctx.run(f"lsmod | grep -w {cc.kernel_module}", check=False)
        if loaded.ok:
            return
        probe = ctx.run(f"modprobe {cc.kernel_module}", sudo=True, check=False)
        if not probe.ok:
            raise ERR_KERNEL_MODULE_MISSING.f(
                "%s: %s", cc.kernel_module, probe.stderr.strip(), error_cls=TaskError
            )

    task.add_step(check, "check_kernel_module")
    return task


@constructor(StepType.CHECK_MDS_ADDRESS)
def new_check_mds_address_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    cc = req.config
    if not cc.mds_addrs:
        raise ERR_MOUNT_FAILED.f("client on %s has no mds_addrs", cc.host, error_cls=ConstructionError)
    rpc = Rpc(
        addrs=list(cc.mds_addrs),
        timeout=deps.settings.rpc_timeout,
        retry_times=deps.settings.rpc_retry_times,
        retry_delay=deps.settings.rpc_retry_delay,
        func_name="CheckMdsAddress",
    )
    # probed from the controller, so the task needs no SSH session
    task = Task("Check MDS Address", cc.host, subname=f"mds={','.join(cc.mds_addrs)}")

    def probe(ctx: TaskContext) -> None:
        peer = call_rpc(rpc, ProbeStub())
        ctx.emit(f"reached {peer}")

    task.add_step(probe, "probe_mds")
    return task


@constructor(StepType.MOUNT_FILESYSTEM)
def new_mount_filesystem_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    cc = req.config
    if deps.store is not None and deps.store.get_client(cc.id) is not None:
        raise ERR_MOUNT_FAILED.f(
            "%s is already mounted on %s", cc.mount_point, cc.host, error_cls=ConstructionError
        )
    options = dict(deps.option(KEY_MOUNT_OPTIONS) or {})
    volumes = {cc.mount_point: f"{CLIENT_MOUNT_DIR}:rshared"}
    if cc.log_dir:
        volumes[cc.log_dir] = "/dingofs/client/logs"
    if cc.data_dir:
        volumes[cc.data_dir] = "/dingofs/client/data"
    args = create_args(
        name=client_container_name(cc),
        image=cc.container_image,
        envs=client_envs(cc, options),
        volumes=volumes,
        restart="no",
        extra=[
            "--detach",
            "--device /dev/fuse",
            "--cap-add SYS_ADMIN",
            "--security-opt apparmor:unconfined",
            f"--entrypoint {CLIENT_ENTRYPOINT}",
        ],
        action="run",
    )

    task = Task(
        "Mount FileSystem",
        cc.host,
        subname=f"host={cc.host} mountPoint={cc.mount_point}",
        spec=deps.hosts.resolve(cc.host),
    )
    task.add_step(remote_step(f"mkdir -p {cc.mount_point}", "create_mount_point"))
    task.add_step(pull_image(cc.container_image))
    container: Dict[str, str] = {}

    def run_client(ctx: TaskContext) -> None:
        container_id = ctx.engine(args).output.splitlines()[-1].strip()
        container["id"] = container_id
        if deps.store is not None:
            deps.store.add_client(
                ClientRecord(
                    id=cc.id,
                    host=cc.host,
                    kind=cc.kind,
                    container_id=container_id,
                    mount_point=cc.mount_point,
                    fs_name=cc.fs_name,
                )
            )

    task.add_step(run_client, "run_client_container")
    task.add_step(wait(MOUNT_WAIT_SECONDS))

    def check_mounted(ctx: TaskContext) -> None:
        check_container_running(container["id"], "client")(ctx)
        result = ctx.run(f"grep -w '{cc.mount_point}' /proc/mounts", check=False)
        if not result.ok or not result.output:
            raise ERR_MOUNT_FAILED.f("%s not in /proc/mounts", cc.mount_point, error_cls=TaskError)

    task.add_step(check_mounted, "check_mount_point")
    return task


@constructor(StepType.UMOUNT_FILESYSTEM)
def new_umount_filesystem_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    record: ClientRecord = req.config
    force = bool(deps.option(KEY_UMOUNT_FORCE, False))
    task = Task(
        "Umount FileSystem",
        record.host,
        subname=f"host={record.host} mountPoint={record.mount_point}",
        spec=deps.hosts.resolve(record.host),
    )

    def umount(ctx: TaskContext) -> None:
        flag = "-l " if force else ""
        result = ctx.run(f"umount {flag}{record.mount_point}", sudo=True, check=False)
        if not result.ok and "not mounted" not in result.stderr:
            raise ERR_UMOUNT_FAILED.f(
                "%s: %s", record.mount_point, result.stderr.strip(), error_cls=TaskError
            )

    def remove(ctx: TaskContext) -> None:
        ctx.engine(f"rm -f {record.container_id}", check=False)
        if deps.store is not None:
            deps.store.remove_client(record.id)

    task.add_step(umount, "umount")
    task.add_step(remove, "remove_client_container")
    return task


def _client_status(record: ClientRecord, status: str) -> ClientStatus:
    return ClientStatus(
        id=record.id,
        host=record.host,
        kind=record.kind,
        container_id=trim_container_id(record.container_id),
        status=status,
        mount_point=record.mount_point,
        fs_name=record.fs_name,
    )


@constructor(StepType.INIT_CLIENT_STATUS)
def new_init_client_status_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    record: ClientRecord = req.config
    task = Task("Init Client Status", record.host)

    def init(ctx: TaskContext) -> None:
        ctx.shared.merge(KEY_ALL_CLIENT_STATUS, record.id, _client_status(record, STATUS_LOST))

    task.add_step(init, "init_status")
    return task


@constructor(StepType.GET_CLIENT_STATUS)
def new_get_client_status_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    record: ClientRecord = req.config
    if not record.container_id:
        return None
    task = Task(
        "Get Client Status",
        record.host,
        subname=f"host={record.host} containerId={trim_container_id(record.container_id)}",
        spec=deps.hosts.resolve(record.host),
    )

    def collect(ctx: TaskContext) -> None:
        status = status_of(ctx, record.container_id) or STATUS_LOST
        ctx.shared.merge(KEY_ALL_CLIENT_STATUS, record.id, _client_status(record, status))

    task.add_step(collect, "get_status")
    return task
