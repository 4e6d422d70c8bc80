"""Service lifecycle task constructors: image, container, config, run state, status."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fa_common.errors import (
    ERR_CREATE_META_TABLES_FAILED,
    ERR_STORE_UNHEALTHY,
    ERR_UNSUPPORTED_CLEAN_ITEM,
    ConstructionError,
    TaskError,
)
from fa_controller.context import (
    KEY_ALL_SERVICE_STATUS,
    KEY_CLEAN_BY_RECYCLE,
    KEY_CLEAN_ITEMS,
    KEY_SKIP_MDS_CLI,
    KEY_USE_LOCAL_IMAGE,
)
from fa_controller.factory import BuildDeps, BuildRequest, constructor
from fa_controller.status import STATUS_CLEANED, STATUS_LOST, ServiceStatus
from fa_controller.steps import StepType
from fa_controller.task import Task, TaskContext
from fa_controller.tasks.common import (
    check_container_exists,
    check_container_running,
    create_args,
    engine_step,
    pull_image,
    remote_step,
    status_of,
    subname,
    trim_container_id,
    wait,
)
from fa_topology.models import (
    ROLE_COORDINATOR,
    ROLE_DOCUMENT,
    ROLE_EXECUTOR,
    ROLE_INDEX,
    ROLE_MDS,
    ROLE_MDS_CLI,
    ROLE_STORE,
    DeployConfig,
)

logger = logging.getLogger(__name__)

CLEAN_ITEM_LOG = "log"
CLEAN_ITEM_DATA = "data"
CLEAN_ITEM_CONTAINER = "container"
CLEAN_ITEMS = (CLEAN_ITEM_LOG, CLEAN_ITEM_DATA, CLEAN_ITEM_CONTAINER)

STORE_ROLES = (ROLE_COORDINATOR, ROLE_STORE, ROLE_DOCUMENT, ROLE_INDEX)
MDS_ROLES = (ROLE_MDS, ROLE_MDS_CLI)

DEFAULT_START_WAIT = 2
STORE_HEALTH_SCRIPT = "scripts/check_store_health.sh"
META_TABLES_SCRIPT = "/dingofs/mds-client/sbin/create_mdsv2_tables.sh"
META_TABLES_CLIENT = "/dingofs/mds-client/sbin/dingo-mds-client"
ULIMITS = ("nofile=1048576:1048576", "core=-1")


def container_name(deps: BuildDeps, dc: DeployConfig) -> str:
    return f"dingo-{dc.role}-{deps.service_id(dc.id)}"


def service_envs(dc: DeployConfig) -> List[str]:
    """Environment passed to a service container, derived from its role."""
    coordinators = str(dc.get("coordinator_addr", ""))
    hostname = str(dc.get("hostname", dc.listen_ip))
    instance_id = int(dc.get("instance_start_id", 1001)) + dc.host_sequence * 100 + dc.instances_sequence
    envs: List[str] = []
    if dc.role in STORE_ROLES:
        envs += [
            f"FLAGS_role={dc.role}",
            "FLAGS_clean_log=1",
            f"SERVER_LISTEN_HOST={dc.get('listen.server_host', '0.0.0.0')}",
            f"RAFT_LISTEN_HOST={dc.get('listen.raft_host', '0.0.0.0')}",
            f"SERVER_HOST={hostname}",
            f"RAFT_HOST={hostname}",
            f"DEFAULT_REPLICA_NUM={int(dc.get('replica_num', 3))}",
            f"SERVER_START_PORT={dc.listen_port}",
            f"RAFT_START_PORT={dc.raft_port}",
            f"INSTANCE_START_ID={instance_id}",
            "ENABLE_LITE=false",
        ]
        if coordinators:
            envs.append(f"COORDINATOR_ADDR={coordinators}")
    elif dc.role in MDS_ROLES:
        envs += [
            f"FLAGS_role={ROLE_MDS}",
            "FLAGS_clean_log=0",
            f"SERVER_LISTEN_HOST={dc.get('listen.server_host', '0.0.0.0')}",
            f"SERVER_HOST={hostname}",
            f"SERVER_START_PORT={dc.listen_port}",
            f"COORDINATOR_ADDR={coordinators}",
            f"MDS_INSTANCE_START_ID={instance_id}",
        ]
    elif dc.role == ROLE_EXECUTOR:
        envs += [
            f"DINGO_ROLE={dc.role}",
            f"DINGO_HOSTNAME={hostname}",
            f"DINGO_COORDINATORS={coordinators}",
        ]
    extra = str(dc.get("env", "")).split()
    return envs + extra


def container_command(dc: DeployConfig) -> str:
    if dc.role == ROLE_EXECUTOR:
        return ""
    if dc.role in STORE_ROLES:
        return "deploystart"
    return ""


def _record_container(deps: BuildDeps, dc: DeployConfig, container_id: str) -> None:
    if deps.store is None:
        return
    deps.store.set_container_id(deps.cluster, deps.service_id(dc.id), container_id)


def _service_task(title: str, deps: BuildDeps, dc: DeployConfig, container_id: str = "") -> Task:
    return Task(
        title,
        dc.host,
        subname=subname(dc.host, dc.role, container_id),
        spec=deps.hosts.resolve(dc.host),
    )


# image / container


@constructor(StepType.PULL_IMAGE)
def new_pull_image_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    dc = req.config
    if deps.option(KEY_USE_LOCAL_IMAGE, False):
        return None
    task = Task(
        "Pull Image",
        dc.host,
        subname=f"host={dc.host} image={dc.container_image}",
        spec=deps.hosts.resolve(dc.host),
    )
    task.add_step(pull_image(dc.container_image))
    return task


@constructor(StepType.CREATE_CONTAINER)
def new_create_container_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    dc = req.config
    if deps.container_id(dc.id):
        logger.debug("Container of %s@%s already created", dc.role, dc.host)
        return None

    task = _service_task("Create Container", deps, dc)
    directories = [d for d in (dc.log_dir, dc.data_dir) if d]
    if directories:
        task.add_step(remote_step(f"mkdir -p {' '.join(directories)}", "create_directories"))

    args = create_args(
        name=container_name(deps, dc),
        image=dc.container_image,
        envs=service_envs(dc),
        volumes=dc.volumes(),
        command=container_command(dc),
        extra=[f"--ulimit {limit}" for limit in ULIMITS] + [f"--hostname {dc.listen_ip}"],
    )

    def create(ctx: TaskContext) -> None:
        container_id = ctx.engine(args).output.splitlines()[-1].strip()
        _record_container(deps, dc, container_id)
        ctx.emit(container_id)

    task.add_step(create, "create_container")
    return task


def render_config(dc: DeployConfig) -> str:
    """``gflags.*`` entries as ``-key=value`` lines, sorted by key."""
    lines = []
    for key in sorted(dc.config):
        if key.startswith("gflags."):
            lines.append(f"-{key[len('gflags.'):]}={dc.config[key]}")
    return "\n".join(lines) + ("\n" if lines else "")


@constructor(StepType.SYNC_CONFIG)
def new_sync_config_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    dc = req.config
    container_id = deps.container_id(dc.id)
    if not container_id:
        return None
    content = render_config(dc)
    if not content:
        return None
    remote_tmp = f"/tmp/{deps.service_id(dc.id)}.gflags"
    target = f"{dc.prefix}/conf/{dc.role}.gflags"
    task = _service_task("Sync Config", deps, dc, container_id)
    task.add_step(check_container_exists(container_id, dc.role))

    def upload(ctx: TaskContext) -> None:
        ctx.shell.write_file(content, remote_tmp)

    task.add_step(upload, "upload_config")
    task.add_step(engine_step(f"cp {remote_tmp} {container_id}:{target}", "copy_into_container"))
    task.add_step(remote_step(f"rm -f {remote_tmp}", "remove_tmp", check=False))
    return task


# run state


@constructor(
    StepType.START_SERVICE,
    StepType.START_COORDINATOR,
    StepType.START_STORE,
    StepType.START_MDS,
    StepType.START_MDS_CLI_CONTAINER,
    StepType.START_EXECUTOR,
    StepType.START_DOCUMENT,
    StepType.START_INDEX,
)
def new_start_service_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    dc = req.config
    if dc.role == ROLE_MDS_CLI and deps.option(KEY_SKIP_MDS_CLI, False):
        return None
    # a missing container is reported when the task runs, not when it is built
    container_id = deps.container_id(dc.id)
    task = _service_task("Start Service", deps, dc, container_id)
    task.add_step(check_container_exists(container_id, dc.role))
    task.add_step(engine_step(f"start {container_id}", "start_container"))
    task.add_step(wait(float(dc.get("start_wait", DEFAULT_START_WAIT))))
    task.add_step(check_container_running(container_id, dc.role))
    return task


@constructor(StepType.STOP_SERVICE)
def new_stop_service_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    dc = req.config
    container_id = deps.container_id(dc.id)
    if not container_id:
        return None
    task = _service_task("Stop Service", deps, dc, container_id)
    task.add_step(check_container_exists(container_id, dc.role))
    task.add_step(engine_step(f"stop {container_id}", "stop_container"))
    return task


@constructor(StepType.RESTART_SERVICE)
def new_restart_service_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    dc = req.config
    container_id = deps.container_id(dc.id)
    if not container_id:
        return None
    task = _service_task("Restart Service", deps, dc, container_id)
    task.add_step(check_container_exists(container_id, dc.role))
    task.add_step(engine_step(f"restart {container_id}", "restart_container"))
    task.add_step(wait(float(dc.get("start_wait", DEFAULT_START_WAIT))))
    task.add_step(check_container_running(container_id, dc.role))
    return task


def clean_items(value: Any) -> List[str]:
    """Validate requested clean items, defaulting to every item."""
    items = list(value) if value else list(CLEAN_ITEMS)
    for item in items:
        if item not in CLEAN_ITEMS:
            raise ERR_UNSUPPORTED_CLEAN_ITEM.f(
                "%s (supported: %s)", item, ",".join(CLEAN_ITEMS), error_cls=ConstructionError
            )
    return items


@constructor(StepType.CLEAN_SERVICE)
def new_clean_service_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    dc = req.config
    items = clean_items(deps.option(KEY_CLEAN_ITEMS))
    recycle = bool(deps.option(KEY_CLEAN_BY_RECYCLE, False))
    container_id = deps.container_id(dc.id)
    if not container_id:
        return None

    task = _service_task("Clean Service", deps, dc, container_id)
    task.subname = f"{task.subname} clean={','.join(items)}"
    if CLEAN_ITEM_LOG in items and dc.log_dir:
        task.add_step(remote_step(f"rm -rf {dc.log_dir}", "clean_log"))
    if CLEAN_ITEM_DATA in items and dc.data_dir:
        if recycle:
            task.add_step(remote_step(f"rm -rf {dc.data_dir}/*", "recycle_data"))
        else:
            task.add_step(remote_step(f"rm -rf {dc.data_dir}", "clean_data"))
    if CLEAN_ITEM_CONTAINER in items:
        def remove(ctx: TaskContext) -> None:
            ctx.engine(f"rm -f {container_id}")
            _record_container(deps, dc, "")

        task.add_step(remove, "clean_container")
    return task


# cluster bootstrap


def _exec_in_container(container_id: str, command: str, code, name: str):
    def step(ctx: TaskContext) -> None:
        result = ctx.engine(f"exec {container_id} {command}", check=False)
        ctx.emit(result.output)
        if not result.ok:
            raise code.f(
                "%s: %s", command, result.stderr.strip() or result.output,
                error_cls=TaskError,
            )

    step.__name__ = name
    return step


@constructor(StepType.CHECK_STORE_HEALTH)
def new_check_store_health_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    dc = req.config
    container_id = deps.container_id(dc.id)
    task = _service_task("Check Store Health", deps, dc, container_id)
    task.add_step(check_container_exists(container_id, dc.role))
    task.add_step(wait(float(dc.get("health_wait", DEFAULT_START_WAIT))))
    task.add_step(
        _exec_in_container(
            container_id,
            f"bash {dc.prefix}/{STORE_HEALTH_SCRIPT}",
            ERR_STORE_UNHEALTHY,
            "check_store_health",
        )
    )
    return task


@constructor(StepType.CREATE_META_TABLES)
def new_create_meta_tables_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    dc = req.config
    container_id = deps.container_id(dc.id)
    task = _service_task("Create Meta Tables", deps, dc, container_id)
    task.add_step(check_container_exists(container_id, dc.role))
    task.add_step(
        _exec_in_container(
            container_id,
            f"bash {META_TABLES_SCRIPT} {META_TABLES_CLIENT}",
            ERR_CREATE_META_TABLES_FAILED,
            "create_meta_tables",
        )
    )
    return task


# status


def _format_ports(dc: DeployConfig) -> str:
    return ",".join(f"{dc.listen_ip}:{port}" for port in dc.ports())


def base_status(deps: BuildDeps, dc: DeployConfig, container_id: str, status: str) -> ServiceStatus:
    return ServiceStatus(
        id=deps.service_id(dc.id),
        parent_id=dc.parent_id,
        role=dc.role,
        host=dc.host,
        instances=f"1/{dc.instances}",
        container_id=trim_container_id(container_id),
        status=status,
        ports=_format_ports(dc),
        log_dir=dc.log_dir,
        data_dir=dc.data_dir,
        host_sequence=dc.host_sequence,
        instances_sequence=dc.instances_sequence,
    )


@constructor(StepType.INIT_SERVICE_STATUS)
def new_init_service_status_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    dc = req.config
    container_id = deps.container_id(dc.id)
    initial = base_status(deps, dc, container_id, STATUS_LOST if container_id else STATUS_CLEANED)
    task = Task("Init Service Status", dc.host, subname=subname(dc.host, dc.role, container_id))

    def init(ctx: TaskContext) -> None:
        ctx.shared.merge(KEY_ALL_SERVICE_STATUS, dc.id, initial)

    task.add_step(init, "init_status")
    return task


@constructor(StepType.GET_SERVICE_STATUS)
def new_get_service_status_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    dc = req.config
    container_id = deps.container_id(dc.id)
    if not container_id:
        return None
    task = _service_task("Get Service Status", deps, dc, container_id)

    def collect(ctx: TaskContext) -> None:
        status = status_of(ctx, container_id) or STATUS_LOST
        ctx.shared.merge(
            KEY_ALL_SERVICE_STATUS, dc.id, base_status(deps, dc, container_id, status)
        )

    task.add_step(collect, "get_status")
    return task


def collected_statuses(shared) -> List[ServiceStatus]:
    """Status rows gathered by the status steps, in no particular order."""
    rows: Dict[str, ServiceStatus] = shared.snapshot(KEY_ALL_SERVICE_STATUS)
    return list(rows.values())
