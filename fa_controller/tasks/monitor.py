"""Monitoring stack task constructors (node exporter, prometheus, grafana, config sync)."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from fa_controller.context import (
    KEY_ALL_DEPLOY_CONFIGS,
    KEY_CLEAN_ITEMS,
    KEY_MONITOR_STATUS,
)
from fa_controller.factory import BuildDeps, BuildRequest, constructor
from fa_controller.status import STATUS_CLEANED, STATUS_LOST, MonitorStatus
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
from fa_controller.tasks.service import (
    CLEAN_ITEM_CONTAINER,
    CLEAN_ITEM_DATA,
    CLEAN_ITEM_LOG,
    clean_items,
)
from fa_topology.models import (
    ROLE_GRAFANA,
    ROLE_NODE_EXPORTER,
    ROLE_PROMETHEUS,
    DeployConfig,
    MonitorConfig,
)

logger = logging.getLogger(__name__)

PROMETHEUS_CONF = "/etc/prometheus/prometheus.yml"
PROMETHEUS_DATA = "/prometheus"
GRAFANA_DATA = "/var/lib/grafana"
GRAFANA_DATASOURCE = "/etc/grafana/provisioning/datasources/all.yml"
GRAFANA_DASHBOARDS = "/etc/grafana/provisioning/dashboards"
SYNC_TARGETS = "/dingofs/monitor/target.json"
MONITOR_START_WAIT = 2


def monitor_container_name(deps: BuildDeps, mc: MonitorConfig) -> str:
    return f"dingo-monitor-{mc.role}-{deps.service_id(mc.id)}"


def _record(deps: BuildDeps, mc: MonitorConfig, container_id: str) -> None:
    if deps.store is not None:
        deps.store.set_container_id(deps.cluster, deps.service_id(mc.id), container_id)


def _monitor_task(title: str, deps: BuildDeps, mc: MonitorConfig, container_id: str = "") -> Task:
    return Task(
        title,
        mc.host,
        subname=subname(mc.host, mc.role, container_id),
        spec=deps.hosts.resolve(mc.host),
    )


def _create_spec(mc: MonitorConfig) -> Dict[str, Any]:
    """Role specific ``create_args`` keywords."""
    port = mc.listen_port
    if mc.role == ROLE_NODE_EXPORTER:
        return {
            "volumes": {"/": "/host:ro,rslave"},
            "extra": ["--pid host"],
            "command": f"--path.rootfs=/host --web.listen-address=:{port}",
        }
    if mc.role == ROLE_PROMETHEUS:
        volumes = {mc.data_dir: PROMETHEUS_DATA} if mc.data_dir else {}
        retention = mc.get("retention.time", "15d")
        return {
            "volumes": volumes,
            "extra": ["--user root"],
            "command": (
                f"--config.file={PROMETHEUS_CONF} --storage.tsdb.path={PROMETHEUS_DATA} "
                f"--storage.tsdb.retention.time={retention} --web.listen-address=:{port}"
            ),
        }
    if mc.role == ROLE_GRAFANA:
        volumes = {mc.data_dir: GRAFANA_DATA} if mc.data_dir else {}
        return {
            "volumes": volumes,
            "extra": ["--user root"],
            "envs": [
                f"GF_SERVER_HTTP_PORT={port}",
                f"GF_SECURITY_ADMIN_USER={mc.get('username', 'admin')}",
                f"GF_SECURITY_ADMIN_PASSWORD={mc.get('password', 'admin')}",
            ],
        }
    return {"command": "sleep infinity"}


@constructor(StepType.PULL_MONITOR_IMAGE)
def new_pull_monitor_image_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    mc = req.config
    task = Task(
        "Pull Image",
        mc.host,
        subname=f"host={mc.host} image={mc.container_image}",
        spec=deps.hosts.resolve(mc.host),
    )
    task.add_step(pull_image(mc.container_image))
    return task


@constructor(StepType.CREATE_MONITOR_CONTAINER)
def new_create_monitor_container_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    mc = req.config
    if deps.container_id(mc.id):
        return None
    args = create_args(name=monitor_container_name(deps, mc), image=mc.container_image, **_create_spec(mc))
    task = _monitor_task("Create Container", deps, mc)
    if mc.data_dir:
        task.add_step(remote_step(f"mkdir -p {mc.data_dir}", "create_data_dir"))

    def create(ctx: TaskContext) -> None:
        container_id = ctx.engine(args).output.splitlines()[-1].strip()
        _record(deps, mc, container_id)
        ctx.emit(container_id)

    task.add_step(create, "create_container")
    return task


# config rendering


def service_targets(configs: List[DeployConfig]) -> Dict[str, List[str]]:
    """``role -> ["ip:port", ...]`` of every cluster service."""
    targets: Dict[str, List[str]] = {}
    for dc in configs:
        if dc.listen_port:
            targets.setdefault(dc.role, []).append(f"{dc.listen_ip}:{dc.listen_port}")
    return targets


def render_prometheus(mc: MonitorConfig, monitors: List[MonitorConfig], services: Dict[str, List[str]]) -> str:
    exporters = mc.targets or [
        f"{m.host}:{m.listen_port}" for m in monitors if m.role == ROLE_NODE_EXPORTER
    ]
    scrape = [{"job_name": "node_exporter", "static_configs": [{"targets": exporters}]}]
    for role, addrs in sorted(services.items()):
        scrape.append({"job_name": role, "static_configs": [{"targets": addrs}]})
    document = {
        "global": {
            "scrape_interval": mc.get("scrape_interval", "15s"),
            "evaluation_interval": mc.get("evaluation_interval", "15s"),
        },
        "scrape_configs": scrape,
    }
    return yaml.safe_dump(document, sort_keys=False)


def render_grafana_datasource(monitors: List[MonitorConfig]) -> str:
    prometheus = next((m for m in monitors if m.role == ROLE_PROMETHEUS), None)
    url = f"http://{prometheus.host}:{prometheus.listen_port}" if prometheus else "http://localhost:9090"
    document = {
        "apiVersion": 1,
        "datasources": [
            {"name": "Prometheus", "type": "prometheus", "access": "proxy", "url": url, "isDefault": True}
        ],
    }
    return yaml.safe_dump(document, sort_keys=False)


def _sync_file(task: Task, container_id: str, content: str, target: str, tmp_name: str) -> None:
    remote_tmp = f"/tmp/{tmp_name}"

    def upload(ctx: TaskContext) -> None:
        ctx.shell.write_file(content, remote_tmp)

    task.add_step(upload, "upload_config")
    task.add_step(engine_step(f"cp {remote_tmp} {container_id}:{target}", "copy_into_container"))
    task.add_step(remote_step(f"rm -f {remote_tmp}", "remove_tmp", check=False))


@constructor(StepType.SYNC_MONITOR_ORIGIN_CONFIG)
def new_sync_origin_config_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    mc = req.config
    container_id = deps.container_id(mc.id)
    if not container_id:
        return None
    configs = deps.option(KEY_ALL_DEPLOY_CONFIGS) or []
    content = json.dumps(
        {"cluster": deps.cluster, "targets": service_targets(configs)}, indent=2, sort_keys=True
    )
    task = _monitor_task("Sync Config", deps, mc, container_id)
    task.add_step(check_container_exists(container_id, mc.role))
    _sync_file(task, container_id, content, SYNC_TARGETS, f"{mc.id}.target.json")
    return task


@constructor(StepType.SYNC_MONITOR_ALT_CONFIG)
def new_sync_alt_config_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    mc = req.config
    container_id = deps.container_id(mc.id)
    if not container_id:
        return None
    monitors = list(req.projection)
    if mc.role == ROLE_PROMETHEUS:
        services = service_targets(deps.option(KEY_ALL_DEPLOY_CONFIGS) or [])
        content, target = render_prometheus(mc, monitors, services), PROMETHEUS_CONF
    elif mc.role == ROLE_GRAFANA:
        content, target = render_grafana_datasource(monitors), GRAFANA_DATASOURCE
    else:
        return None
    task = _monitor_task("Sync Config", deps, mc, container_id)
    task.add_step(check_container_exists(container_id, mc.role))
    _sync_file(task, container_id, content, target, f"{mc.id}.{Path(target).name}")
    return task


@constructor(StepType.SYNC_GRAFANA_DASHBOARD)
def new_sync_grafana_dashboard_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    mc = req.config
    container_id = deps.container_id(mc.id)
    dashboard_dir = mc.get("dashboard_dir", "")
    if not container_id or not dashboard_dir:
        return None
    dashboards = sorted(Path(dashboard_dir).expanduser().glob("*.json"))
    if not dashboards:
        logger.warning("No dashboards found in %s", dashboard_dir)
        return None
    task = _monitor_task("Sync Grafana Dashboard", deps, mc, container_id)
    task.add_step(check_container_exists(container_id, mc.role))
    for dashboard in dashboards:
        remote_tmp = f"/tmp/{mc.id}.{dashboard.name}"

        def upload(ctx: TaskContext, local: Path = dashboard, remote: str = remote_tmp) -> None:
            ctx.shell.put(str(local), remote)

        task.add_step(upload, f"upload_{dashboard.stem}")
        task.add_step(
            engine_step(f"cp {remote_tmp} {container_id}:{GRAFANA_DASHBOARDS}/{dashboard.name}", "copy_dashboard")
        )
    return task


# run state


@constructor(StepType.START_MONITOR_SERVICE)
def new_start_monitor_service_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    mc = req.config
    container_id = deps.container_id(mc.id)
    task = _monitor_task("Start Service", deps, mc, container_id)
    task.add_step(check_container_exists(container_id, mc.role))
    task.add_step(engine_step(f"start {container_id}", "start_container"))
    task.add_step(wait(MONITOR_START_WAIT))
    task.add_step(check_container_running(container_id, mc.role))
    return task


@constructor(StepType.STOP_MONITOR_SERVICE)
def new_stop_monitor_service_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    mc = req.config
    container_id = deps.container_id(mc.id)
    if not container_id:
        return None
    task = _monitor_task("Stop Service", deps, mc, container_id)
    task.add_step(check_container_exists(container_id, mc.role))
    task.add_step(engine_step(f"stop {container_id}", "stop_container"))
    return task


@constructor(StepType.RESTART_MONITOR_SERVICE)
def new_restart_monitor_service_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    mc = req.config
    container_id = deps.container_id(mc.id)
    if not container_id:
        return None
    task = _monitor_task("Restart Service", deps, mc, container_id)
    task.add_step(check_container_exists(container_id, mc.role))
    task.add_step(engine_step(f"restart {container_id}", "restart_container"))
    task.add_step(wait(MONITOR_START_WAIT))
    task.add_step(check_container_running(container_id, mc.role))
    return task


@constructor(StepType.CLEAN_MONITOR_SERVICE)
def new_clean_monitor_service_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    mc = req.config
    items = [item for item in clean_items(deps.option(KEY_CLEAN_ITEMS)) if item != CLEAN_ITEM_LOG]
    container_id = deps.container_id(mc.id)
    if not container_id:
        return None
    task = _monitor_task("Clean Monitor", deps, mc, container_id)
    if CLEAN_ITEM_DATA in items and mc.data_dir:
        task.add_step(remote_step(f"rm -rf {mc.data_dir}", "clean_data"))
    if CLEAN_ITEM_CONTAINER in items:
        def remove(ctx: TaskContext) -> None:
            ctx.engine(f"rm -f {container_id}")
            _record(deps, mc, "")

        task.add_step(remove, "clean_container")
    return task


# status


def _monitor_status(deps: BuildDeps, mc: MonitorConfig, container_id: str, status: str) -> MonitorStatus:
    return MonitorStatus(
        id=deps.service_id(mc.id),
        role=mc.role,
        host=mc.host,
        port=mc.listen_port,
        container_id=trim_container_id(container_id),
        status=status,
        data_dir=mc.data_dir,
    )


@constructor(StepType.INIT_MONITOR_STATUS)
def new_init_monitor_status_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    mc = req.config
    container_id = deps.container_id(mc.id)
    initial = _monitor_status(deps, mc, container_id, STATUS_LOST if container_id else STATUS_CLEANED)
    task = Task("Init Monitor Status", mc.host)

    def init(ctx: TaskContext) -> None:
        ctx.shared.merge(KEY_MONITOR_STATUS, mc.id, initial)

    task.add_step(init, "init_status")
    return task


@constructor(StepType.GET_MONITOR_STATUS)
def new_get_monitor_status_task(deps: BuildDeps, req: BuildRequest) -> Optional[Task]:
    mc = req.config
    container_id = deps.container_id(mc.id)
    if not container_id:
        return None
    task = _monitor_task("Get Monitor Status", deps, mc, container_id)

    def collect(ctx: TaskContext) -> None:
        status = status_of(ctx, container_id) or STATUS_LOST
        ctx.shared.merge(KEY_MONITOR_STATUS, mc.id, _monitor_status(deps, mc, container_id, status))

    task.add_step(collect, "get_status")
    return task
