"""Public API surface for fa_controller."""

from fa_controller.context import SharedContext, process_context
from fa_controller.executor import StepReport, TaskExecutor
from fa_controller.factory import BuildDeps, BuildRequest, TaskFactory, constructor
from fa_controller.playbook import Playbook
from fa_controller.plans.adhoc import AdhocPlaybook, resolve_script
from fa_controller.plans.base import PlanContext, select_services, service_stats
from fa_controller.plans.client import (
    build_client_status_playbook,
    build_mount_playbook,
    build_umount_playbook,
)
from fa_controller.plans.deploy import DeployOptions, build_deploy_playbook, deploy_title
from fa_controller.plans.monitor import (
    build_monitor_clean_playbook,
    build_monitor_deploy_playbook,
    build_monitor_restart_playbook,
    build_monitor_start_playbook,
    build_monitor_status_playbook,
    build_monitor_stop_playbook,
)
from fa_controller.plans.precheck import build_precheck_playbook
from fa_controller.plans.service import (
    build_clean_playbook,
    build_restart_playbook,
    build_start_playbook,
    build_status_playbook,
    build_stop_playbook,
    build_upgrade_playbook,
    status_configs,
)
from fa_controller.projection import ConfigKind, ConfigProjection
from fa_controller.status import ServiceStatus, format_client_rows, format_monitor_rows, format_rows
from fa_controller.steps import ExecOptions, Step, StepType
from fa_controller.store import AuditEntry, AuditLog, ClientRecord, ClusterRecord, ClusterStore
from fa_controller.streaming import OrderedFanout
from fa_controller.task import Task, TaskContext, TaskResult, TaskRuntime
from fa_controller.transport import HostDirectory, RemoteShell

__all__ = [
    "AdhocPlaybook",
    "AuditEntry",
    "AuditLog",
    "BuildDeps",
    "BuildRequest",
    "ClientRecord",
    "ClusterRecord",
    "ClusterStore",
    "ConfigKind",
    "ConfigProjection",
    "DeployOptions",
    "ExecOptions",
    "HostDirectory",
    "OrderedFanout",
    "PlanContext",
    "Playbook",
    "RemoteShell",
    "ServiceStatus",
    "SharedContext",
    "Step",
    "StepReport",
    "StepType",
    "Task",
    "TaskContext",
    "TaskExecutor",
    "TaskFactory",
    "TaskResult",
    "TaskRuntime",
    "build_clean_playbook",
    "build_client_status_playbook",
    "build_deploy_playbook",
    "build_monitor_clean_playbook",
    "build_monitor_deploy_playbook",
    "build_monitor_restart_playbook",
    "build_monitor_start_playbook",
    "build_monitor_status_playbook",
    "build_monitor_stop_playbook",
    "build_mount_playbook",
    "build_precheck_playbook",
    "build_restart_playbook",
    "build_start_playbook",
    "build_status_playbook",
    "build_stop_playbook",
    "build_umount_playbook",
    "build_upgrade_playbook",
    "constructor",
    "deploy_title",
    "format_client_rows",
    "format_monitor_rows",
    "format_rows",
    "process_context",
    "resolve_script",
    "select_services",
    "service_stats",
    "status_configs",
]
