"""Step kinds, execution policy and the step record."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Sequence

from fa_controller.projection import ConfigKind, ConfigProjection


class StepType(str, Enum):
    """Closed set of step kinds the task factory can build."""

    # checkers
    CHECK_TOPOLOGY = "check_topology"
    CHECK_SSH_CONNECT = "check_ssh_connect"
    CHECK_PERMISSION = "check_permission"
    CHECK_KERNEL_VERSION = "check_kernel_version"
    CHECK_PORT_IN_USE = "check_port_in_use"
    START_HTTP_SERVER = "start_http_server"
    CHECK_DESTINATION_REACHABLE = "check_destination_reachable"
    GET_HOST_DATE = "get_host_date"
    CHECK_HOST_DATE = "check_host_date"
    CLEAN_PRECHECK_ENVIRONMENT = "clean_precheck_environment"

    # service lifecycle
    PULL_IMAGE = "pull_image"
    CREATE_CONTAINER = "create_container"
    SYNC_CONFIG = "sync_config"
    START_SERVICE = "start_service"
    START_COORDINATOR = "start_coordinator"
    START_STORE = "start_store"
    START_MDS = "start_mds"
    START_MDS_CLI_CONTAINER = "start_mds_cli_container"
    START_EXECUTOR = "start_executor"
    START_DOCUMENT = "start_document"
    START_INDEX = "start_index"
    STOP_SERVICE = "stop_service"
    RESTART_SERVICE = "restart_service"
    CLEAN_SERVICE = "clean_service"
    CHECK_STORE_HEALTH = "check_store_health"
    CREATE_META_TABLES = "create_meta_tables"
    INIT_SERVICE_STATUS = "init_service_status"
    GET_SERVICE_STATUS = "get_service_status"

    # client
    CHECK_KERNEL_MODULE = "check_kernel_module"
    CHECK_MDS_ADDRESS = "check_mds_address"
    MOUNT_FILESYSTEM = "mount_filesystem"
    UMOUNT_FILESYSTEM = "umount_filesystem"
    INIT_CLIENT_STATUS = "init_client_status"
    GET_CLIENT_STATUS = "get_client_status"

    # monitor
    PULL_MONITOR_IMAGE = "pull_monitor_image"
    CREATE_MONITOR_CONTAINER = "create_monitor_container"
    SYNC_MONITOR_ORIGIN_CONFIG = "sync_monitor_origin_config"
    SYNC_MONITOR_ALT_CONFIG = "sync_monitor_alt_config"
    SYNC_GRAFANA_DASHBOARD = "sync_grafana_dashboard"
    START_MONITOR_SERVICE = "start_monitor_service"
    STOP_MONITOR_SERVICE = "stop_monitor_service"
    RESTART_MONITOR_SERVICE = "restart_monitor_service"
    INIT_MONITOR_STATUS = "init_monitor_status"
    GET_MONITOR_STATUS = "get_monitor_status"
    CLEAN_MONITOR_SERVICE = "clean_monitor_service"

    @property
    def title(self) -> str:
        return self.value.replace("_", " ").capitalize()

    @property
    def config_kind(self) -> ConfigKind:
        return STEP_CONFIG_KINDS.get(self, ConfigKind.DEPLOY)


CLIENT_STEPS = frozenset(
    {
        StepType.CHECK_KERNEL_MODULE,
        StepType.CHECK_MDS_ADDRESS,
        StepType.MOUNT_FILESYSTEM,
    }
)

MONITOR_STEPS = frozenset(
    {
        StepType.PULL_MONITOR_IMAGE,
        StepType.CREATE_MONITOR_CONTAINER,
        StepType.SYNC_MONITOR_ORIGIN_CONFIG,
        StepType.SYNC_MONITOR_ALT_CONFIG,
        StepType.SYNC_GRAFANA_DASHBOARD,
        StepType.START_MONITOR_SERVICE,
        StepType.STOP_MONITOR_SERVICE,
        StepType.RESTART_MONITOR_SERVICE,
        StepType.INIT_MONITOR_STATUS,
        StepType.GET_MONITOR_STATUS,
        StepType.CLEAN_MONITOR_SERVICE,
    }
)

STEP_CONFIG_KINDS: Dict[StepType, ConfigKind] = {
    **{step: ConfigKind.CLIENT for step in CLIENT_STEPS},
    **{step: ConfigKind.MONITOR for step in MONITOR_STEPS},
    # client steps that work from stored client records
    StepType.UMOUNT_FILESYSTEM: ConfigKind.GENERIC,
    StepType.INIT_CLIENT_STATUS: ConfigKind.GENERIC,
    StepType.GET_CLIENT_STATUS: ConfigKind.GENERIC,
}

START_ALIASES = frozenset(
    {
        StepType.START_SERVICE,
        StepType.START_COORDINATOR,
        StepType.START_STORE,
        StepType.START_MDS,
        StepType.START_MDS_CLI_CONTAINER,
        StepType.START_EXECUTOR,
        StepType.START_DOCUMENT,
        StepType.START_INDEX,
    }
)


@dataclass(frozen=True)
class ExecOptions:
    """Execution policy of one step.

    ``concurrency`` 0 runs one worker per task; ``limit`` 0 keeps every
    applicable config.
    """

    concurrency: int = 0
    silent_main_bar: bool = False
    silent_sub_bar: bool = False
    skip_error: bool = False
    limit: int = 0

    def __post_init__(self) -> None:
        if self.concurrency < 0:
            raise ValueError("concurrency must be >= 0")
        if self.limit < 0:
            raise ValueError("limit must be >= 0")


@dataclass
class Step:
    type: StepType
    configs: Sequence[Any] | ConfigProjection[Any]
    options: Dict[str, Any] = field(default_factory=dict)
    exec: ExecOptions = field(default_factory=ExecOptions)
    name: str = ""

    @property
    def title(self) -> str:
        return self.name or self.type.title

    def projection(self) -> ConfigProjection[Any]:
        return ConfigProjection.of(self.configs)
