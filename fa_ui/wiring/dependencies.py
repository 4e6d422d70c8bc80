from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from fa_common.api import FleetSettings, load_settings
from fa_controller.api import (
    AuditLog,
    BuildDeps,
    ClusterRecord,
    ClusterStore,
    HostDirectory,
    PlanContext,
    TaskRuntime,
    process_context,
)
from fa_controller.context import SharedContext
from fa_controller.transport import ShellFactory
from fa_controller.ui_interfaces import EngineUI
from fa_topology.api import DeployConfig, parse_hosts, parse_topology
from fa_ui.ui.terminal import RichUI


@dataclass
class UIContext:
    """Container for CLI services and state, initialized lazily."""

    debug: bool = False

    # Lazily initialized services
    _settings: Optional[FleetSettings] = None
    _store: Optional[ClusterStore] = None
    _audit: Optional[AuditLog] = None
    _ui: Optional[EngineUI] = None
    _shared: Optional[SharedContext] = None
    shell_factory: Optional[ShellFactory] = None

    @property
    def settings(self) -> FleetSettings:
        if self._settings is None:
            self._settings = load_settings()
        return self._settings

    @settings.setter
    def settings(self, value: FleetSettings) -> None:
        self._settings = value

    @property
    def store(self) -> ClusterStore:
        if self._store is None:
            self._store = ClusterStore(self.settings.data_path)
        return self._store

    @store.setter
    def store(self, value: ClusterStore) -> None:
        self._store = value

    @property
    def audit(self) -> AuditLog:
        if self._audit is None:
            self._audit = AuditLog(self.settings.data_path)
        return self._audit

    @audit.setter
    def audit(self, value: AuditLog) -> None:
        self._audit = value

    @property
    def ui(self) -> EngineUI:
        if self._ui is None:
            self._ui = RichUI()
        return self._ui

    @ui.setter
    def ui(self, value: EngineUI) -> None:
        self._ui = value

    @property
    def shared(self) -> SharedContext:
        if self._shared is None:
            self._shared = process_context()
        return self._shared

    @shared.setter
    def shared(self, value: SharedContext) -> None:
        self._shared = value

    def hosts(self) -> HostDirectory:
        text = self.store.get_hosts()
        return HostDirectory(parse_hosts(text) if text else [])

    def cluster(self, name: str | None = None) -> ClusterRecord:
        return self.store.get_cluster(name)

    def deploy_configs(self, record: ClusterRecord, hosts: HostDirectory) -> List[DeployConfig]:
        return parse_topology(record.topology, cluster=record.name, hostnames=hosts.hostnames())

    def plan(self, cluster: str = "", hosts: HostDirectory | None = None) -> PlanContext:
        deps = BuildDeps(
            shared=self.shared,
            hosts=hosts if hosts is not None else self.hosts(),
            settings=self.settings,
            store=self.store,
            cluster=cluster,
        )
        runtime = TaskRuntime(shared=self.shared, settings=self.settings, shell_factory=self.shell_factory)
        return PlanContext(deps=deps, runtime=runtime, ui=self.ui)
