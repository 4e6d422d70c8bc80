"""Shared plumbing for the per-command playbook builders."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from fa_common.errors import ERR_NO_SERVICES_MATCHED, ConfigurationError
from fa_common.settings import FleetSettings
from fa_controller.factory import BuildDeps
from fa_controller.playbook import Playbook
from fa_controller.steps import ExecOptions, Step, StepType
from fa_controller.task import TaskRuntime
from fa_controller.ui_interfaces import EngineUI
from fa_topology.filter import FilterOption, filter_by_role, filter_deploy_configs
from fa_topology.models import ROLE_ORDER, DeployConfig


@dataclass
class PlanContext:
    """Everything a playbook builder needs besides the configs themselves."""

    deps: BuildDeps
    runtime: Optional[TaskRuntime] = None
    ui: Optional[EngineUI] = None

    @property
    def settings(self) -> FleetSettings:
        return self.deps.settings

    def new_playbook(self) -> Playbook:
        return Playbook(self.deps, runtime=self.runtime, ui=self.ui)

    def exec_options(self, **overrides: Any) -> ExecOptions:
        overrides.setdefault("concurrency", self.settings.concurrency)
        return ExecOptions(**overrides)

    def step(
        self,
        step_type: StepType,
        configs: Sequence[Any],
        options: Dict[str, Any] | None = None,
        **exec_overrides: Any,
    ) -> Step:
        return Step(
            type=step_type,
            configs=list(configs),
            options=dict(options or {}),
            exec=self.exec_options(**exec_overrides),
        )


def select_services(
    configs: List[DeployConfig], cluster: str, option: FilterOption | None = None
) -> List[DeployConfig]:
    """Filter by id/role/host; an empty result is an error."""
    selected = filter_deploy_configs(configs, cluster, option)
    if not selected:
        raise ERR_NO_SERVICES_MATCHED.error(
            f"id={option.id if option else '*'} role={option.role if option else '*'} "
            f"host={option.host if option else '*'}",
            error_cls=ConfigurationError,
        )
    return selected


def role_configs(
    configs: List[DeployConfig], step_type: StepType, filter_roles: Dict[StepType, str]
) -> List[DeployConfig]:
    role = filter_roles.get(step_type)
    return filter_by_role(configs, role) if role else list(configs)


def service_stats(configs: List[DeployConfig]) -> str:
    """``coordinator*3, store*3, ...`` in role order."""
    count = Counter(dc.role for dc in configs)
    return ", ".join(f"{role}*{count[role]}" for role in ROLE_ORDER if count[role])
