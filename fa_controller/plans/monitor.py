"""Monitoring stack playbooks."""

from __future__ import annotations

from typing import List, Sequence

from fa_controller.context import (
    KEY_ALL_DEPLOY_CONFIGS,
    KEY_CLEAN_ITEMS,
    KEY_MONITOR_STATUS,
)
from fa_controller.playbook import Playbook
from fa_controller.plans.base import PlanContext
from fa_controller.steps import StepType
from fa_controller.tasks.service import CLEAN_ITEM_CONTAINER, CLEAN_ITEM_DATA
from fa_topology.models import DeployConfig, MonitorConfig

MONITOR_DEPLOY_STEPS = (
    StepType.PULL_MONITOR_IMAGE,
    StepType.CREATE_MONITOR_CONTAINER,
    StepType.SYNC_MONITOR_ORIGIN_CONFIG,
    StepType.SYNC_MONITOR_ALT_CONFIG,
    StepType.START_MONITOR_SERVICE,
    StepType.SYNC_GRAFANA_DASHBOARD,
)

MONITOR_CLEAN_ITEMS = (CLEAN_ITEM_DATA, CLEAN_ITEM_CONTAINER)

MONITOR_STATUS_STEPS = (StepType.INIT_MONITOR_STATUS, StepType.GET_MONITOR_STATUS)


def monitor_deploy_steps(use_local_image: bool = False) -> List[StepType]:
    steps = list(MONITOR_DEPLOY_STEPS)
    if use_local_image:
        steps.remove(StepType.PULL_MONITOR_IMAGE)
    return steps


def build_monitor_deploy_playbook(
    plan: PlanContext,
    monitors: Sequence[MonitorConfig],
    services: Sequence[DeployConfig],
    use_local_image: bool = False,
) -> Playbook:
    """Run the monitoring containers and point them at ``services``."""
    options = {KEY_ALL_DEPLOY_CONFIGS: list(services)}
    pb = plan.new_playbook()
    for step_type in monitor_deploy_steps(use_local_image):
        pb.add_step(plan.step(step_type, monitors, options))
    return pb


def _single_step_playbook(
    plan: PlanContext, step_type: StepType, monitors: Sequence[MonitorConfig]
) -> Playbook:
    pb = plan.new_playbook()
    pb.add_step(plan.step(step_type, monitors))
    return pb


def build_monitor_start_playbook(plan: PlanContext, monitors: Sequence[MonitorConfig]) -> Playbook:
    return _single_step_playbook(plan, StepType.START_MONITOR_SERVICE, monitors)


def build_monitor_stop_playbook(plan: PlanContext, monitors: Sequence[MonitorConfig]) -> Playbook:
    return _single_step_playbook(plan, StepType.STOP_MONITOR_SERVICE, monitors)


def build_monitor_restart_playbook(plan: PlanContext, monitors: Sequence[MonitorConfig]) -> Playbook:
    return _single_step_playbook(plan, StepType.RESTART_MONITOR_SERVICE, monitors)


def build_monitor_clean_playbook(
    plan: PlanContext, monitors: Sequence[MonitorConfig], only: Sequence[str] = MONITOR_CLEAN_ITEMS
) -> Playbook:
    pb = plan.new_playbook()
    items = list(only)
    if CLEAN_ITEM_CONTAINER in items:
        pb.add_step(plan.step(StepType.STOP_MONITOR_SERVICE, monitors))
    pb.add_step(plan.step(StepType.CLEAN_MONITOR_SERVICE, monitors, {KEY_CLEAN_ITEMS: items}))
    return pb


def build_monitor_status_playbook(plan: PlanContext, monitors: Sequence[MonitorConfig]) -> Playbook:
    plan.deps.shared.set(KEY_MONITOR_STATUS, {})
    pb = plan.new_playbook()
    for step_type in MONITOR_STATUS_STEPS:
        pb.add_step(
            plan.step(
                step_type,
                monitors,
                silent_sub_bar=True,
                silent_main_bar=step_type == StepType.INIT_MONITOR_STATUS,
                skip_error=True,
            )
        )
    return pb
