"""Playbooks acting on already deployed services."""

from __future__ import annotations

from typing import List, Sequence

from fa_controller.context import (
    KEY_ALL_DEPLOY_CONFIGS,
    KEY_ALL_SERVICE_STATUS,
    KEY_CLEAN_BY_RECYCLE,
    KEY_CLEAN_ITEMS,
    KEY_SKIP_MDS_CLI,
    KEY_USE_LOCAL_IMAGE,
)
from fa_controller.playbook import Playbook
from fa_controller.plans.base import PlanContext, role_configs
from fa_controller.plans.deploy import DEPLOY_FILTER_ROLE, DEPLOY_LIMIT_SERVICE
from fa_controller.steps import StepType
from fa_controller.tasks.service import CLEAN_ITEM_CONTAINER, CLEAN_ITEMS, clean_items
from fa_topology.models import ROLE_MDS_CLI, DeployConfig, get_roles

UPGRADE_STEPS = (
    StepType.PULL_IMAGE,
    StepType.STOP_SERVICE,
    StepType.CLEAN_SERVICE,
    StepType.CREATE_CONTAINER,
    StepType.SYNC_CONFIG,
    StepType.START_SERVICE,
)

# Filesystem clusters restart their store layer before the mds.
UPGRADE_STORE_FS_STEPS = (
    StepType.PULL_IMAGE,
    StepType.STOP_SERVICE,
    StepType.CLEAN_SERVICE,
    StepType.CREATE_CONTAINER,
    StepType.SYNC_CONFIG,
    StepType.START_COORDINATOR,
    StepType.START_STORE,
    StepType.CHECK_STORE_HEALTH,
    StepType.START_MDS,
    StepType.START_EXECUTOR,
)

STATUS_STEPS = (StepType.INIT_SERVICE_STATUS, StepType.GET_SERVICE_STATUS)


def _single_step_playbook(
    plan: PlanContext, step_type: StepType, configs: Sequence[DeployConfig]
) -> Playbook:
    pb = plan.new_playbook()
    pb.add_step(
        plan.step(
            step_type,
            configs,
            {KEY_ALL_DEPLOY_CONFIGS: list(configs), KEY_SKIP_MDS_CLI: False},
        )
    )
    return pb


def build_start_playbook(plan: PlanContext, configs: Sequence[DeployConfig]) -> Playbook:
    return _single_step_playbook(plan, StepType.START_SERVICE, configs)


def build_stop_playbook(plan: PlanContext, configs: Sequence[DeployConfig]) -> Playbook:
    return _single_step_playbook(plan, StepType.STOP_SERVICE, configs)


def build_restart_playbook(plan: PlanContext, configs: Sequence[DeployConfig]) -> Playbook:
    return _single_step_playbook(plan, StepType.RESTART_SERVICE, configs)


def upgrade_steps(configs: Sequence[DeployConfig], use_local_image: bool = False) -> List[StepType]:
    roles = get_roles(list(configs))
    steps = list(UPGRADE_STORE_FS_STEPS if ROLE_MDS_CLI in roles else UPGRADE_STEPS)
    if use_local_image:
        steps.remove(StepType.PULL_IMAGE)
    return steps


def build_upgrade_playbook(
    plan: PlanContext, configs: Sequence[DeployConfig], use_local_image: bool = False
) -> Playbook:
    """Recreate the containers of ``configs`` with their current image."""
    configs = list(configs)
    options = {
        KEY_ALL_DEPLOY_CONFIGS: configs,
        KEY_CLEAN_ITEMS: [CLEAN_ITEM_CONTAINER],
        KEY_CLEAN_BY_RECYCLE: True,
        KEY_SKIP_MDS_CLI: True,
        KEY_USE_LOCAL_IMAGE: use_local_image,
    }
    pb = plan.new_playbook()
    for step_type in upgrade_steps(configs, use_local_image):
        selected = role_configs(configs, step_type, DEPLOY_FILTER_ROLE)
        if not selected:
            continue
        pb.add_step(
            plan.step(step_type, selected, options, limit=DEPLOY_LIMIT_SERVICE.get(step_type, 0))
        )
    return pb


def build_clean_playbook(
    plan: PlanContext,
    configs: Sequence[DeployConfig],
    only: Sequence[str] = CLEAN_ITEMS,
    recycle: bool = True,
) -> Playbook:
    items = clean_items(list(only))
    steps = [StepType.CLEAN_SERVICE]
    if CLEAN_ITEM_CONTAINER in items:
        steps.insert(0, StepType.STOP_SERVICE)
    options = {KEY_CLEAN_ITEMS: items, KEY_CLEAN_BY_RECYCLE: recycle}
    pb = plan.new_playbook()
    for step_type in steps:
        pb.add_step(plan.step(step_type, configs, options))
    return pb


def status_configs(configs: Sequence[DeployConfig]) -> List[DeployConfig]:
    """``mds-cli`` is a one-shot helper and has no status row."""
    return [dc for dc in configs if dc.role != ROLE_MDS_CLI]


def build_status_playbook(plan: PlanContext, configs: Sequence[DeployConfig]) -> Playbook:
    plan.deps.shared.set(KEY_ALL_SERVICE_STATUS, {})
    pb = plan.new_playbook()
    for step_type in STATUS_STEPS:
        pb.add_step(
            plan.step(
                step_type,
                configs,
                silent_sub_bar=True,
                silent_main_bar=step_type == StepType.INIT_SERVICE_STATUS,
                skip_error=True,
            )
        )
    return pb
