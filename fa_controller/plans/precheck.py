"""Precheck playbook: topology, ssh, permission, kernel, network and date checks."""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence

from fa_common.errors import ERR_UNSUPPORTED_SKIPPED_CHECK_ITEM, ConfigurationError
from fa_controller.context import KEY_ALL_DEPLOY_CONFIGS
from fa_controller.playbook import Playbook
from fa_controller.plans.base import PlanContext
from fa_controller.steps import StepType
from fa_topology.models import DeployConfig

CHECK_ITEM_TOPOLOGY = "topology"
CHECK_ITEM_SSH = "ssh"
CHECK_ITEM_PERMISSION = "permission"
CHECK_ITEM_KERNEL = "kernel"
CHECK_ITEM_NETWORK = "network"
CHECK_ITEM_DATE = "date"

CHECK_ITEMS = (
    CHECK_ITEM_TOPOLOGY,
    CHECK_ITEM_SSH,
    CHECK_ITEM_PERMISSION,
    CHECK_ITEM_KERNEL,
    CHECK_ITEM_NETWORK,
    CHECK_ITEM_DATE,
)

PRECHECK_STEPS = (
    StepType.CHECK_TOPOLOGY,
    StepType.CHECK_SSH_CONNECT,
    StepType.CHECK_PERMISSION,
    StepType.CHECK_KERNEL_VERSION,
    StepType.CLEAN_PRECHECK_ENVIRONMENT,
    StepType.CHECK_PORT_IN_USE,
    StepType.START_HTTP_SERVER,
    StepType.CHECK_DESTINATION_REACHABLE,
    StepType.GET_HOST_DATE,
    StepType.CHECK_HOST_DATE,
)

PRECHECK_POST_STEPS = (StepType.CLEAN_PRECHECK_ENVIRONMENT,)

BELONG_CHECK_ITEM: Dict[StepType, str] = {
    StepType.CHECK_TOPOLOGY: CHECK_ITEM_TOPOLOGY,
    StepType.CHECK_SSH_CONNECT: CHECK_ITEM_SSH,
    StepType.CHECK_PERMISSION: CHECK_ITEM_PERMISSION,
    StepType.CHECK_KERNEL_VERSION: CHECK_ITEM_KERNEL,
    StepType.CHECK_PORT_IN_USE: CHECK_ITEM_NETWORK,
    StepType.START_HTTP_SERVER: CHECK_ITEM_NETWORK,
    StepType.CHECK_DESTINATION_REACHABLE: CHECK_ITEM_NETWORK,
    StepType.GET_HOST_DATE: CHECK_ITEM_DATE,
    StepType.CHECK_HOST_DATE: CHECK_ITEM_DATE,
}


def validate_skip_items(skip: Iterable[str]) -> List[str]:
    items = [item for item in skip if item]
    for item in items:
        if item not in CHECK_ITEMS:
            raise ERR_UNSUPPORTED_SKIPPED_CHECK_ITEM.f(
                "%s (supported: %s)", item, ",".join(CHECK_ITEMS), error_cls=ConfigurationError
            )
    return items


def precheck_steps(skip: Iterable[str] = ()) -> List[StepType]:
    skipped = set(validate_skip_items(skip))
    return [step for step in PRECHECK_STEPS if BELONG_CHECK_ITEM.get(step) not in skipped]


def build_precheck_playbook(
    plan: PlanContext, configs: Sequence[DeployConfig], skip: Iterable[str] = ()
) -> Playbook:
    configs = list(configs)
    options = {KEY_ALL_DEPLOY_CONFIGS: configs}
    pb = plan.new_playbook()
    for step_type in precheck_steps(skip):
        pb.add_step(
            plan.step(
                step_type,
                configs,
                options,
                silent_sub_bar=step_type == StepType.CHECK_HOST_DATE,
            )
        )
    for step_type in PRECHECK_POST_STEPS:
        pb.add_post_step(plan.step(step_type, configs, skip_error=True, silent_sub_bar=True))
    return pb
