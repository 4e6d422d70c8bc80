"""Deploy playbook: per-kind step lists with role filters and limits."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from fa_common.errors import (
    ERR_UNSUPPORTED_CLUSTER_KIND,
    ERR_UNSUPPORTED_SKIPPED_SERVICE_ROLE,
    ConfigurationError,
)
from fa_controller.context import KEY_ALL_DEPLOY_CONFIGS, KEY_SKIP_MDS_CLI, KEY_USE_LOCAL_IMAGE
from fa_controller.playbook import Playbook
from fa_controller.plans.base import PlanContext, role_configs
from fa_controller.steps import StepType
from fa_topology.filter import skip_roles
from fa_topology.models import (
    KIND_DINGODB,
    KIND_DINGOFS,
    KIND_DINGOSTORE,
    ROLE_COORDINATOR,
    ROLE_DOCUMENT,
    ROLE_EXECUTOR,
    ROLE_INDEX,
    ROLE_MDS,
    ROLE_MDS_CLI,
    ROLE_STORE,
    DeployConfig,
    cluster_kind,
    get_roles,
)

logger = logging.getLogger(__name__)

ROLE_ALT = "ALT"
CAN_SKIP_ROLES = (ROLE_ALT,)

DINGOFS_MDS_ONLY_STEPS = (
    StepType.CLEAN_PRECHECK_ENVIRONMENT,
    StepType.PULL_IMAGE,
    StepType.CREATE_CONTAINER,
    StepType.SYNC_CONFIG,
    StepType.START_MDS_CLI_CONTAINER,
    StepType.CREATE_META_TABLES,
    StepType.START_MDS,
)

# START_EXECUTOR is last; it is dropped when the topology has no executor.
DINGOFS_WITH_STORE_STEPS = (
    StepType.CLEAN_PRECHECK_ENVIRONMENT,
    StepType.PULL_IMAGE,
    StepType.CREATE_CONTAINER,
    StepType.SYNC_CONFIG,
    StepType.START_COORDINATOR,
    StepType.START_STORE,
    StepType.CHECK_STORE_HEALTH,
    StepType.START_MDS_CLI_CONTAINER,
    StepType.CREATE_META_TABLES,
    StepType.START_MDS,
    StepType.START_EXECUTOR,
)

DINGOSTORE_STEPS = (
    StepType.CLEAN_PRECHECK_ENVIRONMENT,
    StepType.PULL_IMAGE,
    StepType.CREATE_CONTAINER,
    StepType.SYNC_CONFIG,
    StepType.START_COORDINATOR,
    StepType.START_STORE,
    StepType.CHECK_STORE_HEALTH,
    StepType.START_EXECUTOR,
)

DINGODB_STEPS = (
    StepType.CLEAN_PRECHECK_ENVIRONMENT,
    StepType.PULL_IMAGE,
    StepType.CREATE_CONTAINER,
    StepType.SYNC_CONFIG,
    StepType.START_COORDINATOR,
    StepType.START_STORE,
    StepType.CHECK_STORE_HEALTH,
    StepType.START_DOCUMENT,
    StepType.START_INDEX,
    StepType.START_EXECUTOR,
)

DEPLOY_FILTER_ROLE: Dict[StepType, str] = {
    StepType.START_MDS: ROLE_MDS,
    StepType.START_COORDINATOR: ROLE_COORDINATOR,
    StepType.START_STORE: ROLE_STORE,
    StepType.START_DOCUMENT: ROLE_DOCUMENT,
    StepType.START_INDEX: ROLE_INDEX,
    StepType.START_MDS_CLI_CONTAINER: ROLE_MDS_CLI,
    StepType.START_EXECUTOR: ROLE_EXECUTOR,
    StepType.CHECK_STORE_HEALTH: ROLE_STORE,
    StepType.CREATE_META_TABLES: ROLE_MDS_CLI,
}

# Steps acting once for the whole cluster.
DEPLOY_LIMIT_SERVICE: Dict[StepType, int] = {
    StepType.CHECK_STORE_HEALTH: 1,
    StepType.CREATE_META_TABLES: 1,
}


@dataclass
class DeployOptions:
    skip: List[str] = field(default_factory=list)
    insecure: bool = False
    use_local_image: bool = False


def validate_skip_roles(skip: Sequence[str]) -> List[str]:
    roles = [role for role in skip if role]
    for role in roles:
        if role not in CAN_SKIP_ROLES:
            raise ERR_UNSUPPORTED_SKIPPED_SERVICE_ROLE.f(
                "skip role: %s (supported: %s)", role, ",".join(CAN_SKIP_ROLES),
                error_cls=ConfigurationError,
            )
    return roles


def deploy_steps(configs: Sequence[DeployConfig], use_local_image: bool = False) -> List[StepType]:
    """Ordered step kinds for the cluster kind and the roles present."""
    kind = cluster_kind(list(configs))
    roles = get_roles(list(configs))
    if kind == KIND_DINGOFS:
        if ROLE_COORDINATOR in roles:
            steps = list(DINGOFS_WITH_STORE_STEPS)
            if ROLE_EXECUTOR not in roles:
                steps = steps[:-1]
        else:
            steps = list(DINGOFS_MDS_ONLY_STEPS)
    elif kind == KIND_DINGOSTORE:
        steps = list(DINGOSTORE_STEPS)
    elif kind == KIND_DINGODB:
        steps = list(DINGODB_STEPS)
    else:
        raise ERR_UNSUPPORTED_CLUSTER_KIND.f("kind: %s", kind, error_cls=ConfigurationError)
    if use_local_image:
        steps.remove(StepType.PULL_IMAGE)
    return steps


def build_deploy_playbook(
    plan: PlanContext, configs: Sequence[DeployConfig], options: DeployOptions | None = None
) -> Playbook:
    options = options or DeployOptions()
    skipped = validate_skip_roles(options.skip)
    configs = skip_roles(list(configs), skipped)
    step_options = {
        KEY_ALL_DEPLOY_CONFIGS: configs,
        KEY_SKIP_MDS_CLI: False,
        KEY_USE_LOCAL_IMAGE: options.use_local_image,
    }

    pb = plan.new_playbook()
    for step_type in deploy_steps(configs, options.use_local_image):
        selected = role_configs(configs, step_type, DEPLOY_FILTER_ROLE)
        if not selected:
            logger.debug("Deploy step %s has no matching services", step_type.value)
            continue
        pb.add_step(
            plan.step(
                step_type,
                selected,
                step_options,
                limit=DEPLOY_LIMIT_SERVICE.get(step_type, 0),
            )
        )
    return pb


def deploy_title(cluster: str, configs: Sequence[DeployConfig], stats: str) -> List[str]:
    return [
        f"Cluster Name    : {cluster}",
        f"Cluster Kind    : {cluster_kind(list(configs))}",
        f"Cluster Services: {stats}",
        "",
    ]
