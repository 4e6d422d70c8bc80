"""Filesystem client playbooks: mount, umount and status."""

from __future__ import annotations

from typing import Dict, Sequence

from fa_controller.context import KEY_ALL_CLIENT_STATUS, KEY_MOUNT_OPTIONS, KEY_UMOUNT_FORCE
from fa_controller.playbook import Playbook
from fa_controller.plans.base import PlanContext
from fa_controller.steps import StepType
from fa_controller.store import ClientRecord
from fa_topology.models import ClientConfig

MOUNT_STEPS = (
    StepType.CHECK_KERNEL_MODULE,
    StepType.CHECK_MDS_ADDRESS,
    StepType.MOUNT_FILESYSTEM,
)

CLIENT_STATUS_STEPS = (StepType.INIT_CLIENT_STATUS, StepType.GET_CLIENT_STATUS)


def build_mount_playbook(
    plan: PlanContext,
    clients: Sequence[ClientConfig],
    mount_options: Dict[str, str] | None = None,
    insecure: bool = False,
) -> Playbook:
    """Check the host and the mds, then run the client container."""
    steps = [step for step in MOUNT_STEPS if not insecure or step == StepType.MOUNT_FILESYSTEM]
    options = {KEY_MOUNT_OPTIONS: dict(mount_options or {})}
    pb = plan.new_playbook()
    for step_type in steps:
        pb.add_step(plan.step(step_type, clients, options))
    return pb


def build_umount_playbook(
    plan: PlanContext, records: Sequence[ClientRecord], force: bool = False
) -> Playbook:
    pb = plan.new_playbook()
    pb.add_step(plan.step(StepType.UMOUNT_FILESYSTEM, records, {KEY_UMOUNT_FORCE: force}))
    return pb


def build_client_status_playbook(plan: PlanContext, records: Sequence[ClientRecord]) -> Playbook:
    plan.deps.shared.set(KEY_ALL_CLIENT_STATUS, {})
    pb = plan.new_playbook()
    for step_type in CLIENT_STATUS_STEPS:
        pb.add_step(
            plan.step(
                step_type,
                records,
                silent_sub_bar=True,
                silent_main_bar=step_type == StepType.INIT_CLIENT_STATUS,
                skip_error=True,
            )
        )
    return pb
