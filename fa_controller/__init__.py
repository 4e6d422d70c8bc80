"""Playbook engine, task constructors and command playbooks for fleetadm."""

from fa_controller.api import (
    BuildDeps,
    ExecOptions,
    PlanContext,
    Playbook,
    Step,
    StepType,
    TaskExecutor,
    TaskFactory,
)

__all__ = [
    "BuildDeps",
    "ExecOptions",
    "PlanContext",
    "Playbook",
    "Step",
    "StepType",
    "TaskExecutor",
    "TaskFactory",
]
