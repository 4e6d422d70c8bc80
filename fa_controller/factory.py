"""Turns a step into tasks: applicability, dedup, per-kind constructors."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from fa_common.errors import (
    ERR_BUILD_TASK_FAILED,
    ERR_CONFIG_KIND_MISMATCH,
    ERR_UNKNOWN_TASK_TYPE,
    ConfigurationError,
    ConstructionError,
    FAError,
)
from fa_common.settings import FleetSettings
from fa_controller.context import SharedContext
from fa_controller.projection import ConfigKind, ConfigProjection
from fa_controller.steps import Step, StepType
from fa_controller.store import ClusterStore
from fa_controller.task import Task
from fa_controller.transport import HostDirectory
from fa_topology.filter import service_id
from fa_topology.models import ROLE_GRAFANA, ROLE_MDS_CLI, ROLE_MONITOR_SYNC

logger = logging.getLogger(__name__)


@dataclass
class BuildDeps:
    """What constructors may consult while building a task."""

    shared: SharedContext
    hosts: HostDirectory = field(default_factory=HostDirectory)
    settings: FleetSettings = field(default_factory=FleetSettings)
    store: Optional[ClusterStore] = None
    cluster: str = ""

    def service_id(self, dc_id: str) -> str:
        return service_id(self.cluster, dc_id)

    def container_id(self, dc_id: str) -> str:
        """Recorded container id for a deploy config, or ``""``."""
        if self.store is None:
            return ""
        return self.store.get_container_id(self.cluster, self.service_id(dc_id))

    def option(self, key: str, default: Any = None) -> Any:
        return self.shared.get(key, default)


@dataclass
class BuildRequest:
    """One (step, entry) pair handed to a constructor."""

    step: Step
    index: int
    config: Any
    projection: ConfigProjection[Any]


Constructor = Callable[[BuildDeps, BuildRequest], Optional[Task]]

_CONSTRUCTORS: Dict[StepType, Constructor] = {}


def constructor(*step_types: StepType) -> Callable[[Constructor], Constructor]:
    """Register a task constructor for one or more step kinds."""

    def decorator(fn: Constructor) -> Constructor:
        for step_type in step_types:
            _CONSTRUCTORS[step_type] = fn
        return fn

    return decorator


def _load_builtin_constructors() -> None:
    from fa_controller import tasks  # noqa: F401


def _not_mds_cli(config: Any) -> bool:
    return getattr(config, "role", None) != ROLE_MDS_CLI


APPLICABILITY: Dict[StepType, Callable[[Any], bool]] = {
    StepType.CHECK_PERMISSION: _not_mds_cli,
    StepType.CHECK_PORT_IN_USE: _not_mds_cli,
    StepType.CHECK_DESTINATION_REACHABLE: _not_mds_cli,
    StepType.START_HTTP_SERVER: _not_mds_cli,
    StepType.CLEAN_PRECHECK_ENVIRONMENT: _not_mds_cli,
    StepType.SYNC_MONITOR_ORIGIN_CONFIG: lambda mc: mc.role == ROLE_MONITOR_SYNC,
    StepType.SYNC_MONITOR_ALT_CONFIG: lambda mc: mc.role != ROLE_MONITOR_SYNC,
    StepType.SYNC_GRAFANA_DASHBOARD: lambda mc: mc.role == ROLE_GRAFANA,
}


def _host_key(config: Any) -> str:
    return config.host


def _host_image_key(config: Any) -> str:
    return f"{config.host}_{config.container_image}"


DEDUP_KEYS: Dict[StepType, Callable[[Any], str]] = {
    StepType.CHECK_SSH_CONNECT: _host_key,
    StepType.GET_HOST_DATE: _host_key,
    StepType.PULL_IMAGE: _host_image_key,
    StepType.PULL_MONITOR_IMAGE: _host_image_key,
}

# Kinds that act once for the whole step rather than once per entry.
SINGLETON_STEPS = frozenset({StepType.CHECK_TOPOLOGY, StepType.CHECK_HOST_DATE})


class TaskFactory:
    """Builds the task list of a step, failing fast on constructor errors."""

    def __init__(
        self,
        deps: BuildDeps,
        constructors: Dict[StepType, Constructor] | None = None,
    ) -> None:
        self.deps = deps
        _load_builtin_constructors()
        self._constructors = {**_CONSTRUCTORS, **(constructors or {})}

    def build(self, step: Step) -> List[Task]:
        ctor = self._constructors.get(step.type)
        if ctor is None:
            raise ERR_UNKNOWN_TASK_TYPE.f("task type: %s", step.type, error_cls=ConstructionError)

        projection = step.projection()
        if len(projection) and projection.kind != step.type.config_kind:
            raise ERR_CONFIG_KIND_MISMATCH.f(
                "%s expects %s configs, got %s",
                step.type.value,
                step.type.config_kind.value,
                projection.kind.value,
                error_cls=ConfigurationError,
            )

        self.deps.shared.update(step.options)

        fetch = projection.accessor(step.type.config_kind)
        rule = APPLICABILITY.get(step.type)
        indices = [
            idx for idx in range(len(projection)) if rule is None or rule(fetch(idx))
        ]
        if step.type in SINGLETON_STEPS:
            indices = indices[:1]
        if step.exec.limit > 0:
            indices = indices[: step.exec.limit]

        dedup = DEDUP_KEYS.get(step.type)
        seen: set[str] = set()
        tasks: List[Task] = []
        for idx in indices:
            config = fetch(idx)
            if dedup is not None:
                key = dedup(config)
                if key in seen:
                    continue
                seen.add(key)
            task = self._construct(ctor, step, idx, config, projection)
            if task is None:
                continue
            if projection.kind == ConfigKind.DEPLOY:
                task.stamp(config.id, config.parent_id)
            tasks.append(task.seal())

        logger.debug("Built %d task(s) for %s from %d config(s)", len(tasks), step.type.value, len(projection))
        return tasks

    def _construct(
        self,
        ctor: Constructor,
        step: Step,
        idx: int,
        config: Any,
        projection: ConfigProjection[Any],
    ) -> Optional[Task]:
        request = BuildRequest(step=step, index=idx, config=config, projection=projection)
        try:
            return ctor(self.deps, request)
        except FAError as exc:
            if isinstance(exc, (ConstructionError, ConfigurationError)):
                raise
            raise ConstructionError(str(exc), code=exc.code, context=exc.context, cause=exc) from exc
        except Exception as exc:
            raise ERR_BUILD_TASK_FAILED.error(
                f"{step.type.value}[{idx}]: {exc}", error_cls=ConstructionError, cause=exc
            ) from exc
