"""Step lists produced by the playbook builders."""

from __future__ import annotations

import pytest

from fa_common.errors import (
    ERR_NO_SERVICES_MATCHED,
    ERR_UNSUPPORTED_CLEAN_ITEM,
    ERR_UNSUPPORTED_CLUSTER_KIND,
    ERR_UNSUPPORTED_SKIPPED_CHECK_ITEM,
    ERR_UNSUPPORTED_SKIPPED_SERVICE_ROLE,
    ConfigurationError,
    ConstructionError,
)
from fa_controller.context import KEY_ALL_SERVICE_STATUS
from fa_controller.plans.base import select_services, service_stats
from fa_controller.plans.deploy import (
    DINGOSTORE_STEPS,
    DeployOptions,
    build_deploy_playbook,
    deploy_steps,
)
from fa_controller.plans.precheck import build_precheck_playbook, precheck_steps
from fa_controller.plans.service import (
    UPGRADE_STEPS,
    UPGRADE_STORE_FS_STEPS,
    build_clean_playbook,
    build_status_playbook,
    build_upgrade_playbook,
    status_configs,
    upgrade_steps,
)
from fa_controller.steps import StepType
from fa_topology.filter import FilterOption
from fa_topology.models import DeployConfig
from tests.helpers.fleet import FS_TOPOLOGY, make_hosts, make_plan, store_configs


pytestmark = pytest.mark.unit_controller


def _fs_configs():
    return store_configs(text=FS_TOPOLOGY, hosts=make_hosts("host1", "host2"))


def _types(pb):
    return [step.type for step in pb.steps]


def test_store_cluster_deploy_steps() -> None:
    configs = store_configs()
    assert deploy_steps(configs) == list(DINGOSTORE_STEPS)
    pb = build_deploy_playbook(make_plan(), configs)
    # no executor in the topology, so its start step is dropped
    assert StepType.START_EXECUTOR not in _types(pb)
    health = next(step for step in pb.steps if step.type is StepType.CHECK_STORE_HEALTH)
    assert health.exec.limit == 1
    assert {dc.role for dc in health.configs} == {"store"}


def test_fs_cluster_without_store_layer() -> None:
    steps = deploy_steps(_fs_configs(), use_local_image=True)
    assert StepType.PULL_IMAGE not in steps
    assert StepType.START_COORDINATOR not in steps
    assert steps.index(StepType.START_MDS_CLI_CONTAINER) < steps.index(StepType.CREATE_META_TABLES)
    assert steps[-1] is StepType.START_MDS


def test_fs_cluster_with_store_layer() -> None:
    text = FS_TOPOLOGY + "coordinator_services:\n  deploy:\n    - host: host1\n"
    steps = deploy_steps(store_configs(text=text, hosts=make_hosts("host1", "host2")))
    assert steps.index(StepType.CHECK_STORE_HEALTH) < steps.index(StepType.START_MDS)
    assert StepType.START_EXECUTOR not in steps


def test_unsupported_kind() -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        deploy_steps([DeployConfig(kind="other", role="store", host="h1")])
    assert excinfo.value.code is ERR_UNSUPPORTED_CLUSTER_KIND


def test_skip_role_validation() -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        build_deploy_playbook(make_plan(), store_configs(), DeployOptions(skip=["store"]))
    assert excinfo.value.code is ERR_UNSUPPORTED_SKIPPED_SERVICE_ROLE


def test_precheck_skip_items() -> None:
    steps = precheck_steps(["date", "network"])
    assert StepType.GET_HOST_DATE not in steps
    assert StepType.START_HTTP_SERVER not in steps
    assert StepType.CLEAN_PRECHECK_ENVIRONMENT in steps
    with pytest.raises(ConfigurationError) as excinfo:
        precheck_steps(["dns"])
    assert excinfo.value.code is ERR_UNSUPPORTED_SKIPPED_CHECK_ITEM

    pb = build_precheck_playbook(make_plan(), store_configs())
    assert [step.type for step in pb.post_steps] == [StepType.CLEAN_PRECHECK_ENVIRONMENT]
    assert pb.post_steps[0].exec.skip_error


def test_upgrade_steps() -> None:
    assert upgrade_steps(store_configs()) == list(UPGRADE_STEPS)
    assert upgrade_steps(_fs_configs()) == list(UPGRADE_STORE_FS_STEPS)
    pb = build_upgrade_playbook(make_plan(), _fs_configs(), use_local_image=True)
    types = _types(pb)
    assert StepType.PULL_IMAGE not in types
    # the fs cluster has no store layer, so only its mds start remains
    assert StepType.START_COORDINATOR not in types
    assert types[-1] is StepType.START_MDS


def test_clean_steps() -> None:
    configs = store_configs()
    assert _types(build_clean_playbook(make_plan(), configs, ["log"])) == [StepType.CLEAN_SERVICE]
    assert _types(build_clean_playbook(make_plan(), configs)) == [
        StepType.STOP_SERVICE,
        StepType.CLEAN_SERVICE,
    ]
    with pytest.raises(ConstructionError) as excinfo:
        build_clean_playbook(make_plan(), configs, ["cache"])
    assert excinfo.value.code is ERR_UNSUPPORTED_CLEAN_ITEM


def test_status_playbook_resets_bucket() -> None:
    plan = make_plan()
    plan.deps.shared.set(KEY_ALL_SERVICE_STATUS, {"stale": object()})
    pb = build_status_playbook(plan, store_configs())
    assert plan.deps.shared.snapshot(KEY_ALL_SERVICE_STATUS) == {}
    assert all(step.exec.skip_error for step in pb.steps)
    assert [dc.role for dc in status_configs(_fs_configs())] == ["mds", "mds", "mds"]


def test_select_services_and_stats() -> None:
    configs = store_configs()
    assert service_stats(configs) == "coordinator*3, store*3"
    assert len(select_services(configs, "demo", FilterOption(role="store"))) == 3
    with pytest.raises(ConfigurationError) as excinfo:
        select_services(configs, "demo", FilterOption(role="mds"))
    assert excinfo.value.code is ERR_NO_SERVICES_MATCHED
