"""Tests for id/role/host selection."""

from __future__ import annotations

import pytest

from fa_topology.filter import FilterOption, filter_deploy_configs, service_id, skip_roles
from fa_topology.parser import parse_topology


pytestmark = pytest.mark.unit_topology

TOPOLOGY = """
kind: dingo-store
coordinator_services:
  deploy:
    - host: h1
    - host: h2
store_services:
  deploy:
    - host: h1
    - host: h2
"""


@pytest.fixture
def configs():
    return parse_topology(TOPOLOGY, cluster="demo")


def test_wildcards_keep_everything_in_order(configs) -> None:
    assert filter_deploy_configs(configs, "demo") == configs


def test_role_and_host_filters(configs) -> None:
    selected = filter_deploy_configs(configs, "demo", FilterOption(role="store", host="h2"))
    assert [(dc.role, dc.host) for dc in selected] == [("store", "h2")]


def test_id_filter_uses_cluster_scoped_service_id(configs) -> None:
    target = configs[3]
    sid = service_id("demo", target.id)
    assert filter_deploy_configs(configs, "demo", FilterOption(id=sid)) == [target]
    assert filter_deploy_configs(configs, "other", FilterOption(id=sid)) == []


def test_no_match_returns_empty(configs) -> None:
    assert filter_deploy_configs(configs, "demo", FilterOption(host="h9")) == []


def test_skip_roles(configs) -> None:
    assert {dc.role for dc in skip_roles(configs, ["store"])} == {"coordinator"}
