"""Tests for topology, hosts, client and monitor parsing."""

from __future__ import annotations

import pytest

from fa_common.errors import (
    ERR_INVALID_CLIENT_CONFIG,
    ERR_INVALID_SETTINGS,
    ERR_INVALID_TOPOLOGY,
    ERR_UNSUPPORTED_CLUSTER_KIND,
    ConfigurationError,
)
from fa_topology.models import ROLE_COORDINATOR, ROLE_MDS, ROLE_MDS_CLI, ROLE_STORE, cluster_kind, get_roles
from fa_topology.parser import parse_client, parse_hosts, parse_monitor, parse_topology


pytestmark = pytest.mark.unit_topology

TOPOLOGY = """
kind: dingofs
global:
  container_image: example/dingofs:v1
store_services:
  deploy:
    - host: h2
coordinator_services:
  config:
    data_dir: /data/coor
  deploy:
    - host: h1
      instances: 2
      config:
        listen.port: 16500
mds_services:
  deploy:
    - host: h3
"""


def test_configs_follow_role_then_item_then_instance_order() -> None:
    configs = parse_topology(TOPOLOGY, cluster="demo")
    assert [(dc.role, dc.host, dc.instances_sequence) for dc in configs] == [
        (ROLE_COORDINATOR, "h1", 0),
        (ROLE_COORDINATOR, "h1", 1),
        (ROLE_STORE, "h2", 0),
        (ROLE_MDS, "h3", 0),
    ]
    assert cluster_kind(configs) == "dingofs"
    assert get_roles(configs) == [ROLE_COORDINATOR, ROLE_STORE, ROLE_MDS]


def test_config_layers_and_instance_ports() -> None:
    first, second, store, mds = parse_topology(TOPOLOGY, cluster="demo")
    assert first.container_image == "example/dingofs:v1"
    assert first.data_dir == "/data/coor"
    assert (first.listen_port, second.listen_port) == (16500, 16501)
    assert first.parent_id == second.parent_id
    assert first.id != second.id
    assert store.data_dir == ""
    assert mds.cluster == "demo"


def test_coordinator_addresses_are_linked_to_every_service() -> None:
    configs = parse_topology(TOPOLOGY, hostnames={"h1": "10.0.0.1"})
    assert {dc.get("coordinator_addr") for dc in configs} == {"10.0.0.1:16500,10.0.0.1:16501"}


def test_mds_cli_section_name() -> None:
    configs = parse_topology("kind: dingofs\nmds_cli_services:\n  deploy:\n    - host: h1\n")
    assert [dc.role for dc in configs] == [ROLE_MDS_CLI]


@pytest.mark.parametrize(
    "text, code",
    [
        ("kind: mysql\nstore_services:\n  deploy:\n    - host: a\n", ERR_UNSUPPORTED_CLUSTER_KIND),
        ("kind: dingofs\nfoo_services:\n  deploy:\n    - host: a\n", ERR_INVALID_TOPOLOGY),
        ("kind: dingofs\nmds_services:\n  deploy:\n    - {}\n", ERR_INVALID_TOPOLOGY),
        ("kind: dingofs\n", ERR_INVALID_TOPOLOGY),
        ("kind: dingofs\nmds_services:\n  deploy:\n    - host: a\n      instances: 0\n", ERR_INVALID_TOPOLOGY),
        ("[unclosed", ERR_INVALID_TOPOLOGY),
    ],
)
def test_invalid_topologies(text, code) -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        parse_topology(text)
    assert excinfo.value.code is code


def test_topology_from_missing_path(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        parse_topology(tmp_path / "nope.yaml")


def test_parse_hosts_merges_global_and_rejects_duplicates() -> None:
    specs = parse_hosts(
        "global:\n  user: dingo\n  ssh_port: 2222\n"
        "hosts:\n  - host: a\n    hostname: 10.0.0.1\n    labels: [db]\n"
        "  - host: b\n    hostname: 10.0.0.2\n    user: root\n"
    )
    assert [(s.host, s.user, s.ssh_port) for s in specs] == [("a", "dingo", 2222), ("b", "root", 2222)]
    assert specs[0].labels == ["db"]

    with pytest.raises(ConfigurationError) as excinfo:
        parse_hosts("hosts:\n  - {host: a, hostname: x}\n  - {host: a, hostname: y}\n")
    assert excinfo.value.code is ERR_INVALID_SETTINGS


def test_parse_client_one_record_per_host() -> None:
    text = "fs_name: dfs\nmount_point: /mnt/dfs\nmds_addrs: 10.0.0.1:6900, 10.0.0.2:6900\nhost: [c1, c2]\n"
    clients = parse_client(text)
    assert [cc.host for cc in clients] == ["c1", "c2"]
    assert clients[0].mds_addrs == ["10.0.0.1:6900", "10.0.0.2:6900"]
    assert clients[0].id != clients[1].id
    assert [cc.host for cc in parse_client(text, hosts=["c9"])] == ["c9"]


def test_parse_client_requires_absolute_mount_point() -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        parse_client("fs_name: dfs\nmount_point: mnt\nhost: c1\n")
    assert excinfo.value.code is ERR_INVALID_CLIENT_CONFIG


def test_parse_monitor_defaults() -> None:
    monitors = parse_monitor(
        "global:\n  data_dir: /data/mon\n"
        "prometheus:\n  deploy:\n    - host: m1\n"
        "grafana:\n  config:\n    listen_port: 3300\n  deploy:\n    - host: m2\n"
    )
    prometheus, grafana = monitors
    assert (prometheus.role, prometheus.listen_port, prometheus.data_dir) == ("prometheus", 9090, "/data/mon")
    assert grafana.listen_port == 3300
    assert grafana.container_image.startswith("grafana/")
