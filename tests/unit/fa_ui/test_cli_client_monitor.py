"""CLI tests for client and monitor commands."""

from __future__ import annotations

import pytest

from fa_controller.store import AUDIT_FAIL
from fa_controller.tasks import client as client_tasks
from fa_controller.tasks import monitor as monitor_tasks
from tests.helpers.fleet import HOSTS_YAML, STORE_TOPOLOGY, ok


pytestmark = pytest.mark.unit_ui

CLIENT_YAML = """
host: client1
kind: dingofs
fs_name: fs1
mount_point: /mnt/fs
mds_addrs: 10.0.0.1:7400,10.0.0.2:7400
"""

MONITOR_YAML = """
node_exporter:
  deploy:
    - host: host1
prometheus:
  config:
    data_dir: /data/prometheus
  deploy:
    - host: host3
"""


@pytest.fixture
def env(cli, monkeypatch):
    monkeypatch.setattr(client_tasks, "MOUNT_WAIT_SECONDS", 0)
    monkeypatch.setattr(monitor_tasks, "MONITOR_START_WAIT", 0)
    cli.store.set_hosts(HOSTS_YAML)
    cli.store.add_cluster("demo", STORE_TOPOLOGY)

    def respond(host: str, cmd: str):
        if "{{.Status}}" in cmd:
            return ok("Up 1 hour")
        if "ps --all --filter id=" in cmd:
            return ok(f"cid-{host}")
        if " run --name " in cmd or " create --name " in cmd:
            return ok(f"cid-{host}")
        if "inspect --format" in cmd:
            return ok("running")
        if "/proc/mounts" in cmd:
            return ok("dingofs /mnt/fs fuse.dingofs rw 0 0")
        return None

    cli.world.respond(respond)
    return cli


def _write(env, name: str, text: str) -> str:
    path = env.tmp_path / name
    path.write_text(text)
    return str(path)


def test_client_status_without_clients(env) -> None:
    assert env.invoke("client", "status").exit_code == 0
    assert "No clients mounted." in env.ui.lines
    assert env.ui.tables == []


def test_client_mount_status_umount(env) -> None:
    conf = _write(env, "client.yaml", CLIENT_YAML)
    result = env.invoke("client", "mount", "-c", conf, "-k", "-o", "cache_size=100")
    assert result.exit_code == 0, env.ui.text
    assert "Mount fs1 to client1:/mnt/fs success ^_^" in env.ui.lines
    run = next(cmd for cmd in env.world.commands_on("client1") if " run --name " in cmd)
    assert "--env MDS_ADDR=10.0.0.1:7400,10.0.0.2:7400" in run
    assert "--env cache_size=100" in run

    [record] = env.store.list_clients()
    assert (record.host, record.mount_point, record.container_id) == ("client1", "/mnt/fs", "cid-client1")

    assert env.invoke("client", "status").exit_code == 0
    columns, rows = env.ui.tables[-1]
    assert columns[:5] == ["Id", "Kind", "Host", "Container Id", "Status"]
    assert rows[0][2:5] == ["client1", "cid-client1", "Up 1 hour"]

    assert env.invoke("client", "umount", "/mnt/fs", "--force").exit_code == 0
    assert "umount -l /mnt/fs" in env.world.commands_on("client1")
    assert env.store.list_clients() == []


def test_client_mount_bad_option(env) -> None:
    conf = _write(env, "client.yaml", CLIENT_YAML)
    assert env.invoke("client", "mount", "-c", conf, "-k", "-o", "cache_size").exit_code == 1
    assert "code: 110010" in env.ui.text
    assert env.world.commands == []


def test_client_mount_needs_mds_somewhere(env) -> None:
    conf = _write(env, "client.yaml", "host: client1\nfs_name: fs1\nmount_point: /mnt/fs\n")
    assert env.invoke("client", "mount", "-c", conf, "-k").exit_code == 1
    assert "has no mds" in env.ui.text


def test_client_umount_unknown_mount_point(env) -> None:
    assert env.invoke("client", "umount", "/mnt/nothing", "-f").exit_code == 1
    assert "code: 340002" in env.ui.text
    entry = env.audit.tail(1)[0]
    assert (entry.status, entry.error_code) == (AUDIT_FAIL, 340002)


def test_monitor_status_without_monitor(env) -> None:
    assert env.invoke("monitor", "status").exit_code == 1
    assert "code: 110011" in env.ui.text


def test_monitor_deploy_then_status(env) -> None:
    conf = _write(env, "monitor.yaml", MONITOR_YAML)
    result = env.invoke("monitor", "deploy", "-c", conf, "--local")
    assert result.exit_code == 0, env.ui.text
    assert "Deploy monitor of cluster 'demo' success ^_^" in env.ui.lines
    assert env.store.get_cluster().monitor == MONITOR_YAML
    assert "mkdir -p /data/prometheus" in env.world.commands_on("host3")
    assert not any(" pull " in cmd for _, cmd in env.world.commands)

    assert env.invoke("monitor", "status").exit_code == 0
    columns, rows = env.ui.tables[-1]
    assert columns == ["Id", "Role", "Host", "Port", "Container Id", "Status"]
    assert sorted((row[1], row[2], row[5]) for row in rows) == [
        ("node_exporter", "host1", "Up 1 hour"),
        ("prometheus", "host3", "Up 1 hour"),
    ]


def test_monitor_stop_unknown_role(env) -> None:
    env.store.set_monitor("demo", MONITOR_YAML)
    assert env.invoke("monitor", "stop", "--role", "grafana", "-f").exit_code == 1
    assert "no monitor matched" in env.ui.text
