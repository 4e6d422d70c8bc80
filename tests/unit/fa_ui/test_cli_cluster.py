"""CLI tests for cluster, hosts and audit commands."""

from __future__ import annotations

import shlex

import pytest

from fa_controller.store import AUDIT_CANCEL, AUDIT_FAIL, AUDIT_SUCCESS
from fa_ui.cli.commands import cluster as cluster_commands
from fa_ui.cli.runner import command_line
from tests.helpers.fleet import HOSTS_YAML, STORE_TOPOLOGY


pytestmark = pytest.mark.unit_ui


def _topology(cli) -> str:
    path = cli.tmp_path / "topology.yaml"
    path.write_text(STORE_TOPOLOGY)
    return str(path)


def test_cluster_add_and_list(cli) -> None:
    result = cli.invoke("cluster", "add", "demo", "-t", _topology(cli))
    assert result.exit_code == 0, result.output
    assert cli.store.current == "demo"
    assert "Cluster 'demo' added" in cli.ui.text

    assert cli.invoke("cluster", "list").exit_code == 0
    columns, rows = cli.ui.tables[-1]
    assert columns == ["Name", "Cluster Id", "Create Time"]
    assert rows[0][0] == "*demo"

    entry = cli.audit.tail(1)[0]
    assert entry.status == AUDIT_SUCCESS
    assert entry.command == "fleetadm cluster add demo -t " + shlex.quote(_topology(cli))


def test_duplicate_cluster_fails_and_is_audited(cli) -> None:
    cli.invoke("cluster", "add", "demo", "-t", _topology(cli))
    result = cli.invoke("cluster", "add", "demo", "-t", _topology(cli))
    assert result.exit_code == 1
    assert "code: 110002" in cli.ui.text
    entry = cli.audit.tail(1)[0]
    assert (entry.status, entry.error_code) == (AUDIT_FAIL, 110002)


def test_invalid_topology_is_rejected(cli) -> None:
    path = cli.tmp_path / "bad.yaml"
    path.write_text("kind: nosql\n")
    assert cli.invoke("cluster", "add", "demo", "-t", str(path)).exit_code == 1
    assert cli.store.list_clusters() == []


def test_checkout_unknown_cluster(cli) -> None:
    assert cli.invoke("cluster", "checkout", "ghost").exit_code == 1


def test_remove_declined_keeps_cluster(cli) -> None:
    cli.invoke("cluster", "add", "demo", "-t", _topology(cli))
    result = cli.invoke("cluster", "remove", "demo", input="n\n")
    assert result.exit_code == 1
    assert cli.store.get_cluster("demo").name == "demo"
    entry = cli.audit.tail(1)[0]
    assert (entry.status, entry.error_code) == (AUDIT_CANCEL, 130001)


def test_remove_confirmed(cli) -> None:
    cli.invoke("cluster", "add", "demo", "-t", _topology(cli))
    assert cli.invoke("cluster", "remove", "demo", input="y\n").exit_code == 0
    assert cli.store.list_clusters() == []


def test_hosts_commit_and_show(cli) -> None:
    path = cli.tmp_path / "hosts.yaml"
    path.write_text(HOSTS_YAML)
    result = cli.invoke("hosts", "commit", str(path))
    assert result.exit_code == 0, result.output
    assert "Hosts committed: 4 host(s)" in cli.ui.text
    assert cli.ctx.hosts().resolve("host1").user == "deploy"

    cli.invoke("hosts", "show")
    assert "client1" in cli.ui.lines[-1]


def test_hosts_commit_rejects_duplicates(cli) -> None:
    path = cli.tmp_path / "hosts.yaml"
    path.write_text("hosts:\n  - {host: a, hostname: x}\n  - {host: a, hostname: y}\n")
    assert cli.invoke("hosts", "commit", str(path)).exit_code == 1
    assert cli.store.get_hosts() == ""


def test_audit_table(cli) -> None:
    cli.invoke("cluster", "checkout", "ghost")
    cli.invoke("cluster", "add", "demo", "-t", _topology(cli))
    assert cli.invoke("audit", "--tail", "5").exit_code == 0
    columns, rows = cli.ui.tables[-1]
    assert columns[2] == "Status"
    assert [row[2] for row in rows] == [AUDIT_FAIL, AUDIT_SUCCESS]


def test_audit_without_entries(cli) -> None:
    cli.invoke("audit")
    assert "No audit entries yet." in cli.ui.text


def test_command_line_keeps_argv_order_and_quoting(monkeypatch) -> None:
    argv = ["clean", "-f", "--role", "store", "--only", "log,data", "--host", ""]
    assert command_line(argv) == "fleetadm clean -f --role store --only log,data --host ''"
    monkeypatch.setattr("sys.argv", ["/usr/local/bin/fleetadm", "status", "--id", "a b"])
    assert command_line(prog="dingoadm") == "dingoadm status --id 'a b'"


def test_hosts_login_uses_the_stored_directory(cli, monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(cluster_commands, "attach", lambda spec, settings: calls.append(spec.hostname) or 255)
    cli.store.set_hosts(HOSTS_YAML)
    assert cli.invoke("hosts", "login", "host3").exit_code == 255
    assert calls == ["10.0.0.3"]
    assert cli.invoke("hosts", "login", "host9").exit_code == 1
    assert "code: 110005" in cli.ui.text


def test_config_commit_and_show(cli) -> None:
    cli.store.add_cluster("demo", STORE_TOPOLOGY)
    path = cli.tmp_path / "new.yaml"
    path.write_text(STORE_TOPOLOGY.replace("data_dir: /data/store", "data_dir: /data/store2"))
    assert cli.invoke("config", "commit", str(path), input="n\n").exit_code == 1
    assert "/data/store2" not in cli.store.get_cluster().topology

    assert cli.invoke("config", "commit", str(path), "-f").exit_code == 0
    assert "Cluster 'demo' topology updated" in cli.ui.lines
    assert cli.invoke("config", "show").exit_code == 0
    assert "data_dir: /data/store2" in cli.ui.lines[-1]


def test_config_commit_rejects_invalid_topology(cli) -> None:
    cli.store.add_cluster("demo", STORE_TOPOLOGY)
    path = cli.tmp_path / "bad.yaml"
    path.write_text("kind: nosuch\n")
    assert cli.invoke("config", "commit", str(path), "-f").exit_code == 1
    assert cli.store.get_cluster().topology == STORE_TOPOLOGY
