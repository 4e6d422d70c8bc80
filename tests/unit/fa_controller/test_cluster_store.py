"""Tests for local cluster records and the audit log."""

from __future__ import annotations

import json

import pytest

from fa_common.errors import (
    ERR_CANCEL_OPERATION,
    ERR_PORT_IN_USE,
    ERR_READ_STORE_FAILED,
    CancelledByUser,
    ConfigurationError,
    FAError,
    TaskError,
)
from fa_controller.store import (
    AUDIT_ABORT,
    AUDIT_CANCEL,
    AUDIT_FAIL,
    AUDIT_SUCCESS,
    AuditEntry,
    AuditLog,
    ClientRecord,
    ClusterStore,
)


pytestmark = pytest.mark.unit_controller


def test_first_cluster_becomes_current(tmp_path) -> None:
    store = ClusterStore(tmp_path)
    store.add_cluster("one", "kind: dingofs")
    store.add_cluster("two", "kind: dingo-store")
    assert store.current == "one"
    assert store.get_cluster().name == "one"
    store.checkout("two")
    assert ClusterStore(tmp_path).get_cluster().topology == "kind: dingo-store"


def test_duplicate_and_missing_clusters(tmp_path) -> None:
    store = ClusterStore(tmp_path)
    store.add_cluster("one", "")
    with pytest.raises(ConfigurationError):
        store.add_cluster("one", "")
    with pytest.raises(ConfigurationError):
        store.checkout("nope")
    store.remove_cluster("one")
    assert store.current == ""
    with pytest.raises(ConfigurationError):
        store.get_cluster()


def test_container_ids_are_persisted(tmp_path) -> None:
    store = ClusterStore(tmp_path)
    store.add_cluster("one", "")
    assert store.get_container_id("one", "svc") == ""
    store.set_container_id("one", "svc", "abc123")
    assert ClusterStore(tmp_path).get_container_id("one", "svc") == "abc123"
    with pytest.raises(ConfigurationError):
        store.set_container_id("ghost", "svc", "x")


def test_hosts_monitor_and_clients(tmp_path) -> None:
    store = ClusterStore(tmp_path)
    store.add_cluster("one", "")
    store.set_hosts("hosts: []")
    store.set_monitor("one", "prometheus: {}")
    store.add_client(ClientRecord("c1", "h1", "dingofs", "cid", "/mnt/fs", "fs1"))
    reloaded = ClusterStore(tmp_path)
    assert reloaded.get_hosts() == "hosts: []"
    assert reloaded.get_cluster("one").monitor == "prometheus: {}"
    assert reloaded.get_client("c1").mount_point == "/mnt/fs"
    reloaded.remove_client("c1")
    assert reloaded.list_clients() == []


def test_corrupt_store_file(tmp_path) -> None:
    (tmp_path / "clusters.json").write_text("{not json")
    with pytest.raises(FAError) as excinfo:
        ClusterStore(tmp_path)
    assert excinfo.value.code is ERR_READ_STORE_FAILED


def test_audit_log_appends_json_lines(tmp_path) -> None:
    audit = AuditLog(tmp_path)
    first = audit.record("fleetadm deploy", AUDIT_SUCCESS, cwd="/work")
    second = audit.record("fleetadm stop", AUDIT_FAIL, 320001, cwd="/work")
    assert (first.id, second.id) == (1, 2)
    lines = (tmp_path / "audit.log").read_text().splitlines()
    assert json.loads(lines[1])["error_code"] == 320001
    assert [entry.command for entry in audit.tail(1)] == ["fleetadm stop"]
    assert len(audit.tail()) == 2


@pytest.mark.parametrize(
    "error, expected",
    [
        (None, (AUDIT_SUCCESS, 0)),
        (CancelledByUser("no"), (AUDIT_CANCEL, ERR_CANCEL_OPERATION.code)),
        (TaskError("busy", code=ERR_PORT_IN_USE), (AUDIT_FAIL, ERR_PORT_IN_USE.code)),
        (KeyboardInterrupt(), (AUDIT_ABORT, 0)),
    ],
)
def test_audit_status_for_outcome(error, expected) -> None:
    assert AuditEntry.for_error(error) == expected
