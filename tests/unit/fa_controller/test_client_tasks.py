"""Filesystem client tasks run against fake shells."""

from __future__ import annotations

import pytest

from fa_common.errors import (
    ERR_KERNEL_MODULE_MISSING,
    ERR_MOUNT_FAILED,
    ERR_UMOUNT_FAILED,
    ConstructionError,
    TaskError,
)
from fa_controller.context import KEY_ALL_CLIENT_STATUS
from fa_controller.plans.client import (
    build_client_status_playbook,
    build_mount_playbook,
    build_umount_playbook,
)
from fa_controller.store import ClientRecord, ClusterStore
from fa_controller.tasks import client as client_tasks
from fa_topology.models import ClientConfig
from tests.helpers.fleet import FakeWorld, failed, make_hosts, make_plan, ok


pytestmark = pytest.mark.unit_controller


@pytest.fixture(autouse=True)
def _no_mount_wait(monkeypatch) -> None:
    monkeypatch.setattr(client_tasks, "MOUNT_WAIT_SECONDS", 0)


@pytest.fixture
def store(tmp_path) -> ClusterStore:
    return ClusterStore(tmp_path)


def _client(**overrides) -> ClientConfig:
    values = dict(host="client1", mount_point="/mnt/fs", fs_name="fs1", mds_addrs=["10.0.0.1:7400"])
    values.update(overrides)
    return ClientConfig(**values)


def _plan(world: FakeWorld, store: ClusterStore):
    return make_plan(world, hosts=make_hosts("client1", "client2"), store=store)


def _mounting(world: FakeWorld, mounted: bool = True) -> None:
    def respond(host: str, cmd: str):
        if "docker run --name dingofs-client-" in cmd:
            return ok(f"cid-{host}")
        if "ps --all --filter id=" in cmd:
            return ok(f"cid-{host}")
        if "inspect --format" in cmd:
            return ok("running")
        if "/proc/mounts" in cmd:
            return ok("dingofs /mnt/fs fuse.dingofs rw 0 0") if mounted else failed("", 1)
        return None

    world.respond(respond)


def test_mount_records_client(store) -> None:
    world = FakeWorld()
    _mounting(world)
    cc = _client()
    build_mount_playbook(_plan(world, store), [cc], {"cache_size": "100"}, insecure=True).run()

    record = store.get_client(cc.id)
    assert record.container_id == "cid-client1"
    assert record.mount_point == "/mnt/fs"
    commands = world.commands_on("client1")
    assert commands[0] == "mkdir -p /mnt/fs"
    run = next(cmd for cmd in commands if "docker run" in cmd)
    assert "--env FS_NAME=fs1" in run
    assert "--env MDS_ADDR=10.0.0.1:7400" in run
    assert "--env cache_size=100" in run
    assert "--volume /mnt/fs:/dingofs/client/mnt:rshared" in run


def test_mount_point_already_used(store) -> None:
    world = FakeWorld()
    _mounting(world)
    cc = _client()
    store.add_client(ClientRecord(cc.id, cc.host, cc.kind, "old", cc.mount_point, cc.fs_name))
    with pytest.raises(ConstructionError) as excinfo:
        build_mount_playbook(_plan(world, store), [cc], insecure=True).run()
    assert excinfo.value.code is ERR_MOUNT_FAILED
    assert world.commands == []


def test_mount_not_visible_in_proc_mounts(store) -> None:
    world = FakeWorld()
    _mounting(world, mounted=False)
    with pytest.raises(TaskError) as excinfo:
        build_mount_playbook(_plan(world, store), [_client()], insecure=True).run()
    assert excinfo.value.code is ERR_MOUNT_FAILED


def test_missing_kernel_module(store) -> None:
    world = FakeWorld()
    world.respond(lambda host, cmd: failed("") if cmd.startswith(("lsmod", "modprobe")) else None)
    with pytest.raises(TaskError) as excinfo:
        build_mount_playbook(_plan(world, store), [_client()]).run()
    assert excinfo.value.code is ERR_KERNEL_MODULE_MISSING
    assert not any("docker run" in cmd for _, cmd in world.commands)


def test_mds_check_requires_addresses(store) -> None:
    world = FakeWorld()
    with pytest.raises(ConstructionError):
        build_mount_playbook(_plan(world, store), [_client(mds_addrs=[])]).run()


def test_umount_removes_container_and_record(store) -> None:
    record = ClientRecord("c1", "client1", "dingofs", "cid-client1", "/mnt/fs", "fs1")
    store.add_client(record)
    world = FakeWorld()
    build_umount_playbook(_plan(world, store), [record], force=True).run()
    assert world.commands_on("client1") == ["umount -l /mnt/fs", "sudo docker rm -f cid-client1"]
    assert store.list_clients() == []


def test_umount_tolerates_not_mounted(store) -> None:
    record = ClientRecord("c1", "client1", "dingofs", "cid", "/mnt/fs")
    world = FakeWorld()
    world.respond(lambda host, cmd: failed("umount: /mnt/fs: not mounted.") if cmd.startswith("umount") else None)
    build_umount_playbook(_plan(world, store), [record]).run()


def test_umount_failure(store) -> None:
    record = ClientRecord("c1", "client1", "dingofs", "cid", "/mnt/fs")
    world = FakeWorld()
    world.respond(lambda host, cmd: failed("target is busy") if cmd.startswith("umount") else None)
    with pytest.raises(TaskError) as excinfo:
        build_umount_playbook(_plan(world, store), [record]).run()
    assert excinfo.value.code is ERR_UMOUNT_FAILED


def test_client_status(store) -> None:
    records = [
        ClientRecord("c1", "client1", "dingofs", "cid1", "/mnt/a", "fs1"),
        ClientRecord("c2", "client2", "dingofs", "cid2", "/mnt/b", "fs2"),
    ]
    world = FakeWorld()
    world.respond(lambda host, cmd: ok("Up 1 hour") if host == "client1" and "{{.Status}}" in cmd else None)
    plan = _plan(world, store)
    build_client_status_playbook(plan, records).run()
    statuses = plan.deps.shared.snapshot(KEY_ALL_CLIENT_STATUS)
    assert statuses["c1"].status == "Up 1 hour"
    assert statuses["c2"].status == "Lost"
