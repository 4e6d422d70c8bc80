"""Tests for the process-wide shared context."""

from __future__ import annotations

import threading

import pytest

from fa_controller.context import SharedContext


pytestmark = pytest.mark.unit_controller


def test_get_set_and_update() -> None:
    ctx = SharedContext()
    assert ctx.get("missing", "dflt") == "dflt"
    ctx.set("a", 1)
    ctx.update({"b": 2, "a": 3})
    assert (ctx.get("a"), ctx.get("b")) == (3, 2)


def test_merge_from_many_threads_keeps_every_item() -> None:
    ctx = SharedContext()
    threads = [
        threading.Thread(target=ctx.merge, args=("bucket", f"k{i}", i)) for i in range(50)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert len(ctx.snapshot("bucket")) == 50


def test_transactions_serialize_read_modify_write() -> None:
    ctx = SharedContext()

    def bump() -> None:
        for _ in range(100):
            with ctx.begin() as tx:
                tx.set("counter", tx.get("counter", 0) + 1)

    threads = [threading.Thread(target=bump) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert ctx.get("counter") == 800


@pytest.mark.parametrize(
    "reenter",
    [
        lambda ctx: ctx.get("a"),
        lambda ctx: ctx.set("a", 2),
        lambda ctx: ctx.merge("bucket", "k", 1),
        lambda ctx: ctx.snapshot("bucket"),
    ],
    ids=["get", "set", "merge", "snapshot"],
)
def test_reentry_inside_transaction_raises(reenter) -> None:
    ctx = SharedContext()
    outcome: list[BaseException] = []

    def worker() -> None:
        try:
            with ctx.begin() as tx:
                tx.set("a", 1)
                reenter(ctx)
        except RuntimeError as exc:
            outcome.append(exc)

    thread = threading.Thread(target=worker, daemon=True)
    thread.start()
    thread.join(2.0)
    assert not thread.is_alive()
    assert "re-entered SharedContext" in str(outcome[0])
    # the lock is released on the way out
    ctx.set("a", 3)
    assert ctx.get("a") == 3


def test_other_threads_wait_for_the_transaction() -> None:
    ctx = SharedContext()
    seen: list[int] = []
    with ctx.begin() as tx:
        tx.set("a", 1)
        reader = threading.Thread(target=lambda: seen.append(ctx.get("a")), daemon=True)
        reader.start()
        reader.join(0.2)
        assert reader.is_alive()
        tx.set("a", 2)
    reader.join(2.0)
    assert seen == [2]


def test_transaction_is_closed_after_block() -> None:
    ctx = SharedContext()
    with ctx.begin() as tx:
        tx.set("x", 1)
        assert tx.get("x") == 1
    with pytest.raises(RuntimeError):
        tx.get("x")
    assert ctx.get("x") == 1


def test_snapshot_is_a_copy() -> None:
    ctx = SharedContext()
    ctx.merge("bucket", "a", 1)
    snap = ctx.snapshot("bucket")
    snap["b"] = 2
    assert ctx.snapshot("bucket") == {"a": 1}
    assert ctx.snapshot("nothing") == {}
