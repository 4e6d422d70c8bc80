"""Tests for RPC retry and address failover."""

from __future__ import annotations

from typing import Any, List

import pytest

from fa_common.errors import ERR_OK, ERR_RPC_FAILED, RpcError
from fa_rpc.client import ProbeStub, Rpc, call_rpc, get_rpc_response
from fa_rpc.pool import ConnectionPool


pytestmark = pytest.mark.unit_rpc


class ScriptedStub:
    """Replays a list of outcomes: exceptions are raised, values returned."""

    def __init__(self, outcomes: List[Any], retry_value: Any = "RETRY") -> None:
        self.outcomes = list(outcomes)
        self.retry_value = retry_value
        self.calls = 0
        self.bound: List[Any] = []

    def bind(self, conn: Any) -> None:
        self.bound.append(conn)

    def call(self, timeout: float) -> Any:
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def needs_retry(self, response: Any) -> bool:
        return response == self.retry_value


class FakeDialer:
    def __init__(self, down: tuple = ()) -> None:
        self.down = set(down)
        self.dialed: List[str] = []

    def __call__(self, address: str, timeout: float) -> str:
        self.dialed.append(address)
        if address in self.down:
            raise ConnectionRefusedError(address)
        return f"conn-{address}"


def _rpc(*addrs: str, retry_times: int = 3) -> Rpc:
    return Rpc(addrs=list(addrs), retry_times=retry_times, retry_delay=0.5, func_name="GetStatus")


def test_success_on_first_attempt() -> None:
    pool = ConnectionPool(FakeDialer())
    stub = ScriptedStub(["pong"])
    response, code = get_rpc_response(_rpc("a:1"), stub, pool, sleep=lambda _: None)
    assert (response, code) == ("pong", ERR_OK)
    assert pool.idle_count("a:1") == 1


def test_transport_failures_retry_until_budget_is_spent() -> None:
    sleeps: List[float] = []
    stub = ScriptedStub([OSError("reset")] * 4)
    response, code = get_rpc_response(_rpc("a:1", "b:2"), stub, ConnectionPool(FakeDialer()), sleep=sleeps.append)
    assert response is None
    assert code is ERR_RPC_FAILED
    assert stub.calls == 4
    assert sleeps == [0.5, 0.5, 0.5]
    # connected address is never abandoned for the next one
    assert stub.bound == ["conn-a:1"]


@pytest.mark.parametrize("retry_times", [1, 2, 5])
def test_transport_failures_then_success_on_same_address(retry_times: int) -> None:
    sleeps: List[float] = []
    stub = ScriptedStub([OSError("reset")] * (retry_times - 1) + ["ok"])
    response, code = get_rpc_response(
        _rpc("a:1", "b:2", retry_times=retry_times), stub, ConnectionPool(FakeDialer()), sleep=sleeps.append
    )
    assert (response, code) == ("ok", ERR_OK)
    assert stub.calls == retry_times
    assert len(sleeps) == retry_times - 1
    assert stub.bound == ["conn-a:1"]


def test_retryable_status_then_success() -> None:
    stub = ScriptedStub(["RETRY", "RETRY", "done"])
    response, code = get_rpc_response(_rpc("a:1"), stub, ConnectionPool(FakeDialer()), sleep=lambda _: None)
    assert (response, code) == ("done", ERR_OK)
    assert stub.calls == 3


def test_retryable_status_with_exhausted_budget_is_returned() -> None:
    stub = ScriptedStub(["RETRY", "RETRY"])
    response, code = get_rpc_response(
        _rpc("a:1", retry_times=1), stub, ConnectionPool(FakeDialer()), sleep=lambda _: None
    )
    assert (response, code) == ("RETRY", ERR_OK)


def test_connect_failure_fails_over_to_next_address() -> None:
    dialer = FakeDialer(down=("a:1",))
    stub = ScriptedStub(["pong"])
    response, code = get_rpc_response(_rpc("a:1", "b:2"), stub, ConnectionPool(dialer), sleep=lambda _: None)
    assert (response, code) == ("pong", ERR_OK)
    assert dialer.dialed == ["a:1", "b:2"]


def test_every_address_unreachable() -> None:
    dialer = FakeDialer(down=("a:1", "b:2"))
    with pytest.raises(RpcError) as excinfo:
        call_rpc(_rpc("a:1", "b:2"), ScriptedStub([]), ConnectionPool(dialer), sleep=lambda _: None)
    assert excinfo.value.code is ERR_RPC_FAILED
    assert excinfo.value.context["address"] == "b:2"


def test_empty_address_list_fails() -> None:
    response, code = get_rpc_response(_rpc(), ScriptedStub([]), ConnectionPool(FakeDialer()))
    assert (response, code) == (None, ERR_RPC_FAILED)


def test_probe_stub_uses_socket_api() -> None:
    class Sock:
        def settimeout(self, value):
            self.timeout = value

        def getpeername(self):
            return ("10.0.0.1", 6900)

    sock = Sock()
    stub = ProbeStub()
    stub.bind(sock)
    assert stub.call(1.5) == ("10.0.0.1", 6900)
    assert sock.timeout == 1.5
    assert stub.needs_retry(("10.0.0.1", 6900)) is False
