"""One remote call against a list of candidate addresses with bounded retry."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Protocol, Tuple

from fa_common.errors import ERR_OK, ERR_RPC_FAILED, ErrorCode, RpcError
from fa_rpc.pool import ConnectionPool, default_pool

logger = logging.getLogger(__name__)


@dataclass
class Rpc:
    """Call parameters shared by every attempt."""

    addrs: List[str]
    timeout: float = 10.0
    retry_times: int = 3
    retry_delay: float = 0.2
    func_name: str = ""
    data_show: bool = False


class RpcStub(Protocol):
    """Marshals one request type over a pooled connection."""

    def bind(self, conn: Any) -> None:
        """Attach the stub to a checked-out connection."""

    def call(self, timeout: float) -> Any:
        """Issue the request; raise on transport failure."""

    def needs_retry(self, response: Any) -> bool:
        """True for application statuses that should be retried."""


@dataclass
class _Outcome:
    address: str = ""
    code: ErrorCode = ERR_RPC_FAILED
    response: Any = None
    detail: Optional[str] = None


def _invoke(
    rpc: Rpc,
    stub: RpcStub,
    pool: ConnectionPool,
    sleep: Callable[[float], None],
) -> _Outcome:
    outcome = _Outcome(detail="no candidate address")
    for address in rpc.addrs:
        try:
            conn = pool.get_connection(address, rpc.timeout)
        except Exception as exc:  # noqa: BLE001
            logger.warning("%s: connect for rpc [%s] failed: %s", address, rpc.func_name, exc)
            outcome = _Outcome(address, ERR_RPC_FAILED, None, str(exc))
            continue

        stub.bind(conn)
        retry_times = rpc.retry_times
        logger.info(
            "%s: start rpc [%s], timeout[%s], retrytimes[%d]",
            address,
            rpc.func_name,
            rpc.timeout,
            retry_times,
        )
        while True:
            try:
                response = stub.call(rpc.timeout)
            except Exception as exc:  # noqa: BLE001
                if retry_times > 0:
                    logger.info(
                        "%s: rpc [%s] failed, retrytimes[%d], retrying: %s",
                        address,
                        rpc.func_name,
                        retry_times,
                        exc,
                    )
                    sleep(rpc.retry_delay)
                    retry_times -= 1
                    continue
                logger.warning("%s: rpc [%s] failed: %s", address, rpc.func_name, exc)
                outcome = _Outcome(address, ERR_RPC_FAILED, None, str(exc))
                break

            if stub.needs_retry(response) and retry_times > 0:
                logger.info(
                    "%s: rpc [%s] returned a retryable status, retrytimes[%d], retrying",
                    address,
                    rpc.func_name,
                    retry_times,
                )
                sleep(rpc.retry_delay)
                retry_times -= 1
                continue

            outcome = _Outcome(address, ERR_OK, response)
            if rpc.data_show:
                logger.info("%s: rpc [%s] response: %s", address, rpc.func_name, response)
            else:
                logger.info("%s: rpc [%s] succeeded", address, rpc.func_name)
            break

        pool.put_connection(address, conn)
        break
    return outcome


def get_rpc_response(
    rpc: Rpc,
    stub: RpcStub,
    pool: ConnectionPool | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Tuple[Any, ErrorCode]:
    """Return ``(response, ERR_OK)`` or ``(None, ERR_RPC_FAILED)``.

    Addresses are tried in order only while connecting fails. Once a
    connection is established every retry goes to that address, and the
    remaining addresses are not attempted even when the budget runs out.
    """
    outcome = _invoke(rpc, stub, pool or default_pool(), sleep)
    if not outcome.code.ok:
        return None, outcome.code
    return outcome.response, outcome.code


def call_rpc(
    rpc: Rpc,
    stub: RpcStub,
    pool: ConnectionPool | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """Like :func:`get_rpc_response` but raise ``RpcError`` on failure."""
    outcome = _invoke(rpc, stub, pool or default_pool(), sleep)
    if not outcome.code.ok:
        raise outcome.code.error(
            f"{rpc.func_name or 'rpc'} via {outcome.address or '-'}: {outcome.detail}",
            error_cls=RpcError,
            context={"address": outcome.address, "addrs": rpc.addrs},
        )
    return outcome.response


@dataclass
class ProbeStub:
    """Reachability probe: succeeds while the pooled connection is alive."""

    _conn: Any = field(default=None, init=False, repr=False)

    def bind(self, conn: Any) -> None:
        self._conn = conn

    def call(self, timeout: float) -> Any:
        self._conn.settimeout(timeout)
        return self._conn.getpeername()

    def needs_retry(self, response: Any) -> bool:
        return False
