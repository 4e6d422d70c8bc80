"""Per-address pool of reusable RPC connections."""

from __future__ import annotations

import logging
import socket
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Dialer = Callable[[str, float], Any]


def split_address(address: str) -> tuple[str, int]:
    """Split ``host:port``; IPv6 hosts may be bracketed."""
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid address {address!r}, expected host:port")
    return host.strip("[]"), int(port)


def tcp_dialer(address: str, timeout: float) -> socket.socket:
    return socket.create_connection(split_address(address), timeout=timeout)


class ConnectionPool:
    """Idle connections keyed by address.

    Growth is unbounded: a checkout with no idle connection dials a new one.
    """

    def __init__(self, dialer: Dialer | None = None) -> None:
        self._dialer = dialer or tcp_dialer
        self._idle: Dict[str, List[Any]] = defaultdict(list)
        self._lock = threading.Lock()

    def get_connection(self, address: str, timeout: float) -> Any:
        with self._lock:
            idle = self._idle.get(address)
            if idle:
                return idle.pop()
        logger.debug("Dialing %s (timeout=%ss)", address, timeout)
        return self._dialer(address, timeout)

    def put_connection(self, address: str, conn: Any) -> None:
        with self._lock:
            self._idle[address].append(conn)

    def idle_count(self, address: str) -> int:
        with self._lock:
            return len(self._idle.get(address, []))

    def close(self) -> None:
        with self._lock:
            pools = list(self._idle.values())
            self._idle.clear()
        for conns in pools:
            for conn in conns:
                closer = getattr(conn, "close", None)
                if callable(closer):
                    closer()


_default_pool = ConnectionPool()


def default_pool() -> ConnectionPool:
    return _default_pool
