"""Public API surface for fa_rpc."""

from fa_rpc.client import ProbeStub, Rpc, RpcStub, call_rpc, get_rpc_response
from fa_rpc.pool import ConnectionPool, default_pool, split_address, tcp_dialer

__all__ = [
    "ConnectionPool",
    "ProbeStub",
    "Rpc",
    "RpcStub",
    "call_rpc",
    "default_pool",
    "get_rpc_response",
    "split_address",
    "tcp_dialer",
]
