"""RPC retry/failover over pooled connections."""

from fa_rpc.api import ConnectionPool, Rpc, call_rpc, get_rpc_response

__all__ = ["ConnectionPool", "Rpc", "call_rpc", "get_rpc_response"]
