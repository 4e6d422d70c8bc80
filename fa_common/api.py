"""Public API surface for fa_common."""

from fa_common.errors import (
    AggregateError,
    CancelledByUser,
    ConfigurationError,
    ConstructionError,
    ErrorCode,
    FAError,
    RemoteExecutionError,
    RpcError,
    TaskError,
    error_to_payload,
    most_severe,
    wrap_error,
)
from fa_common.hosts import HostSpec
from fa_common.logging import configure_logging
from fa_common.settings import FleetSettings, load_settings

__all__ = [
    "AggregateError",
    "CancelledByUser",
    "ConfigurationError",
    "ConstructionError",
    "ErrorCode",
    "FAError",
    "FleetSettings",
    "HostSpec",
    "RemoteExecutionError",
    "RpcError",
    "TaskError",
    "configure_logging",
    "error_to_payload",
    "load_settings",
    "most_severe",
    "wrap_error",
]
