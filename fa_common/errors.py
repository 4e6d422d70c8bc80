"""Shared error taxonomy and error-code catalog for fleetadm."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence, TypeVar


def _normalize_context_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return normalize_context(value)
    if isinstance(value, (list, tuple)):
        return [_normalize_context_value(item) for item in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def normalize_context(context: Mapping[str, Any]) -> dict[str, Any]:
    """Return a JSON-friendly copy of an error context mapping."""
    return {key: _normalize_context_value(val) for key, val in context.items()}


@dataclass(frozen=True)
class ErrorCode:
    """Numeric error code with a human description.

    Lower non-zero codes are more severe; ``ERR_OK`` (0) means success.
    """

    code: int
    description: str

    @property
    def ok(self) -> bool:
        return self.code == 0

    def error(
        self,
        detail: str | None = None,
        *,
        error_cls: type["FAError"] | None = None,
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> "FAError":
        """Build an exception carrying this code."""
        message = self.description if not detail else f"{self.description}: {detail}"
        cls = error_cls or FAError
        return cls(message, code=self, context=context, cause=cause)

    def e(self, exc: Exception, **kwargs: Any) -> "FAError":
        """Attach an underlying exception as detail and cause."""
        return self.error(str(exc), cause=exc, **kwargs)

    def f(self, fmt: str, *args: Any, **kwargs: Any) -> "FAError":
        """Attach a formatted detail string."""
        return self.error(fmt % args if args else fmt, **kwargs)

    def __str__(self) -> str:
        return f"{self.code}: {self.description}"


ERR_OK = ErrorCode(0, "success")

# configuration / input
ERR_INVALID_SETTINGS = ErrorCode(110001, "invalid fleetadm settings")
ERR_INVALID_TOPOLOGY = ErrorCode(110002, "invalid cluster topology")
ERR_UNSUPPORTED_CLUSTER_KIND = ErrorCode(110003, "unsupported cluster kind")
ERR_CONFIG_KIND_MISMATCH = ErrorCode(110004, "config kind mismatch")
ERR_HOST_NOT_FOUND = ErrorCode(110005, "host not found in hosts directory")
ERR_NO_SERVICES_MATCHED = ErrorCode(110006, "no services matched")
ERR_UNSUPPORTED_SKIPPED_CHECK_ITEM = ErrorCode(110007, "unsupported skipped check item")
ERR_UNSUPPORTED_CLEAN_ITEM = ErrorCode(110008, "unsupported clean item")
ERR_UNSUPPORTED_SKIPPED_SERVICE_ROLE = ErrorCode(110009, "unsupported skipped service role")
ERR_INVALID_CLIENT_CONFIG = ErrorCode(110010, "invalid client configuration")
ERR_INVALID_MONITOR_CONFIG = ErrorCode(110011, "invalid monitor configuration")
ERR_NO_HOSTS_MATCHED = ErrorCode(110012, "no hosts matched")
ERR_PLAYBOOK_NOT_FOUND = ErrorCode(110013, "playbook script not found")

# task construction
ERR_UNKNOWN_TASK_TYPE = ErrorCode(120001, "unknown task type")
ERR_BUILD_TASK_FAILED = ErrorCode(120002, "build task failed")

# user interaction
ERR_CANCEL_OPERATION = ErrorCode(130001, "operation cancelled by user")

# rpc
ERR_RPC_FAILED = ErrorCode(200001, "rpc failed")

# remote execution
ERR_EXECUTE_COMMAND_FAILED = ErrorCode(300001, "execute command failed")
ERR_EXECUTE_COMMAND_TIMED_OUT = ErrorCode(300002, "execute command timed out")
ERR_CONNECT_REMOTE_HOST_FAILED = ErrorCode(300003, "connect remote host failed")
ERR_COPY_FILE_FAILED = ErrorCode(300004, "copy file to remote host failed")
ERR_CONTAINER_NOT_FOUND = ErrorCode(310001, "container not found")
ERR_CONTAINER_IS_ABNORMAL = ErrorCode(310002, "container is abnormal")
ERR_PORT_IN_USE = ErrorCode(320001, "port is already in use")
ERR_HOST_UNREACHABLE = ErrorCode(320002, "destination host is unreachable")
ERR_HOST_DATE_SKEW = ErrorCode(320003, "host date differs too much")
ERR_KERNEL_TOO_OLD = ErrorCode(320004, "kernel version is too old")
ERR_PERMISSION_DENIED = ErrorCode(320005, "permission denied")
ERR_KERNEL_MODULE_MISSING = ErrorCode(320006, "kernel module is not loaded")
ERR_INVALID_DATE_FORMAT = ErrorCode(320007, "invalid host date format")
ERR_UNRECOGNIZED_KERNEL_VERSION = ErrorCode(320008, "unrecognized kernel version")
ERR_INVALID_TOPOLOGY_ADDRESS = ErrorCode(320009, "duplicate service address in topology")
ERR_STORE_UNHEALTHY = ErrorCode(330001, "store cluster is unhealthy")
ERR_CREATE_META_TABLES_FAILED = ErrorCode(330002, "create meta tables failed")
ERR_MOUNT_FAILED = ErrorCode(340001, "mount filesystem failed")
ERR_UMOUNT_FAILED = ErrorCode(340002, "umount filesystem failed")

# local storage
ERR_WRITE_FILE_FAILED = ErrorCode(350001, "write file failed")
ERR_READ_STORE_FAILED = ErrorCode(350002, "read cluster store failed")

ERR_UNKNOWN = ErrorCode(999999, "unknown error")


def most_severe(codes: Iterable[ErrorCode]) -> ErrorCode:
    """Return the most severe (lowest non-zero) code, or ``ERR_OK``."""
    failing = [code for code in codes if not code.ok]
    if not failing:
        return ERR_OK
    return min(failing, key=lambda code: code.code)


class FAError(Exception):
    """Base error type for typed failure handling."""

    default_code: ErrorCode = ERR_UNKNOWN

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code or self.default_code
        self.context = normalize_context(context or {})
        if cause is not None:
            self.__cause__ = cause

    @property
    def error_type(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.error_type,
            "code": self.code.code,
            "message": str(self),
            "context": self.context,
        }


class ConfigurationError(FAError):
    """Invalid settings, topology, or misuse of a config projection."""

    default_code = ERR_INVALID_TOPOLOGY


class ConstructionError(FAError):
    """Failure while building the tasks of a step."""

    default_code = ERR_BUILD_TASK_FAILED


class CancelledByUser(FAError):
    """The interactive confirmation was declined."""

    default_code = ERR_CANCEL_OPERATION


class RpcError(FAError):
    """Remote procedure call failed on every candidate address."""

    default_code = ERR_RPC_FAILED


class RemoteExecutionError(FAError):
    """Failure in the SSH transport layer."""

    default_code = ERR_CONNECT_REMOTE_HOST_FAILED


class TaskError(FAError):
    """One task's remote operation failed."""

    default_code = ERR_EXECUTE_COMMAND_FAILED

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        host: str | None = None,
        output: str = "",
        stderr: str = "",
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, code=code, context=context, cause=cause)
        self.host = host
        self.output = output
        self.stderr = stderr


class AggregateError(FAError):
    """Several task failures merged into one reported failure."""

    def __init__(self, errors: Sequence[FAError]) -> None:
        self.errors = list(errors)
        lines = []
        for err in self.errors:
            host = getattr(err, "host", None)
            lines.append(f"[{host}] {err}" if host else str(err))
        super().__init__(
            "\n".join(lines),
            code=most_severe(err.code for err in self.errors),
            context={"failures": len(self.errors)},
        )


T = TypeVar("T", bound=FAError)


def wrap_error(
    error_cls: type[T],
    message: str,
    *,
    code: Optional[ErrorCode] = None,
    context: Mapping[str, Any] | None = None,
    cause: Exception | None = None,
) -> T:
    """Create a typed FAError with optional code, context and cause."""
    return error_cls(message, code=code, context=context, cause=cause)


def error_to_payload(error: FAError) -> dict[str, Any]:
    """Convert an FAError to an audit/report payload."""
    return {
        "error_type": error.error_type,
        "error": str(error),
        "error_code": error.code.code,
        "error_context": error.context,
    }
