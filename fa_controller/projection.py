"""Uniform positional view over one homogeneous list of config records."""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Generic, List, Sequence, TypeVar

from fa_common.errors import ERR_CONFIG_KIND_MISMATCH, ConfigurationError
from fa_topology.models import ClientConfig, DeployConfig, MonitorConfig

T = TypeVar("T")


class ConfigKind(str, Enum):
    DEPLOY = "deploy"
    CLIENT = "client"
    MONITOR = "monitor"
    GENERIC = "generic"


def kind_of(record: Any) -> ConfigKind:
    if isinstance(record, DeployConfig):
        return ConfigKind.DEPLOY
    if isinstance(record, ClientConfig):
        return ConfigKind.CLIENT
    if isinstance(record, MonitorConfig):
        return ConfigKind.MONITOR
    return ConfigKind.GENERIC


class ConfigProjection(Generic[T]):
    """Indexable view that refuses mixed kinds and mismatched accessors.

    An empty projection has kind ``GENERIC`` unless ``kind`` is given.
    """

    def __init__(self, records: Sequence[T], kind: ConfigKind | None = None) -> None:
        self._records: List[T] = list(records)
        kinds = {kind_of(record) for record in self._records}
        if len(kinds) > 1:
            raise ERR_CONFIG_KIND_MISMATCH.f(
                "mixed config kinds: %s",
                ", ".join(sorted(k.value for k in kinds)),
                error_cls=ConfigurationError,
            )
        actual = kinds.pop() if kinds else None
        if kind is not None and actual is not None and kind != actual:
            raise ERR_CONFIG_KIND_MISMATCH.f(
                "expected %s configs, got %s", kind.value, actual.value, error_cls=ConfigurationError
            )
        self.kind: ConfigKind = actual or kind or ConfigKind.GENERIC

    @classmethod
    def of(cls, records: Any) -> "ConfigProjection[Any]":
        if isinstance(records, ConfigProjection):
            return records
        return cls(records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(self._records)

    def _get(self, index: int, expected: ConfigKind) -> Any:
        if self.kind != expected:
            raise ERR_CONFIG_KIND_MISMATCH.f(
                "%s accessor used on %s configs", expected.value, self.kind.value,
                error_cls=ConfigurationError,
            )
        return self._records[index]

    def get_deploy(self, index: int) -> DeployConfig:
        return self._get(index, ConfigKind.DEPLOY)

    def get_client(self, index: int) -> ClientConfig:
        return self._get(index, ConfigKind.CLIENT)

    def get_monitor(self, index: int) -> MonitorConfig:
        return self._get(index, ConfigKind.MONITOR)

    def get_generic(self, index: int) -> Any:
        return self._get(index, ConfigKind.GENERIC)

    def accessor(self, kind: ConfigKind) -> Callable[[int], Any]:
        """Typed getter for ``kind``; calling it on another kind raises."""
        return {
            ConfigKind.DEPLOY: self.get_deploy,
            ConfigKind.CLIENT: self.get_client,
            ConfigKind.MONITOR: self.get_monitor,
            ConfigKind.GENERIC: self.get_generic,
        }[kind]
