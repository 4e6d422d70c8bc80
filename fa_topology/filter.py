"""Service id derivation and id/role/host selection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from fa_topology.models import DeployConfig, short_hash

WILDCARD = "*"


def service_id(cluster: str, dc_id: str) -> str:
    """Stable id correlating a deploy config with its stored container."""
    return short_hash(f"{cluster}_{dc_id}")


@dataclass(frozen=True)
class FilterOption:
    id: str = WILDCARD
    role: str = WILDCARD
    host: str = WILDCARD

    def matches(self, dc: DeployConfig, cluster: str) -> bool:
        return (
            (self.id == WILDCARD or self.id == service_id(cluster, dc.id))
            and (self.role == WILDCARD or self.role == dc.role)
            and (self.host == WILDCARD or self.host == dc.host)
        )


def filter_deploy_configs(
    configs: List[DeployConfig],
    cluster: str,
    option: FilterOption | None = None,
) -> List[DeployConfig]:
    """Keep entries matching every non-wildcard field, preserving order."""
    option = option or FilterOption()
    return [dc for dc in configs if option.matches(dc, cluster)]


def filter_by_role(configs: List[DeployConfig], role: str) -> List[DeployConfig]:
    return [dc for dc in configs if dc.role == role]


def skip_roles(configs: List[DeployConfig], roles: List[str]) -> List[DeployConfig]:
    skipped = set(roles)
    return [dc for dc in configs if dc.role not in skipped]
