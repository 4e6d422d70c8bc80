"""Public API surface for fa_topology."""

from fa_topology.filter import (
    WILDCARD,
    FilterOption,
    filter_by_role,
    filter_deploy_configs,
    service_id,
    skip_roles,
)
from fa_topology.models import ClientConfig, DeployConfig, MonitorConfig, get_roles
from fa_topology.parser import parse_client, parse_hosts, parse_monitor, parse_topology

__all__ = [
    "ClientConfig",
    "DeployConfig",
    "FilterOption",
    "MonitorConfig",
    "WILDCARD",
    "filter_by_role",
    "filter_deploy_configs",
    "get_roles",
    "parse_client",
    "parse_hosts",
    "parse_monitor",
    "parse_topology",
    "service_id",
    "skip_roles",
]
