"""Topology, host, client and monitor configuration for fleetadm."""

from fa_topology.api import (
    DeployConfig,
    FilterOption,
    filter_deploy_configs,
    parse_hosts,
    parse_topology,
    service_id,
)

__all__ = [
    "DeployConfig",
    "FilterOption",
    "filter_deploy_configs",
    "parse_hosts",
    "parse_topology",
    "service_id",
]
