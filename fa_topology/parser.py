"""YAML parsers for topology, hosts, client and monitor files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from pydantic import ValidationError

from fa_common.errors import (
    ERR_INVALID_CLIENT_CONFIG,
    ERR_INVALID_MONITOR_CONFIG,
    ERR_INVALID_SETTINGS,
    ERR_INVALID_TOPOLOGY,
    ERR_UNSUPPORTED_CLUSTER_KIND,
    ConfigurationError,
    ErrorCode,
)
from fa_common.hosts import HostSpec
from fa_topology.models import (
    MONITOR_ROLES,
    ROLE_COORDINATOR,
    ROLE_ORDER,
    SUPPORTED_KINDS,
    ClientConfig,
    DeployConfig,
    MonitorConfig,
)

logger = logging.getLogger(__name__)

Source = Union[str, Path, Mapping[str, Any]]

SERVICES_SUFFIX = "_services"


def _load(source: Source, code: ErrorCode) -> Dict[str, Any]:
    """Accept a path, a YAML string or an already parsed mapping."""
    if isinstance(source, Mapping):
        return dict(source)
    if isinstance(source, Path):
        if not source.exists():
            raise code.f("%s: no such file", source, error_cls=ConfigurationError)
        text = source.read_text()
    else:
        text = source
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise code.e(exc, error_cls=ConfigurationError) from exc
    if not isinstance(data, dict):
        raise code.f("top level must be a mapping", error_cls=ConfigurationError)
    return data


def _merge(*layers: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {}
    for layer in layers:
        if layer:
            merged.update(layer)
    return merged


def _role_name(key: str) -> str:
    return key[: -len(SERVICES_SUFFIX)].replace("_", "-")


def _link_coordinators(configs: List[DeployConfig]) -> None:
    """Expose the coordinator peer list to every service as ``coordinator_addr``."""
    peers = [
        f"{dc.listen_ip}:{dc.listen_port}" for dc in configs if dc.role == ROLE_COORDINATOR
    ]
    if not peers:
        return
    addr = ",".join(peers)
    for dc in configs:
        dc.config.setdefault("coordinator_addr", addr)


def parse_topology(
    source: Source,
    cluster: str = "",
    hostnames: Optional[Mapping[str, str]] = None,
) -> List[DeployConfig]:
    """Expand a topology document into ordered deploy configs.

    Role sections are emitted in role order, then per deploy item, then per
    instance.
    """
    data = _load(source, ERR_INVALID_TOPOLOGY)
    kind = data.get("kind")
    if kind not in SUPPORTED_KINDS:
        raise ERR_UNSUPPORTED_CLUSTER_KIND.f("kind: %s", kind, error_cls=ConfigurationError)
    cluster_name = cluster or str(data.get("cluster", ""))
    global_vars = data.get("global") or {}

    sections: Dict[str, Mapping[str, Any]] = {}
    for key, value in data.items():
        if not key.endswith(SERVICES_SUFFIX):
            continue
        role = _role_name(key)
        if role not in ROLE_ORDER:
            raise ERR_INVALID_TOPOLOGY.f("unknown role section %r", key, error_cls=ConfigurationError)
        sections[role] = value or {}

    configs: List[DeployConfig] = []
    for role in ROLE_ORDER:
        section = sections.get(role)
        if section is None:
            continue
        role_config = section.get("config") or {}
        for host_seq, item in enumerate(section.get("deploy") or []):
            if not isinstance(item, Mapping) or not item.get("host"):
                raise ERR_INVALID_TOPOLOGY.f(
                    "%s deploy item %d has no host", role, host_seq, error_cls=ConfigurationError
                )
            host = str(item["host"])
            merged = _merge(global_vars, role_config, item.get("config"))
            if hostnames and host in hostnames:
                merged.setdefault("hostname", hostnames[host])
            instances = int(item.get("instances", 1))
            for inst_seq in range(instances):
                try:
                    configs.append(
                        DeployConfig(
                            kind=kind,
                            cluster=cluster_name,
                            role=role,
                            host=host,
                            host_sequence=host_seq,
                            instances_sequence=inst_seq,
                            instances=instances,
                            config=merged,
                        )
                    )
                except ValidationError as exc:
                    raise ERR_INVALID_TOPOLOGY.e(exc, error_cls=ConfigurationError) from exc

    if not configs:
        raise ERR_INVALID_TOPOLOGY.f("no services defined", error_cls=ConfigurationError)
    _link_coordinators(configs)
    logger.debug("Parsed topology %s: %d services", cluster_name, len(configs))
    return configs


def parse_hosts(source: Source) -> List[HostSpec]:
    """Parse ``{global: {...}, hosts: [{host, hostname, ...}]}``."""
    data = _load(source, ERR_INVALID_SETTINGS)
    defaults = data.get("global") or {}
    specs: List[HostSpec] = []
    seen: set[str] = set()
    for item in data.get("hosts") or []:
        try:
            spec = HostSpec.model_validate(_merge(defaults, item))
        except ValidationError as exc:
            raise ERR_INVALID_SETTINGS.e(exc, error_cls=ConfigurationError) from exc
        if spec.host in seen:
            raise ERR_INVALID_SETTINGS.f("duplicate host %r", spec.host, error_cls=ConfigurationError)
        seen.add(spec.host)
        specs.append(spec)
    return specs


def parse_client(source: Source, hosts: Optional[List[str]] = None) -> List[ClientConfig]:
    """One client record per target host.

    Hosts come from ``hosts`` when given, else from the document's ``host``
    entry (a name or a list of names).
    """
    data = _load(source, ERR_INVALID_CLIENT_CONFIG)
    targets = hosts or data.get("host") or []
    if isinstance(targets, str):
        targets = [targets]
    if not targets:
        raise ERR_INVALID_CLIENT_CONFIG.f("no client host given", error_cls=ConfigurationError)
    body = {key: value for key, value in data.items() if key != "host"}
    addrs = body.get("mds_addrs")
    if isinstance(addrs, str):
        body["mds_addrs"] = [addr.strip() for addr in addrs.split(",") if addr.strip()]
    clients: List[ClientConfig] = []
    for host in targets:
        try:
            clients.append(ClientConfig.model_validate({**body, "host": host}))
        except ValidationError as exc:
            raise ERR_INVALID_CLIENT_CONFIG.e(exc, error_cls=ConfigurationError) from exc
    return clients


def parse_monitor(source: Source) -> List[MonitorConfig]:
    """Parse ``{global, <role>: {config, deploy: [{host}]}}`` per monitor role."""
    data = _load(source, ERR_INVALID_MONITOR_CONFIG)
    global_vars = data.get("global") or {}
    configs: List[MonitorConfig] = []
    for role in MONITOR_ROLES:
        section = data.get(role)
        if not section:
            continue
        role_config = _merge(global_vars, section.get("config"))
        for item in section.get("deploy") or []:
            host = item.get("host") if isinstance(item, Mapping) else None
            if not host:
                raise ERR_INVALID_MONITOR_CONFIG.f(
                    "%s deploy item has no host", role, error_cls=ConfigurationError
                )
            merged = _merge(role_config, item.get("config"))
            try:
                configs.append(
                    MonitorConfig(
                        role=role,
                        host=str(host),
                        container_image=str(merged.pop("container_image", "")),
                        listen_port=int(merged.pop("listen_port", 0)),
                        data_dir=str(merged.pop("data_dir", "")),
                        config=merged,
                    )
                )
            except ValidationError as exc:
                raise ERR_INVALID_MONITOR_CONFIG.e(exc, error_cls=ConfigurationError) from exc
    if not configs:
        raise ERR_INVALID_MONITOR_CONFIG.f("no monitor services defined", error_cls=ConfigurationError)
    return configs
