"""Per-service configuration records produced from the topology files."""

from __future__ import annotations

import hashlib
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

KIND_DINGOFS = "dingofs"
KIND_DINGOSTORE = "dingo-store"
KIND_DINGODB = "dingodb"
SUPPORTED_KINDS = (KIND_DINGOFS, KIND_DINGOSTORE, KIND_DINGODB)

ROLE_COORDINATOR = "coordinator"
ROLE_STORE = "store"
ROLE_MDS = "mds"
ROLE_MDS_CLI = "mds-cli"
ROLE_EXECUTOR = "executor"
ROLE_DOCUMENT = "document"
ROLE_INDEX = "index"

# Display and deploy order of roles.
ROLE_ORDER = (
    ROLE_COORDINATOR,
    ROLE_STORE,
    ROLE_DOCUMENT,
    ROLE_INDEX,
    ROLE_MDS_CLI,
    ROLE_MDS,
    ROLE_EXECUTOR,
)
ROLE_SCORE = {role: idx for idx, role in enumerate(ROLE_ORDER)}

ROLE_MONITOR_SYNC = "monitor_sync"
ROLE_NODE_EXPORTER = "node_exporter"
ROLE_PROMETHEUS = "prometheus"
ROLE_GRAFANA = "grafana"
MONITOR_ROLES = (ROLE_MONITOR_SYNC, ROLE_NODE_EXPORTER, ROLE_PROMETHEUS, ROLE_GRAFANA)

DEFAULT_IMAGES = {
    KIND_DINGOFS: "dingodatabase/dingofs:latest",
    KIND_DINGOSTORE: "dingodatabase/dingo-store:latest",
    KIND_DINGODB: "dingodatabase/dingo-store:latest",
}

DEFAULT_LISTEN_PORTS = {
    ROLE_COORDINATOR: 6500,
    ROLE_STORE: 6600,
    ROLE_MDS: 6900,
    ROLE_MDS_CLI: 6900,
    ROLE_EXECUTOR: 3307,
    ROLE_DOCUMENT: 23001,
    ROLE_INDEX: 21001,
}

DEFAULT_RAFT_PORTS = {
    ROLE_COORDINATOR: 7500,
    ROLE_STORE: 7600,
    ROLE_DOCUMENT: 23101,
    ROLE_INDEX: 21101,
}

DEFAULT_MONITOR_IMAGES = {
    ROLE_MONITOR_SYNC: "dingodatabase/dingofs-monitor-sync:latest",
    ROLE_NODE_EXPORTER: "prom/node-exporter:latest",
    ROLE_PROMETHEUS: "prom/prometheus:latest",
    ROLE_GRAFANA: "grafana/grafana:latest",
}

DEFAULT_MONITOR_PORTS = {
    ROLE_MONITOR_SYNC: 0,
    ROLE_NODE_EXPORTER: 9100,
    ROLE_PROMETHEUS: 9090,
    ROLE_GRAFANA: 3000,
}

LAYOUT_DINGOFS_ROOT = "/dingofs"
LAYOUT_DINGOSTORE_ROOT = "/opt/dingo-store"
LAYOUT_DINGODB_ROOT = "/opt/dingo"


def short_hash(value: str) -> str:
    """First 12 hex chars of the md5 digest of ``value``."""
    return hashlib.md5(value.encode("utf-8")).hexdigest()[:12]


def _lookup(config: Dict[str, Any], key: str) -> Any:
    """Resolve dotted keys (``listen.port``) against a nested mapping."""
    if key in config:
        return config[key]
    node: Any = config
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


class DeployConfig(BaseModel):
    """One service instance of a cluster topology."""

    kind: str
    cluster: str = ""
    role: str
    host: str
    host_sequence: int = 0
    instances_sequence: int = 0
    instances: int = 1
    config: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_sequence(self) -> "DeployConfig":
        if self.instances < 1:
            raise ValueError(f"{self.role}@{self.host}: instances must be >= 1")
        if not 0 <= self.instances_sequence < self.instances:
            raise ValueError(
                f"{self.role}@{self.host}: instance sequence {self.instances_sequence} "
                f"out of range for {self.instances} instances"
            )
        return self

    @property
    def id(self) -> str:
        return short_hash(
            f"{self.role}_{self.host}_{self.host_sequence}_{self.instances_sequence}"
        )

    @property
    def parent_id(self) -> str:
        return short_hash(f"{self.role}_{self.host}_{self.host_sequence}_0")

    def get(self, key: str, default: Any = None) -> Any:
        value = _lookup(self.config, key)
        return default if value is None else value

    @property
    def name(self) -> str:
        return f"{self.role}{self.host_sequence}{self.instances_sequence}"

    @property
    def container_image(self) -> str:
        return str(self.get("container_image", DEFAULT_IMAGES.get(self.kind, "")))

    @property
    def prefix(self) -> str:
        if self.role in (ROLE_COORDINATOR, ROLE_STORE, ROLE_DOCUMENT, ROLE_INDEX):
            return LAYOUT_DINGOSTORE_ROOT
        if self.role == ROLE_EXECUTOR:
            return LAYOUT_DINGODB_ROOT
        return f"{LAYOUT_DINGOFS_ROOT}/{self.role}"

    @property
    def listen_ip(self) -> str:
        return str(self.get("listen.ip", self.get("hostname", self.host)))

    @property
    def listen_port(self) -> int:
        base = int(self.get("listen.port", DEFAULT_LISTEN_PORTS.get(self.role, 0)))
        return base + self.instances_sequence if base else 0

    @property
    def raft_port(self) -> int:
        base = int(self.get("listen.raft_port", DEFAULT_RAFT_PORTS.get(self.role, 0)))
        return base + self.instances_sequence if base else 0

    def ports(self) -> List[int]:
        return [port for port in (self.listen_port, self.raft_port) if port]

    @property
    def log_dir(self) -> str:
        return str(self.get("log_dir", ""))

    @property
    def data_dir(self) -> str:
        return str(self.get("data_dir", ""))

    def volumes(self) -> Dict[str, str]:
        """Host directory -> container directory bindings."""
        bindings: Dict[str, str] = {}
        if self.log_dir:
            bindings[self.log_dir] = f"{self.prefix}/log"
        if self.data_dir:
            bindings[self.data_dir] = f"{self.prefix}/data"
        return bindings


class ClientConfig(BaseModel):
    """A filesystem client mounted on one host."""

    kind: str = KIND_DINGOFS
    host: str
    mount_point: str
    fs_name: str
    mds_addrs: List[str] = Field(default_factory=list)
    container_image: str = DEFAULT_IMAGES[KIND_DINGOFS]
    log_dir: str = ""
    data_dir: str = ""
    kernel_module: str = "fuse"
    config: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_fields(self) -> "ClientConfig":
        if not self.mount_point.startswith("/"):
            raise ValueError(f"mount point must be absolute: {self.mount_point!r}")
        if not self.fs_name:
            raise ValueError("fs_name must be non-empty")
        return self

    @property
    def id(self) -> str:
        return short_hash(f"{self.host}_{self.fs_name}_{self.mount_point}")

    def get(self, key: str, default: Any = None) -> Any:
        value = _lookup(self.config, key)
        return default if value is None else value


class MonitorConfig(BaseModel):
    """One monitoring component on one host."""

    role: str
    host: str
    container_image: str = ""
    listen_port: int = 0
    data_dir: str = ""
    config: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def apply_defaults(self) -> "MonitorConfig":
        if self.role not in MONITOR_ROLES:
            raise ValueError(f"unknown monitor role {self.role!r}")
        if not self.container_image:
            self.container_image = DEFAULT_MONITOR_IMAGES[self.role]
        if not self.listen_port:
            self.listen_port = DEFAULT_MONITOR_PORTS[self.role]
        return self

    @property
    def id(self) -> str:
        return short_hash(f"{self.role}_{self.host}")

    def get(self, key: str, default: Any = None) -> Any:
        value = _lookup(self.config, key)
        return default if value is None else value

    @property
    def targets(self) -> List[str]:
        return [str(item) for item in self.get("target", []) or []]


def get_roles(configs: List[DeployConfig]) -> List[str]:
    """Distinct roles in first-seen order."""
    roles: List[str] = []
    for dc in configs:
        if dc.role not in roles:
            roles.append(dc.role)
    return roles


def role_score(role: str) -> int:
    return ROLE_SCORE.get(role, len(ROLE_ORDER))


def cluster_kind(configs: List[DeployConfig]) -> Optional[str]:
    return configs[0].kind if configs else None
