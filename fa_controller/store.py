"""Local JSON persistence: clusters, service containers, clients, audit."""

from __future__ import annotations

import json
import os
import threading
import time
import uuid
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from fa_common.errors import (
    ERR_INVALID_TOPOLOGY,
    ERR_READ_STORE_FAILED,
    ERR_WRITE_FILE_FAILED,
    CancelledByUser,
    ConfigurationError,
    FAError,
)

CLUSTERS_FILE = "clusters.json"
AUDIT_FILE = "audit.log"

AUDIT_SUCCESS = "success"
AUDIT_CANCEL = "cancel"
AUDIT_FAIL = "fail"
AUDIT_ABORT = "abort"


@dataclass
class ClusterRecord:
    name: str
    uuid: str
    topology: str
    created_at: float = field(default_factory=time.time)
    services: Dict[str, str] = field(default_factory=dict)
    monitor: str = ""


@dataclass
class ClientRecord:
    id: str
    host: str
    kind: str
    container_id: str
    mount_point: str
    fs_name: str = ""
    created_at: float = field(default_factory=time.time)


class ClusterStore:
    """JSON file under the data directory; every write is flushed at once."""

    def __init__(self, data_dir: Path) -> None:
        self.path = Path(data_dir).expanduser() / CLUSTERS_FILE
        self._lock = threading.RLock()
        self._data = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {"current": "", "hosts": "", "clusters": {}, "clients": {}}
        try:
            data = json.loads(self.path.read_text())
        except (OSError, json.JSONDecodeError) as exc:
            raise ERR_READ_STORE_FAILED.e(exc) from exc
        data.setdefault("current", "")
        data.setdefault("hosts", "")
        data.setdefault("clusters", {})
        data.setdefault("clients", {})
        return data

    def _save(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(".tmp")
            with open(tmp, "w") as handle:
                json.dump(self._data, handle, indent=2)
            os.replace(tmp, self.path)
        except OSError as exc:
            raise ERR_WRITE_FILE_FAILED.e(exc) from exc

    # clusters

    def add_cluster(self, name: str, topology: str) -> ClusterRecord:
        with self._lock:
            if name in self._data["clusters"]:
                raise ERR_INVALID_TOPOLOGY.f(
                    "cluster %r already exists", name, error_cls=ConfigurationError
                )
            record = ClusterRecord(name=name, uuid=uuid.uuid4().hex, topology=topology)
            self._data["clusters"][name] = asdict(record)
            if not self._data["current"]:
                self._data["current"] = name
            self._save()
            return record

    def remove_cluster(self, name: str) -> None:
        with self._lock:
            self.get_cluster(name)
            del self._data["clusters"][name]
            if self._data["current"] == name:
                self._data["current"] = ""
            self._save()

    def checkout(self, name: str) -> None:
        with self._lock:
            self.get_cluster(name)
            self._data["current"] = name
            self._save()

    def get_cluster(self, name: Optional[str] = None) -> ClusterRecord:
        with self._lock:
            target = name or self._data["current"]
            raw = self._data["clusters"].get(target) if target else None
            if raw is None:
                raise ERR_INVALID_TOPOLOGY.f(
                    "cluster %r not found, add or checkout one first", target or "",
                    error_cls=ConfigurationError,
                )
            return ClusterRecord(**raw)

    def list_clusters(self) -> List[ClusterRecord]:
        with self._lock:
            return [ClusterRecord(**raw) for raw in self._data["clusters"].values()]

    @property
    def current(self) -> str:
        return self._data["current"]

    def update_topology(self, name: str, topology: str) -> None:
        with self._lock:
            self.get_cluster(name)
            self._data["clusters"][name]["topology"] = topology
            self._save()

    def set_monitor(self, name: str, monitor: str) -> None:
        with self._lock:
            self.get_cluster(name)
            self._data["clusters"][name]["monitor"] = monitor
            self._save()

    # hosts

    def set_hosts(self, text: str) -> None:
        with self._lock:
            self._data["hosts"] = text
            self._save()

    def get_hosts(self) -> str:
        return self._data["hosts"]

    # services

    def set_container_id(self, cluster: str, service_id: str, container_id: str) -> None:
        with self._lock:
            clusters = self._data["clusters"]
            if cluster not in clusters:
                raise ERR_INVALID_TOPOLOGY.f("cluster %r not found", cluster, error_cls=ConfigurationError)
            clusters[cluster]["services"][service_id] = container_id
            self._save()

    def get_container_id(self, cluster: str, service_id: str) -> str:
        """``""`` when the service was never created or was cleaned."""
        with self._lock:
            raw = self._data["clusters"].get(cluster) or {}
            return (raw.get("services") or {}).get(service_id, "")

    # clients

    def add_client(self, record: ClientRecord) -> None:
        with self._lock:
            self._data["clients"][record.id] = asdict(record)
            self._save()

    def remove_client(self, client_id: str) -> None:
        with self._lock:
            self._data["clients"].pop(client_id, None)
            self._save()

    def get_client(self, client_id: str) -> Optional[ClientRecord]:
        with self._lock:
            raw = self._data["clients"].get(client_id)
            return ClientRecord(**raw) if raw else None

    def list_clients(self) -> List[ClientRecord]:
        with self._lock:
            return [ClientRecord(**raw) for raw in self._data["clients"].values()]


@dataclass
class AuditEntry:
    id: int
    timestamp: float
    cwd: str
    command: str
    status: str
    error_code: int = 0

    @classmethod
    def for_error(cls, error: BaseException | None) -> tuple[str, int]:
        """Map an outcome to ``(status, error_code)``."""
        if error is None:
            return AUDIT_SUCCESS, 0
        if isinstance(error, CancelledByUser):
            return AUDIT_CANCEL, error.code.code
        if isinstance(error, FAError):
            return AUDIT_FAIL, error.code.code
        return AUDIT_ABORT, 0


class AuditLog:
    """Append-only JSON lines, one per top-level invocation."""

    def __init__(self, data_dir: Path) -> None:
        self.path = Path(data_dir).expanduser() / AUDIT_FILE
        self._lock = threading.Lock()

    def _read(self) -> List[AuditEntry]:
        if not self.path.exists():
            return []
        entries: List[AuditEntry] = []
        with open(self.path) as handle:
            for line in handle:
                line = line.strip()
                if line:
                    entries.append(AuditEntry(**json.loads(line)))
        return entries

    def record(self, command: str, status: str, error_code: int = 0, cwd: str | None = None) -> AuditEntry:
        with self._lock:
            entries = self._read()
            entry = AuditEntry(
                id=(entries[-1].id + 1) if entries else 1,
                timestamp=time.time(),
                cwd=cwd if cwd is not None else os.getcwd(),
                command=command,
                status=status,
                error_code=error_code,
            )
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, "a") as handle:
                    handle.write(json.dumps(asdict(entry)) + "\n")
            except OSError as exc:
                raise ERR_WRITE_FILE_FAILED.e(exc) from exc
            return entry

    def tail(self, n: int = 0) -> List[AuditEntry]:
        """Last ``n`` entries, oldest first; ``n <= 0`` returns all."""
        with self._lock:
            entries = self._read()
        return entries if n <= 0 else entries[-n:]
