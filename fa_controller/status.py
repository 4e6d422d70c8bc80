"""Service status rows and their per-parent merge."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Iterable, List

from fa_topology.models import MONITOR_ROLES, role_score

STATUS_CLEANED = "Cleaned"
STATUS_LOST = "Lost"
STATUS_UNKNOWN = "Unknown"
STATUS_RUNNING = "RUNNING"
STATUS_STOPPED = "STOPPED"
STATUS_ABNORMAL = "ABNORMAL"

MERGED_ID = "<instances>"


@dataclass
class ServiceStatus:
    id: str
    parent_id: str
    role: str
    host: str
    instances: str
    container_id: str = "-"
    status: str = STATUS_UNKNOWN
    ports: str = ""
    log_dir: str = ""
    data_dir: str = ""
    host_sequence: int = 0
    instances_sequence: int = 0


def sort_statuses(statuses: Iterable[ServiceStatus]) -> List[ServiceStatus]:
    """Role order, then host sequence, then instance sequence."""
    return sorted(
        statuses,
        key=lambda s: (role_score(s.role), s.host_sequence, s.instances_sequence),
    )


def _merge_id(items: List[str]) -> str:
    return items[0] if len(items) == 1 else MERGED_ID


def _merge_status(items: List[str]) -> str:
    if len(items) == 1:
        return items[0]
    normalized = set()
    for item in items:
        if item.startswith("Up"):
            normalized.add(STATUS_RUNNING)
        elif item.startswith("Exited"):
            normalized.add(STATUS_STOPPED)
        else:
            normalized.add(item)
    if len(normalized) == 1:
        return normalized.pop()
    return STATUS_ABNORMAL


def _merge_dir(items: List[str]) -> str:
    if len(items) == 1:
        return items[0]
    prefix = os.path.commonprefix(items)
    first = items[0][len(prefix):]
    last = items[-1][len(prefix):]
    limit = min(5, len(first), len(last))
    return f"{prefix}{{{first[:limit]}...{last[:limit]}}}"


def _merge_group(group: List[ServiceStatus]) -> ServiceStatus:
    head = group[0]
    total = head.instances.split("/")[-1]

    def collect(attr: str) -> List[str]:
        return sorted(getattr(status, attr) for status in group)

    return replace(
        head,
        id=_merge_id(collect("id")),
        instances=f"{len(group)}/{total}",
        container_id=_merge_id(collect("container_id")),
        status=_merge_status(collect("status")),
        ports=_merge_id(collect("ports")),
        log_dir=_merge_dir(collect("log_dir")),
        data_dir=_merge_dir(collect("data_dir")),
    )


def merge_statuses(statuses: List[ServiceStatus]) -> List[ServiceStatus]:
    """Collapse adjacent rows sharing a parent id into one row.

    Input is expected to be sorted so instances of one parent are adjacent.
    """
    merged: List[ServiceStatus] = []
    i, n = 0, len(statuses)
    while i < n:
        j = i + 1
        while j < n and statuses[j].parent_id == statuses[i].parent_id:
            j += 1
        merged.append(_merge_group(statuses[i:j]))
        i = j
    return merged


def format_rows(
    statuses: List[ServiceStatus], *, verbose: bool = False, expand: bool = False
) -> tuple[List[str], List[List[str]]]:
    """Columns and rows ready for a table renderer."""
    rows = sort_statuses(statuses)
    if not expand:
        rows = merge_statuses(rows)
    columns = ["Id", "Role", "Host", "Instances", "Container Id", "Status"]
    if verbose:
        columns += ["Ports", "Log Dir", "Data Dir"]
    table: List[List[str]] = []
    for status in rows:
        line = [
            status.id,
            status.role,
            status.host,
            status.instances,
            status.container_id,
            status.status,
        ]
        if verbose:
            line += [status.ports or "-", status.log_dir or "-", status.data_dir or "-"]
        table.append(line)
    return columns, table


@dataclass
class ClientStatus:
    id: str
    host: str
    kind: str
    container_id: str
    status: str
    mount_point: str
    fs_name: str = ""


def format_client_rows(statuses: Iterable[ClientStatus]) -> tuple[List[str], List[List[str]]]:
    columns = ["Id", "Kind", "Host", "Container Id", "Status", "FS Name", "Mount Point"]
    rows = [
        [s.id, s.kind, s.host, s.container_id, s.status, s.fs_name or "-", s.mount_point]
        for s in sorted(statuses, key=lambda s: (s.host, s.mount_point))
    ]
    return columns, rows


@dataclass
class MonitorStatus:
    id: str
    role: str
    host: str
    port: int
    container_id: str = "-"
    status: str = STATUS_UNKNOWN
    data_dir: str = ""


def format_monitor_rows(
    statuses: Iterable[MonitorStatus], *, verbose: bool = False
) -> tuple[List[str], List[List[str]]]:
    columns = ["Id", "Role", "Host", "Port", "Container Id", "Status"]
    if verbose:
        columns.append("Data Dir")
    rows: List[List[str]] = []
    for s in sorted(statuses, key=lambda s: (MONITOR_ROLES.index(s.role), s.host)):
        line = [s.id, s.role, s.host, str(s.port or "-"), s.container_id, s.status]
        if verbose:
            line.append(s.data_dir or "-")
        rows.append(line)
    return columns, rows
