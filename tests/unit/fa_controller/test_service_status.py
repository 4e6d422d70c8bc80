"""Tests for status row sorting, merging and formatting."""

from __future__ import annotations

import pytest

from fa_controller.status import (
    MERGED_ID,
    STATUS_ABNORMAL,
    STATUS_RUNNING,
    ClientStatus,
    MonitorStatus,
    ServiceStatus,
    format_client_rows,
    format_monitor_rows,
    format_rows,
    merge_statuses,
    sort_statuses,
)


pytestmark = pytest.mark.unit_controller


def _row(role: str, host_seq: int, inst_seq: int, status: str = "Up 2 hours", parent: str = "") -> ServiceStatus:
    return ServiceStatus(
        id=f"{role}{host_seq}{inst_seq}",
        parent_id=parent or f"{role}{host_seq}",
        role=role,
        host=f"host{host_seq}",
        instances="1/2",
        container_id=f"c{role}{host_seq}{inst_seq}",
        status=status,
        ports=f"10.0.0.{host_seq}:{7000 + inst_seq}",
        log_dir=f"/logs/{role}/{inst_seq}",
        data_dir=f"/data/{role}/{inst_seq}",
        host_sequence=host_seq,
        instances_sequence=inst_seq,
    )


def test_sort_by_role_then_sequences() -> None:
    rows = [_row("store", 0, 0), _row("coordinator", 1, 0), _row("coordinator", 0, 1), _row("coordinator", 0, 0)]
    ordered = sort_statuses(rows)
    assert [row.id for row in ordered] == ["coordinator00", "coordinator01", "coordinator10", "store00"]


def test_merge_collapses_instances_of_one_parent() -> None:
    rows = [_row("mds", 0, 0, "Up 1 hour"), _row("mds", 0, 1, "Up 3 hours"), _row("store", 0, 0)]
    merged = merge_statuses(rows)
    assert len(merged) == 2
    head = merged[0]
    assert head.id == MERGED_ID
    assert head.instances == "2/2"
    assert head.container_id == MERGED_ID
    assert head.status == STATUS_RUNNING
    assert head.log_dir == "/logs/mds/{0...1}"
    assert merged[1].id == "store00"


def test_merge_of_mixed_states_is_abnormal() -> None:
    rows = [_row("mds", 0, 0, "Up 1 hour"), _row("mds", 0, 1, "Exited (1) 2 minutes ago")]
    assert merge_statuses(rows)[0].status == STATUS_ABNORMAL


def test_format_rows_verbose_and_expand() -> None:
    rows = [_row("mds", 0, 0), _row("mds", 0, 1)]
    columns, table = format_rows(rows)
    assert columns[:3] == ["Id", "Role", "Host"]
    assert len(table) == 1
    columns, table = format_rows(rows, verbose=True, expand=True)
    assert columns[-3:] == ["Ports", "Log Dir", "Data Dir"]
    assert len(table) == 2
    assert table[1][-1] == "/data/mds/1"


def test_client_and_monitor_rows() -> None:
    columns, rows = format_client_rows(
        [
            ClientStatus("b", "h2", "dingofs", "c2", "Up", "/mnt/b"),
            ClientStatus("a", "h1", "dingofs", "c1", "Up", "/mnt/a", fs_name="fs1"),
        ]
    )
    assert columns[-1] == "Mount Point"
    assert [row[0] for row in rows] == ["a", "b"]
    assert rows[1][5] == "-"

    columns, rows = format_monitor_rows(
        [MonitorStatus("g", "grafana", "m1", 3000), MonitorStatus("p", "prometheus", "m1", 9090)],
        verbose=True,
    )
    assert columns[-1] == "Data Dir"
    assert [row[1] for row in rows] == ["prometheus", "grafana"]
