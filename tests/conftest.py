from __future__ import annotations

from dataclasses import dataclass

import pytest
from rich.console import Console
from rich.table import Table

# Keep in sync with [tool.pytest.ini_options].markers in pyproject.toml
KNOWN_MARKERS = (
    "unit_common",
    "unit_topology",
    "unit_rpc",
    "unit_controller",
    "unit_ui",
    "slow",
)


@pytest.fixture(autouse=True)
def _isolated_data_dir(tmp_path, monkeypatch):
    """Keep settings, cluster store and audit log out of the real home."""
    monkeypatch.setenv("FA_DATA_DIR", str(tmp_path / "fleetadm"))
    monkeypatch.delenv("FA_CONFIG", raising=False)


@dataclass
class _Tally:
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    seconds: float = 0.0

    @property
    def total(self) -> int:
        return self.passed + self.failed + self.skipped


def _counted(report) -> bool:
    return report.when == "call" or (report.when == "setup" and report.skipped)


def _tally_by_layer(terminalreporter) -> dict[str, _Tally]:
    tallies: dict[str, _Tally] = {}
    for outcome in ("passed", "failed", "skipped"):
        for report in terminalreporter.stats.get(outcome, []):
            if not _counted(report):
                continue
            for marker in KNOWN_MARKERS:
                if marker not in report.keywords:
                    continue
                tally = tallies.setdefault(marker, _Tally())
                setattr(tally, outcome, getattr(tally, outcome) + 1)
                tally.seconds += getattr(report, "duration", 0.0)
    return tallies


def pytest_terminal_summary(terminalreporter, exitstatus, config):
    """Print a per-layer pass/fail table after the run."""
    del exitstatus, config
    tallies = _tally_by_layer(terminalreporter)
    if not tallies:
        return

    table = Table(title="fleetadm tests by layer", header_style="bold magenta")
    table.add_column("Layer", style="cyan")
    for heading, style in (("Ran", None), ("OK", "green"), ("Fail", "red"), ("Skip", "yellow")):
        table.add_column(heading, justify="right", style=style)
    table.add_column("Time (s)", justify="right", style="blue")

    for marker in KNOWN_MARKERS:
        tally = tallies.get(marker)
        if tally is None:
            continue
        table.add_row(
            marker,
            str(tally.total),
            str(tally.passed),
            str(tally.failed),
            str(tally.skipped),
            f"{tally.seconds:.2f}",
        )

    console = Console()
    console.print()
    console.print(table)
