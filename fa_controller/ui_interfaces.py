"""Presentation contracts consumed by the engine, plus no-op versions."""

from __future__ import annotations

from typing import Protocol, Sequence


class ProgressHandle(Protocol):
    """One bar on screen; advanced by steps or tasks as hosts complete."""

    def update(self, completed: int) -> None:
        """Set how many hosts are done so far."""

    def finish(self, ok: bool = True) -> None:
        """Close the bar, marking it failed when ``ok`` is false."""


class EngineUI(Protocol):
    """What the playbook needs from the terminal."""

    def main_bar(self, description: str, total: int) -> ProgressHandle:
        """Whole-step completion bar."""

    def sub_bar(self, description: str, total: int) -> ProgressHandle:
        """Per-task sub-operation bar."""

    def show_info(self, message: str) -> None:
        """Plain line such as "+ Stop service ... (host1)"."""

    def show_warning(self, message: str) -> None:
        """Non-fatal problem, e.g. a skipped step."""

    def show_error(self, message: str) -> None:
        """Failure summary for a step or host."""

    def show_success(self, message: str) -> None:
        """Final "successfully deployed" style line."""

    def show_table(self, title: str, columns: Sequence[str], rows: list[Sequence[str]]) -> None:
        """Status or precheck table."""

    def write(self, text: str) -> None:
        """Write raw text to the output stream."""


class NoOpProgressHandle(ProgressHandle):
    """Bar that draws nothing."""

    def update(self, completed: int) -> None:
        pass

    def finish(self, ok: bool = True) -> None:
        pass


class NoOpUI(EngineUI):
    """UI that discards everything; used by tests and headless runs."""

    def main_bar(self, description: str, total: int) -> ProgressHandle:
        return NoOpProgressHandle()

    def sub_bar(self, description: str, total: int) -> ProgressHandle:
        return NoOpProgressHandle()

    def show_info(self, message: str) -> None:
        pass

    def show_warning(self, message: str) -> None:
        pass

    def show_error(self, message: str) -> None:
        pass

    def show_success(self, message: str) -> None:
        pass

    def show_table(self, title: str, columns: Sequence[str], rows: list[Sequence[str]]) -> None:
        pass

    def write(self, text: str) -> None:
        pass
