"""Rich progress bars driving the engine's main and sub bars."""

from __future__ import annotations

import threading
from dataclasses import dataclass

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from fa_controller.ui_interfaces import ProgressHandle


def rich_progress(console: Console) -> Progress:
    """Create a Rich Progress instance."""
    return Progress(
        TextColumn("[bold cyan]{task.description}[/bold cyan]"),
        BarColumn(bar_width=40),
        TaskProgressColumn(),
        TextColumn("{task.fields[state]}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
        expand=False,
    )


class SharedProgress:
    """One live Progress shared by every bar of a step.

    Started with the first bar and stopped when the last one finishes, so
    concurrent sub bars render together under their main bar.
    """

    def __init__(self, console: Console) -> None:
        self.console = console
        self._lock = threading.Lock()
        self._progress: Progress | None = None
        self._active = 0

    def open(self, description: str, total: int) -> "RichProgressHandle":
        with self._lock:
            if self._progress is None:
                self._progress = rich_progress(self.console)
                self._progress.start()
            task_id = self._progress.add_task(description, total=max(total, 1), state="")
            self._active += 1
            return RichProgressHandle(description, max(total, 1), self, self._progress, task_id)

    def close(self, task_id: TaskID, line: str) -> None:
        with self._lock:
            if self._progress is None:
                return
            self._progress.remove_task(task_id)
            if line:
                self._progress.console.print(line)
            self._active -= 1
            if self._active <= 0:
                self._progress.stop()
                self._progress = None
                self._active = 0


@dataclass
class RichProgressHandle(ProgressHandle):
    """Progress handle backed by rich.Progress."""

    description: str
    total: int
    owner: SharedProgress
    progress: Progress
    task_id: TaskID
    finished: bool = False
    keep_line: bool = True

    def update(self, completed: int) -> None:
        if self.finished:
            return
        self.progress.update(self.task_id, completed=min(completed, self.total))

    def finish(self, ok: bool = True) -> None:
        if self.finished:
            return
        self.finished = True
        mark = "[green][OK][/green]" if ok else "[red][ERROR][/red]"
        line = f"+ {self.description} {mark}" if self.keep_line else ""
        self.owner.close(self.task_id, line)
