"""Terminal implementation of the engine UI contract."""

from __future__ import annotations

from typing import Sequence

from rich.console import Console
from rich.table import Table

from fa_controller.ui_interfaces import EngineUI, ProgressHandle
from fa_ui.ui.progress import SharedProgress


class RichUI(EngineUI):
    """Bars, messages and tables rendered on one rich console."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(highlight=False)
        self._bars = SharedProgress(self.console)

    def main_bar(self, description: str, total: int) -> ProgressHandle:
        return self._bars.open(description, total)

    def sub_bar(self, description: str, total: int) -> ProgressHandle:
        handle = self._bars.open(f"  {description}", total)
        handle.keep_line = False
        return handle

    def show_info(self, message: str) -> None:
        self.console.print(message)

    def show_warning(self, message: str) -> None:
        self.console.print(f"[yellow]{message}[/yellow]")

    def show_error(self, message: str) -> None:
        self.console.print(f"[red]{message}[/red]")

    def show_success(self, message: str) -> None:
        self.console.print(f"[green]{message}[/green]")

    def show_table(self, title: str, columns: Sequence[str], rows: list[Sequence[str]]) -> None:
        table = Table(title=title or None, show_edge=False, header_style="bold")
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*[str(cell) for cell in row])
        self.console.print(table)

    def write(self, text: str) -> None:
        self.console.print(text, markup=False, highlight=False)
