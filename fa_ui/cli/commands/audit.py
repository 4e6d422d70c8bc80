from __future__ import annotations

from datetime import datetime

import typer

from fa_ui.wiring.dependencies import UIContext


def register_audit_command(app: typer.Typer, ctx: UIContext) -> None:
    @app.command("audit")
    def audit(
        tail: int = typer.Option(0, "--tail", "-n", min=0, help="Show only the last N entries."),
    ) -> None:
        """Show the audit trail of past commands."""
        entries = ctx.audit.tail(tail)
        if not entries:
            ctx.ui.show_warning("No audit entries yet.")
            return
        rows = [
            [
                str(entry.id),
                datetime.fromtimestamp(entry.timestamp).strftime("%Y-%m-%d %H:%M:%S"),
                entry.status,
                str(entry.error_code) if entry.error_code else "-",
                entry.cwd,
                entry.command,
            ]
            for entry in entries
        ]
        ctx.ui.show_table("", ["Id", "Execute Time", "Status", "Error Code", "Work Directory", "Command"], rows)
