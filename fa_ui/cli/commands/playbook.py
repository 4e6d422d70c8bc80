from __future__ import annotations

from typing import List, Optional

import typer

from fa_common.env import parse_list_env
from fa_controller.api import AdhocPlaybook, resolve_script
from fa_ui.cli.runner import run_audited
from fa_ui.wiring.dependencies import UIContext


def register_playbook_command(app: typer.Typer, ctx: UIContext) -> None:
    @app.command(
        "playbook",
        context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
    )
    def playbook(
        typer_ctx: typer.Context,
        args: List[str] = typer.Argument(..., help="SCRIPT [ARGS...], or a single command."),
        labels: Optional[str] = typer.Option(None, "--labels", "-l", help="Only hosts with these labels."),
    ) -> None:
        """Copy a script to every matched host and run it there."""

        def action() -> None:
            directory = ctx.hosts()
            hosts = directory.select(parse_list_env(labels))
            script, script_args = resolve_script(list(args) + list(typer_ctx.args))
            runner = AdhocPlaybook(ctx.plan(hosts=directory).runtime, ctx.ui.write)
            runner.run(hosts, script, script_args)

        run_audited(ctx, typer_ctx, action)
