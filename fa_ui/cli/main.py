"""
Command-line interface for fleetadm.

Deploys and operates dingofs, dingo-store and dingodb clusters over SSH.
"""

from __future__ import annotations

import typer

from fa_common.api import configure_logging
from fa_ui.cli.commands.audit import register_audit_command
from fa_ui.cli.commands.client import create_client_app
from fa_ui.cli.commands.cluster import create_cluster_app, create_config_app, create_hosts_app
from fa_ui.cli.commands.monitor import create_monitor_app
from fa_ui.cli.commands.playbook import register_playbook_command
from fa_ui.cli.commands.service import register_service_commands
from fa_ui.wiring.dependencies import UIContext

# Initialize global context (lazy)
ctx_store = UIContext()

app = typer.Typer(
    name="fleetadm",
    help="Deploy and operate storage clusters on SSH-reachable hosts.",
    no_args_is_help=True,
)


@app.callback()
def entry(
    debug: bool = typer.Option(False, "--debug", help="Verbose logging."),
) -> None:
    """Global options shared by every command."""
    configure_logging(debug=debug, force=True)
    ctx_store.debug = debug


register_service_commands(app, ctx_store)
register_playbook_command(app, ctx_store)
register_audit_command(app, ctx_store)

app.add_typer(create_cluster_app(ctx_store), name="cluster")
app.add_typer(create_hosts_app(ctx_store), name="hosts")
app.add_typer(create_config_app(ctx_store), name="config")
app.add_typer(create_client_app(ctx_store), name="client")
app.add_typer(create_monitor_app(ctx_store), name="monitor")


def main() -> None:
    """Console script entrypoint (Typer app)."""
    app()


if __name__ == "__main__":
    main()
