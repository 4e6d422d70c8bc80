from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import List

import typer

from fa_common.errors import ERR_INVALID_SETTINGS, ERR_INVALID_TOPOLOGY, ConfigurationError, ErrorCode
from fa_controller.transport import attach
from fa_topology.api import parse_hosts, parse_topology
from fa_ui.cli.runner import run_audited
from fa_ui.ui.prompts import confirm_or_cancel
from fa_ui.wiring.dependencies import UIContext


def read_file(path: Path, code: ErrorCode = ERR_INVALID_TOPOLOGY) -> str:
    try:
        return path.expanduser().read_text()
    except OSError as exc:
        raise code.e(exc, error_cls=ConfigurationError) from exc


def create_cluster_app(ctx: UIContext) -> typer.Typer:
    """Build the cluster Typer app (add/checkout/list/remove)."""
    app = typer.Typer(help="Manage clusters known to fleetadm.", no_args_is_help=True)

    @app.command("add")
    def cluster_add(
        typer_ctx: typer.Context,
        name: str = typer.Argument(..., help="Cluster name."),
        topology: Path = typer.Option(..., "--topology", "-t", help="Cluster topology file."),
    ) -> None:
        """Register a cluster from its topology file."""

        def action() -> None:
            text = read_file(topology)
            parse_topology(text, cluster=name)
            ctx.store.add_cluster(name, text)
            ctx.ui.show_success(f"Cluster '{name}' added")

        run_audited(ctx, typer_ctx, action)

    @app.command("checkout")
    def cluster_checkout(
        typer_ctx: typer.Context,
        name: str = typer.Argument(..., help="Cluster name."),
    ) -> None:
        """Switch the current cluster."""

        def action() -> None:
            ctx.store.checkout(name)
            ctx.ui.show_success(f"Switched to cluster '{name}'")

        run_audited(ctx, typer_ctx, action)

    @app.command("list")
    def cluster_list() -> None:
        """List clusters; the current one is marked with '*'."""
        clusters = ctx.store.list_clusters()
        if not clusters:
            ctx.ui.show_warning("No clusters added yet.")
            return
        rows: List[List[str]] = []
        for record in clusters:
            mark = "*" if record.name == ctx.store.current else ""
            created = datetime.fromtimestamp(record.created_at).strftime("%Y-%m-%d %H:%M:%S")
            rows.append([f"{mark}{record.name}", record.uuid, created])
        ctx.ui.show_table("", ["Name", "Cluster Id", "Create Time"], rows)

    @app.command("remove")
    def cluster_remove(
        typer_ctx: typer.Context,
        name: str = typer.Argument(..., help="Cluster name."),
        force: bool = typer.Option(False, "--force", "-f", help="Never prompt."),
    ) -> None:
        """Forget a cluster; its services are left untouched."""

        def action() -> None:
            ctx.store.get_cluster(name)
            confirm_or_cancel("remove cluster", f"remove cluster '{name}'", force=force)
            ctx.store.remove_cluster(name)
            ctx.ui.show_success(f"Cluster '{name}' removed")

        run_audited(ctx, typer_ctx, action)

    return app


def create_hosts_app(ctx: UIContext) -> typer.Typer:
    """Build the hosts Typer app (commit/show/login)."""
    app = typer.Typer(help="Manage the SSH hosts directory.", no_args_is_help=True)

    @app.command("commit")
    def hosts_commit(
        typer_ctx: typer.Context,
        path: Path = typer.Argument(..., help="Hosts file."),
    ) -> None:
        """Validate and store the hosts file."""

        def action() -> None:
            text = read_file(path, ERR_INVALID_SETTINGS)
            specs = parse_hosts(text)
            ctx.store.set_hosts(text)
            ctx.ui.show_success(f"Hosts committed: {len(specs)} host(s)")

        run_audited(ctx, typer_ctx, action)

    @app.command("show")
    def hosts_show() -> None:
        """Print the stored hosts file."""
        text = ctx.store.get_hosts()
        if not text:
            ctx.ui.show_warning("No hosts committed yet.")
            return
        ctx.ui.write(text.rstrip("\n"))

    @app.command("login")
    def hosts_login(
        typer_ctx: typer.Context,
        host: str = typer.Argument(..., help="Host name from the hosts file."),
    ) -> None:
        """Open an interactive SSH session on a host."""

        def action() -> int:
            spec = ctx.hosts().resolve(host)
            return attach(spec, settings=ctx.settings)

        code = run_audited(ctx, typer_ctx, action)
        if code:
            raise typer.Exit(code)

    return app


def create_config_app(ctx: UIContext) -> typer.Typer:
    """Build the config Typer app (commit/show) for the current cluster topology."""
    app = typer.Typer(help="Manage the topology of the current cluster.", no_args_is_help=True)

    @app.command("commit")
    def config_commit(
        typer_ctx: typer.Context,
        topology: Path = typer.Argument(..., help="New topology file."),
        force: bool = typer.Option(False, "--force", "-f", help="Never prompt."),
    ) -> None:
        """Replace the stored topology of the current cluster."""

        def action() -> None:
            record = ctx.cluster()
            text = read_file(topology)
            configs = parse_topology(text, cluster=record.name)
            confirm_or_cancel(
                "commit topology",
                f"commit {len(configs)} service(s) to cluster '{record.name}'",
                force=force,
            )
            ctx.store.update_topology(record.name, text)
            ctx.ui.show_success(f"Cluster '{record.name}' topology updated")

        run_audited(ctx, typer_ctx, action)

    @app.command("show")
    def config_show(typer_ctx: typer.Context) -> None:
        """Print the stored topology of the current cluster."""
        run_audited(ctx, typer_ctx, lambda: ctx.ui.write(ctx.cluster().topology.rstrip("\n")))

    return app
