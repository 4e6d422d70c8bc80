"""Monitoring stack commands."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Sequence

import typer

from fa_common.env import parse_list_env
from fa_common.errors import ERR_INVALID_MONITOR_CONFIG, ConfigurationError
from fa_controller.api import (
    PlanContext,
    Playbook,
    build_monitor_clean_playbook,
    build_monitor_deploy_playbook,
    build_monitor_restart_playbook,
    build_monitor_start_playbook,
    build_monitor_status_playbook,
    build_monitor_stop_playbook,
    format_monitor_rows,
)
from fa_controller.context import KEY_MONITOR_STATUS
from fa_controller.plans.monitor import MONITOR_CLEAN_ITEMS
from fa_topology.api import WILDCARD, MonitorConfig, parse_monitor
from fa_ui.cli.commands.cluster import read_file
from fa_ui.cli.commands.service import ClusterSession
from fa_ui.cli.runner import run_audited
from fa_ui.ui.prompts import confirm_or_cancel, describe_clean, describe_filter
from fa_ui.wiring.dependencies import UIContext


def filter_monitors(monitors: Sequence[MonitorConfig], role: str, host: str) -> List[MonitorConfig]:
    selected = [
        mc
        for mc in monitors
        if (role == WILDCARD or mc.role == role) and (host == WILDCARD or mc.host == host)
    ]
    if not selected:
        raise ERR_INVALID_MONITOR_CONFIG.f(
            "no monitor matched (role=%s, host=%s)", role, host, error_cls=ConfigurationError
        )
    return selected


def stored_monitors(session: ClusterSession) -> List[MonitorConfig]:
    if not session.record.monitor:
        raise ERR_INVALID_MONITOR_CONFIG.f(
            "cluster %r has no monitor deployed", session.record.name, error_cls=ConfigurationError
        )
    return parse_monitor(session.record.monitor)


def create_monitor_app(ctx: UIContext) -> typer.Typer:
    """Build the monitor Typer app."""
    app = typer.Typer(help="Deploy and manage the monitoring stack.", no_args_is_help=True)

    @app.command("deploy")
    def monitor_deploy(
        typer_ctx: typer.Context,
        conf: Path = typer.Option(Path("monitor.yaml"), "--conf", "-c", help="Monitor configuration file."),
        local: bool = typer.Option(False, "--local", help="Use local images, skip pulling."),
    ) -> None:
        """Run node exporter, prometheus and grafana for the current cluster."""

        def action() -> None:
            text = read_file(conf, ERR_INVALID_MONITOR_CONFIG)
            monitors = parse_monitor(text)
            session = ClusterSession.open(ctx)
            ctx.store.set_monitor(session.record.name, text)
            build_monitor_deploy_playbook(session.plan, monitors, session.configs, local).run()
            ctx.ui.write("")
            ctx.ui.show_success(f"Deploy monitor of cluster '{session.record.name}' success ^_^")

        run_audited(ctx, typer_ctx, action)

    def _lifecycle(name: str, build: Callable[[PlanContext, Sequence[MonitorConfig]], Playbook]) -> None:
        @app.command(name, help=f"{name.capitalize()} monitor services.")
        def command(
            typer_ctx: typer.Context,
            role: str = typer.Option(WILDCARD, "--role", help="Monitor role."),
            host: str = typer.Option(WILDCARD, "--host", help="Monitor host."),
            force: bool = typer.Option(False, "--force", "-f", help="Never prompt."),
        ) -> None:
            def action() -> None:
                session = ClusterSession.open(ctx)
                selected = filter_monitors(stored_monitors(session), role, host)
                confirm_or_cancel(
                    f"{name} monitor", describe_filter(name, WILDCARD, role, host), force=force
                )
                build(session.plan, selected).run()
                ctx.ui.show_success(f"{name.capitalize()} {len(selected)} monitor service(s) success")

            run_audited(ctx, typer_ctx, action)

    _lifecycle("start", build_monitor_start_playbook)
    _lifecycle("stop", build_monitor_stop_playbook)
    _lifecycle("restart", build_monitor_restart_playbook)

    @app.command("clean")
    def monitor_clean(
        typer_ctx: typer.Context,
        role: str = typer.Option(WILDCARD, "--role", help="Monitor role."),
        host: str = typer.Option(WILDCARD, "--host", help="Monitor host."),
        only: str = typer.Option(",".join(MONITOR_CLEAN_ITEMS), "--only", "-o", help="Clean items."),
        force: bool = typer.Option(False, "--force", "-f", help="Never prompt."),
    ) -> None:
        """Remove monitor data and containers."""

        def action() -> None:
            session = ClusterSession.open(ctx)
            selected = filter_monitors(stored_monitors(session), role, host)
            items = parse_list_env(only)
            playbook = build_monitor_clean_playbook(session.plan, selected, items)
            confirm_or_cancel("clean monitor", describe_clean(role, host, items), force=force)
            playbook.run()
            ctx.ui.show_success(f"Clean {len(selected)} monitor service(s) success")

        run_audited(ctx, typer_ctx, action)

    @app.command("status")
    def monitor_status(
        typer_ctx: typer.Context,
        verbose: bool = typer.Option(False, "--verbose", "-v", help="Show data directories."),
    ) -> None:
        """Show the container status of every monitor service."""

        def action() -> None:
            session = ClusterSession.open(ctx)
            monitors = stored_monitors(session)
            try:
                build_monitor_status_playbook(session.plan, monitors).run()
            finally:
                statuses = ctx.shared.snapshot(KEY_MONITOR_STATUS).values()
                columns, rows = format_monitor_rows(statuses, verbose=verbose)
                ctx.ui.write(f"Cluster Name    : {session.record.name}")
                ctx.ui.write("")
                ctx.ui.show_table("", columns, rows)

        run_audited(ctx, typer_ctx, action)

    return app
