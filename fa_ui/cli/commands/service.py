"""Cluster service commands: precheck, deploy, lifecycle, upgrade, clean, status."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, List, Optional

import typer

from fa_common.env import parse_list_env
from fa_common.errors import ERR_CONTAINER_NOT_FOUND, ConfigurationError, FAError
from fa_controller.api import (
    ClusterRecord,
    DeployOptions,
    PlanContext,
    Playbook,
    build_clean_playbook,
    build_deploy_playbook,
    build_precheck_playbook,
    build_restart_playbook,
    build_start_playbook,
    build_status_playbook,
    build_stop_playbook,
    build_upgrade_playbook,
    deploy_title,
    format_rows,
    select_services,
    service_stats,
    status_configs,
)
from fa_controller.tasks.service import CLEAN_ITEMS, collected_statuses
from fa_controller.transport import attach, container_exec_command
from fa_topology.api import WILDCARD, DeployConfig, FilterOption
from fa_topology.filter import service_id
from fa_topology.models import cluster_kind
from fa_ui.cli.runner import run_audited
from fa_ui.ui.prompts import confirm_or_cancel, describe_clean, describe_filter
from fa_ui.wiring.dependencies import UIContext

PRECHECK_GRACE_SECONDS = 3


@dataclass
class ClusterSession:
    """Everything one command needs about the current cluster."""

    record: ClusterRecord
    configs: List[DeployConfig]
    plan: PlanContext

    @classmethod
    def open(cls, ctx: UIContext) -> "ClusterSession":
        record = ctx.cluster()
        hosts = ctx.hosts()
        configs = ctx.deploy_configs(record, hosts)
        return cls(record=record, configs=configs, plan=ctx.plan(record.name, hosts))

    def select(self, id: str, role: str, host: str) -> List[DeployConfig]:
        return select_services(self.configs, self.record.name, FilterOption(id=id, role=role, host=host))


def run_precheck(ctx: UIContext, session: ClusterSession, configs: List[DeployConfig], skip: List[str]) -> None:
    build_precheck_playbook(session.plan, configs, skip).run()
    ctx.ui.write("")
    ctx.ui.show_success("Congratulations!!! all precheck passed :)")


def register_service_commands(
    app: typer.Typer,
    ctx: UIContext,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Attach the cluster service commands to the root app."""

    @app.command("precheck")
    def precheck(
        typer_ctx: typer.Context,
        skip: Optional[str] = typer.Option(
            None,
            "--skip",
            help="Skip check items (topology,ssh,permission,kernel,network,date).",
        ),
    ) -> None:
        """Check hosts and topology before deploying."""

        def action() -> None:
            session = ClusterSession.open(ctx)
            run_precheck(ctx, session, session.configs, parse_list_env(skip))

        run_audited(ctx, typer_ctx, action)

    @app.command("deploy")
    def deploy(
        typer_ctx: typer.Context,
        skip: Optional[str] = typer.Option(None, "--skip", help="Skip service roles."),
        insecure: bool = typer.Option(False, "--insecure", "-k", help="Deploy without precheck."),
        local: bool = typer.Option(False, "--local", help="Use local images, skip pulling."),
    ) -> None:
        """Deploy the current cluster."""

        def action() -> None:
            session = ClusterSession.open(ctx)
            options = DeployOptions(skip=parse_list_env(skip), insecure=insecure, use_local_image=local)
            playbook = build_deploy_playbook(session.plan, session.configs, options)
            for line in deploy_title(session.record.name, session.configs, service_stats(session.configs)):
                ctx.ui.write(line)
            if not insecure:
                run_precheck(ctx, session, session.configs, [])
                ctx.ui.show_success(
                    f"Now we start to deploy cluster, sleep {PRECHECK_GRACE_SECONDS} seconds..."
                )
                sleep(PRECHECK_GRACE_SECONDS)
            playbook.run()
            ctx.ui.write("")
            ctx.ui.show_success(f"Cluster '{session.record.name}' successfully deployed ^_^.")

        run_audited(ctx, typer_ctx, action)

    def _lifecycle(
        name: str,
        build: Callable[[PlanContext, List[DeployConfig]], Playbook],
        help_text: str,
    ) -> None:
        @app.command(name, help=help_text)
        def command(
            typer_ctx: typer.Context,
            id: str = typer.Option(WILDCARD, "--id", help="Service id."),
            role: str = typer.Option(WILDCARD, "--role", help="Service role."),
            host: str = typer.Option(WILDCARD, "--host", help="Service host."),
            force: bool = typer.Option(False, "--force", "-f", help="Never prompt."),
        ) -> None:
            def action() -> None:
                session = ClusterSession.open(ctx)
                selected = session.select(id, role, host)
                confirm_or_cancel(f"{name} service", describe_filter(name, id, role, host), force=force)
                build(session.plan, selected).run()
                ctx.ui.show_success(f"{name.capitalize()} {len(selected)} service(s) success")

            run_audited(ctx, typer_ctx, action)

    _lifecycle("start", build_start_playbook, "Start services.")
    _lifecycle("stop", build_stop_playbook, "Stop services.")
    _lifecycle("restart", build_restart_playbook, "Restart services.")

    @app.command("upgrade")
    def upgrade(
        typer_ctx: typer.Context,
        id: str = typer.Option(WILDCARD, "--id", help="Service id."),
        role: str = typer.Option(WILDCARD, "--role", help="Service role."),
        host: str = typer.Option(WILDCARD, "--host", help="Service host."),
        force: bool = typer.Option(False, "--force", "-f", help="Upgrade every service at once."),
        local: bool = typer.Option(False, "--local", help="Use local images, skip pulling."),
    ) -> None:
        """Recreate service containers from their configured image."""

        def action() -> None:
            session = ClusterSession.open(ctx)
            selected = session.select(id, role, host)
            total = len(selected)
            mode = "at once" if force else "one by one"
            ctx.ui.show_warning(f"Upgrade {total} services {mode}")
            ctx.ui.show_warning(f"Upgrade services: {service_stats(selected)}")
            if force:
                build_upgrade_playbook(session.plan, selected, local).run()
                ctx.ui.write("")
                ctx.ui.show_success(f"Upgrade {total} services success :)")
                return
            for index, dc in enumerate(selected, start=1):
                ctx.ui.write("")
                confirm_or_cancel(
                    "upgrade service",
                    f"Upgrade {index}/{total} service:\n"
                    f"  + host={dc.host}  role={dc.role}  image={dc.container_image}",
                )
                build_upgrade_playbook(session.plan, [dc], local).run()
                ctx.ui.write("")
                ctx.ui.show_success(f"Upgrade {index}/{total} success :)")

        run_audited(ctx, typer_ctx, action)

    @app.command("clean")
    def clean(
        typer_ctx: typer.Context,
        id: str = typer.Option(WILDCARD, "--id", help="Service id."),
        role: str = typer.Option(WILDCARD, "--role", help="Service role."),
        host: str = typer.Option(WILDCARD, "--host", help="Service host."),
        only: str = typer.Option(",".join(CLEAN_ITEMS), "--only", "-o", help="Clean items."),
        no_recycle: bool = typer.Option(
            False, "--no-recycle", help="Remove data directories instead of emptying them."
        ),
        force: bool = typer.Option(False, "--force", "-f", help="Never prompt."),
    ) -> None:
        """Clean logs, data and containers of services."""

        def action() -> None:
            session = ClusterSession.open(ctx)
            selected = session.select(id, role, host)
            items = parse_list_env(only)
            playbook = build_clean_playbook(session.plan, selected, items, recycle=not no_recycle)
            confirm_or_cancel("clean service", describe_clean(role, host, items), force=force)
            playbook.run()
            ctx.ui.show_success(f"Clean {len(selected)} service(s) success")

        run_audited(ctx, typer_ctx, action)

    @app.command("status")
    def status(
        typer_ctx: typer.Context,
        id: str = typer.Option(WILDCARD, "--id", help="Service id."),
        role: str = typer.Option(WILDCARD, "--role", help="Service role."),
        host: str = typer.Option(WILDCARD, "--host", help="Service host."),
        verbose: bool = typer.Option(False, "--verbose", "-v", help="Show ports and directories."),
        show_instances: bool = typer.Option(
            False, "--show-instances", help="One row per instance instead of per deploy item."
        ),
    ) -> None:
        """Show the container status of every service."""

        def action() -> None:
            session = ClusterSession.open(ctx)
            selected = status_configs(session.select(id, role, host))
            failure: Optional[FAError] = None
            try:
                build_status_playbook(session.plan, selected).run()
            except FAError as exc:
                failure = exc
            columns, rows = format_rows(
                collected_statuses(ctx.shared), verbose=verbose, expand=show_instances
            )
            ctx.ui.write(f"Cluster Name    : {session.record.name}")
            ctx.ui.write(f"Cluster Kind    : {cluster_kind(session.configs)}")
            ctx.ui.write("")
            ctx.ui.show_table("", columns, rows)
            if failure is not None:
                raise failure

        run_audited(ctx, typer_ctx, action)

    @app.command("enter")
    def enter(
        typer_ctx: typer.Context,
        id: str = typer.Argument(..., help="Service id as shown by status."),
    ) -> None:
        """Open an interactive shell inside a service container."""

        def action() -> int:
            session = ClusterSession.open(ctx)
            dc = session.select(id, WILDCARD, WILDCARD)[0]
            name = session.record.name
            container_id = ctx.store.get_container_id(name, service_id(name, dc.id))
            if not container_id:
                raise ERR_CONTAINER_NOT_FOUND.f(
                    "service %s has no container, deploy it first", id, error_cls=ConfigurationError
                )
            spec = session.plan.deps.hosts.resolve(dc.host)
            command = container_exec_command(ctx.settings, container_id)
            return attach(spec, command, settings=ctx.settings)

        code = run_audited(ctx, typer_ctx, action)
        if code:
            raise typer.Exit(code)
