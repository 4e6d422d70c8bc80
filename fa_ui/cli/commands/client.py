from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

import typer

from fa_common.env import parse_list_env
from fa_common.errors import ERR_INVALID_CLIENT_CONFIG, ERR_UMOUNT_FAILED, ConfigurationError
from fa_controller.api import (
    ClientRecord,
    build_client_status_playbook,
    build_mount_playbook,
    build_umount_playbook,
    format_client_rows,
)
from fa_controller.context import KEY_ALL_CLIENT_STATUS
from fa_topology.api import WILDCARD, ClientConfig, parse_client
from fa_topology.models import ROLE_MDS
from fa_ui.cli.runner import run_audited
from fa_ui.ui.prompts import confirm_or_cancel
from fa_ui.wiring.dependencies import UIContext


def parse_mount_options(items: List[str]) -> Dict[str, str]:
    """``["K=V", ...]`` -> ``{"K": "V"}``."""
    options: Dict[str, str] = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise ERR_INVALID_CLIENT_CONFIG.f(
                "mount option %r is not KEY=VALUE", item, error_cls=ConfigurationError
            )
        options[key.strip()] = value.strip()
    return options


def _with_cluster_mds(ctx: UIContext, clients: List[ClientConfig]) -> List[ClientConfig]:
    """Fill missing mds addresses from the current cluster's mds services."""
    if all(cc.mds_addrs for cc in clients):
        return clients
    record = ctx.cluster()
    configs = ctx.deploy_configs(record, ctx.hosts())
    addrs = [f"{dc.listen_ip}:{dc.listen_port}" for dc in configs if dc.role == ROLE_MDS]
    if not addrs:
        raise ERR_INVALID_CLIENT_CONFIG.f(
            "no mds_addrs given and cluster %r has no mds", record.name, error_cls=ConfigurationError
        )
    return [cc if cc.mds_addrs else cc.model_copy(update={"mds_addrs": addrs}) for cc in clients]


def _matching_records(ctx: UIContext, mount_point: str, host: str) -> List[ClientRecord]:
    return [
        record
        for record in ctx.store.list_clients()
        if record.mount_point == mount_point and (host == WILDCARD or record.host == host)
    ]


def create_client_app(ctx: UIContext) -> typer.Typer:
    """Build the client Typer app (mount/umount/status)."""
    app = typer.Typer(help="Mount and manage filesystem clients.", no_args_is_help=True)

    @app.command("mount")
    def client_mount(
        typer_ctx: typer.Context,
        conf: Path = typer.Option(Path("client.yaml"), "--conf", "-c", help="Client configuration file."),
        host: Optional[str] = typer.Option(None, "--host", help="Target hosts, comma separated."),
        option: List[str] = typer.Option([], "--option", "-o", help="Extra mount option KEY=VALUE."),
        insecure: bool = typer.Option(False, "--insecure", "-k", help="Mount without checks."),
    ) -> None:
        """Run a filesystem client container on each target host."""

        def action() -> None:
            clients = _with_cluster_mds(ctx, parse_client(conf, parse_list_env(host) or None))
            plan = ctx.plan()
            build_mount_playbook(plan, clients, parse_mount_options(option), insecure=insecure).run()
            for cc in clients:
                ctx.ui.show_success(f"Mount {cc.fs_name} to {cc.host}:{cc.mount_point} success ^_^")

        run_audited(ctx, typer_ctx, action)

    @app.command("umount")
    def client_umount(
        typer_ctx: typer.Context,
        mount_point: str = typer.Argument(..., help="Mount point to release."),
        host: str = typer.Option(WILDCARD, "--host", help="Client host."),
        force: bool = typer.Option(False, "--force", "-f", help="Lazy umount and never prompt."),
    ) -> None:
        """Umount a client and remove its container."""

        def action() -> None:
            records = _matching_records(ctx, mount_point, host)
            if not records:
                raise ERR_UMOUNT_FAILED.f(
                    "no client mounted at %s (host=%s)", mount_point, host, error_cls=ConfigurationError
                )
            hosts = ", ".join(record.host for record in records)
            confirm_or_cancel("umount filesystem", f"umount {mount_point} on {hosts}", force=force)
            build_umount_playbook(ctx.plan(), records, force=force).run()
            ctx.ui.show_success(f"Umount {mount_point} success ^_^")

        run_audited(ctx, typer_ctx, action)

    @app.command("status")
    def client_status(typer_ctx: typer.Context) -> None:
        """Show every mounted client."""

        def action() -> None:
            records = ctx.store.list_clients()
            if not records:
                ctx.ui.show_warning("No clients mounted.")
                return
            try:
                build_client_status_playbook(ctx.plan(), records).run()
            finally:
                columns, rows = format_client_rows(ctx.shared.snapshot(KEY_ALL_CLIENT_STATUS).values())
                ctx.ui.show_table("", columns, rows)

        run_audited(ctx, typer_ctx, action)

    return app
