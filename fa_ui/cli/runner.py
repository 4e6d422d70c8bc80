"""Audit-recording wrapper shared by every operational command."""

from __future__ import annotations

import logging
import shlex
import sys
from typing import Any, Callable, Sequence

import typer

from fa_common.errors import CancelledByUser, FAError
from fa_controller.api import AuditEntry
from fa_ui.wiring.dependencies import UIContext

logger = logging.getLogger(__name__)


PROG_NAME = "fleetadm"


def command_line(argv: Sequence[str] | None = None, prog: str = PROG_NAME) -> str:
    """Shell-quoted invocation as typed, ``sys.argv`` by default."""
    args = sys.argv[1:] if argv is None else argv
    return shlex.join([prog, *args])


def format_error(error: FAError) -> str:
    return f"Error: {error}\n  code: {error.code.code}, type: {error.error_type}"


def _record(ctx: UIContext, command: str, error: BaseException | None) -> None:
    status, code = AuditEntry.for_error(error)
    try:
        ctx.audit.record(command, status, code)
    except FAError as exc:
        logger.warning("Could not write audit entry: %s", exc)


def run_audited(ctx: UIContext, typer_ctx: typer.Context, action: Callable[[], Any]) -> Any:
    """Run ``action``, record the outcome and map errors to exit code 1."""
    command = command_line(prog=typer_ctx.find_root().info_name or PROG_NAME)
    try:
        result = action()
    except CancelledByUser as exc:
        _record(ctx, command, exc)
        raise typer.Exit(1) from exc
    except FAError as exc:
        _record(ctx, command, exc)
        ctx.ui.show_error(format_error(exc))
        logger.debug("Command %s failed", command, exc_info=True)
        raise typer.Exit(1) from exc
    except typer.Exit:
        raise
    except Exception as exc:
        _record(ctx, command, exc)
        raise
    _record(ctx, command, None)
    return result
