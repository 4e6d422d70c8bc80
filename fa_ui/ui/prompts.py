"""Interactive confirmation helpers."""

from __future__ import annotations

from typing import Sequence

from rich.console import Console
from rich.prompt import Confirm

from fa_common.errors import ERR_CANCEL_OPERATION, CancelledByUser

DEFAULT_CONFIRM_PROMPT = "Do you want to continue?"


def confirm_or_cancel(
    operation: str,
    message: str = "",
    *,
    force: bool = False,
    prompt: str = DEFAULT_CONFIRM_PROMPT,
    console: Console | None = None,
) -> None:
    """Show ``message`` and ask for a yes; anything else raises :class:`CancelledByUser`.

    With ``force`` the message is still shown but nothing is asked.
    """
    console = console or Console()
    if message:
        console.print(message)
    if force:
        return
    if Confirm.ask(prompt, console=console, default=False):
        return
    console.print(f"[yellow]{operation} cancelled[/yellow]")
    raise CancelledByUser(f"{ERR_CANCEL_OPERATION.description}: {operation}")


def describe_filter(action: str, id: str, role: str, host: str) -> str:
    return f"{action} services: id={id} role={role} host={host}"


def describe_clean(role: str, host: str, items: Sequence[str]) -> str:
    return f"clean {','.join(items)} of services: role={role} host={host}"
