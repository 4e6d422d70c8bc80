"""Stable UI API surface."""

from __future__ import annotations

from fa_ui.cli import app, ctx_store, main
from fa_ui.cli.runner import run_audited
from fa_ui.ui.terminal import RichUI
from fa_ui.wiring.dependencies import UIContext

__all__ = ["app", "ctx_store", "main", "run_audited", "RichUI", "UIContext"]
