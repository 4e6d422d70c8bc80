"""CLI fixtures: the global UI context pointed at temp storage and fake shells."""

from __future__ import annotations

import importlib
import sys
from types import SimpleNamespace

import pytest
from typer.testing import CliRunner

from fa_common.settings import FleetSettings
from fa_controller.context import SharedContext
from fa_controller.store import AuditLog, ClusterStore
from tests.helpers.fleet import FakeWorld, RecordingUI

# fa_ui.cli re-exports the main() function under the module name
main = importlib.import_module("fa_ui.cli.main")


@pytest.fixture
def cli(tmp_path, monkeypatch):
    data_dir = tmp_path / "state"
    world = FakeWorld()
    ui = RecordingUI()
    store = ClusterStore(data_dir)
    audit = AuditLog(data_dir)
    ctx = main.ctx_store
    monkeypatch.setattr(ctx, "_settings", FleetSettings(data_dir=str(data_dir)))
    monkeypatch.setattr(ctx, "_store", store)
    monkeypatch.setattr(ctx, "_audit", audit)
    monkeypatch.setattr(ctx, "_ui", ui)
    monkeypatch.setattr(ctx, "_shared", SharedContext())
    monkeypatch.setattr(ctx, "shell_factory", world.shell_factory)
    monkeypatch.setattr(main, "configure_logging", lambda **kwargs: None)
    runner = CliRunner()

    def invoke(*args: str, input: str | None = None):
        monkeypatch.setattr(sys, "argv", ["fleetadm", *args])
        return runner.invoke(main.app, list(args), input=input, prog_name="fleetadm")

    return SimpleNamespace(
        invoke=invoke, world=world, ui=ui, store=store, audit=audit, ctx=ctx, tmp_path=tmp_path
    )
