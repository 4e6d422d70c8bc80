"""Tests for the structlog-backed logging setup."""

from __future__ import annotations

import logging

import pytest

from fa_common.logging import LogTarget, configure_logging, resolve_target


pytestmark = pytest.mark.unit_common


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_debug_forces_debug_level(restore_root_logger, monkeypatch) -> None:
    monkeypatch.delenv("FA_LOG_LEVEL", raising=False)
    configure_logging(debug=True, force=True)
    assert restore_root_logger.level == logging.DEBUG


def test_env_level_and_log_file(restore_root_logger, monkeypatch, tmp_path) -> None:
    log_file = tmp_path / "fleetadm.log"
    monkeypatch.setenv("FA_LOG_LEVEL", "info")
    monkeypatch.setenv("FA_LOG_FILE", str(log_file))
    configure_logging(force=True)
    assert restore_root_logger.level == logging.INFO
    logging.getLogger("fa_test").info("hello from test")
    for handler in restore_root_logger.handlers:
        handler.flush()
    assert "hello from test" in log_file.read_text()


def test_without_force_existing_handlers_are_kept(restore_root_logger, monkeypatch) -> None:
    sentinel = logging.NullHandler()
    restore_root_logger.addHandler(sentinel)
    configure_logging()
    assert sentinel in restore_root_logger.handlers


def test_resolve_target_prefers_arguments(monkeypatch) -> None:
    monkeypatch.setenv("FA_LOG_LEVEL", "error")
    monkeypatch.setenv("FA_LOG_JSON", "yes")
    monkeypatch.setenv("FA_LOG_FILE", "/tmp/env.log")
    target = resolve_target("info", False, "/tmp/arg.log", False)
    assert target == LogTarget(level=logging.INFO, as_json=False, path="/tmp/arg.log")

    from_env = resolve_target(None, False, None, None)
    assert from_env == LogTarget(level=logging.ERROR, as_json=True, path="/tmp/env.log")
    assert resolve_target("bogus", False, None, None).level == logging.INFO
    assert resolve_target("15", False, None, None).level == 15


def test_ssh_stack_is_quieted(restore_root_logger, monkeypatch) -> None:
    monkeypatch.delenv("FA_LOG_LEVEL", raising=False)
    configure_logging(level="debug", force=True)
    assert logging.getLogger("paramiko.transport").level == logging.WARNING
    configure_logging(debug=True, force=True)
    assert logging.getLogger("paramiko.transport").level == logging.DEBUG
