"""structlog wiring for the fleetadm CLI.

Log records from fleetadm modules and from the SSH stack (fabric, invoke,
paramiko) all end up on the root logger and are rendered by one structlog
``ProcessorFormatter``, either as console lines or as JSON.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass

import structlog

from fa_common.env import parse_bool_env


# paramiko logs every channel open at INFO; keep it out of operator output.
NOISY_LOGGERS = ("paramiko", "paramiko.transport", "invoke", "fabric")


@dataclass(frozen=True)
class LogTarget:
    """Where and how records are written once env overrides are applied."""

    level: int
    as_json: bool
    path: str | None


def _level_from(value: str | int | None) -> int:
    if value is None:
        return logging.WARNING
    if isinstance(value, int):
        return value
    text = value.strip()
    if text.isdigit():
        return int(text)
    resolved = logging.getLevelName(text.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def resolve_target(
    level: str | int | None,
    debug: bool,
    log_file: str | None,
    json: bool | None,
) -> LogTarget:
    """Merge call arguments with ``FA_LOG_LEVEL``, ``FA_LOG_JSON`` and ``FA_LOG_FILE``."""
    env = os.environ
    as_json = json if json is not None else parse_bool_env(env.get("FA_LOG_JSON"))
    return LogTarget(
        level=logging.DEBUG if debug else _level_from(level or env.get("FA_LOG_LEVEL")),
        as_json=bool(as_json),
        path=log_file if log_file is not None else env.get("FA_LOG_FILE"),
    )


def _pre_chain() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def _formatter(as_json: bool) -> structlog.stdlib.ProcessorFormatter:
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer()
        if as_json
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=_pre_chain(),
    )


def _wire_structlog() -> None:
    structlog.configure(
        processors=[*_pre_chain(), structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def configure_logging(
    *,
    level: str | int | None = None,
    debug: bool = False,
    log_file: str | None = None,
    json: bool | None = None,
    force: bool = False,
) -> None:
    """Install the fleetadm handlers on the root logger.

    When the root logger already has handlers and ``force`` is false those
    handlers are left untouched and only structlog itself is configured.
    """
    root = logging.getLogger()
    if root.handlers and not force:
        _wire_structlog()
        return

    target = resolve_target(level, debug, log_file, json)
    formatter = _formatter(target.as_json)
    sinks: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if target.path:
        sinks.append(logging.FileHandler(target.path))

    if force:
        root.handlers.clear()
    root.setLevel(target.level)
    for sink in sinks:
        sink.setFormatter(formatter)
        root.addHandler(sink)

    quiet = logging.DEBUG if debug else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(quiet, target.level))

    _wire_structlog()
