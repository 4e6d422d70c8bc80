"""Parsers for ``FA_*`` environment values and comma-separated CLI options."""

from __future__ import annotations

from typing import Callable, TypeVar

_T = TypeVar("_T", int, float)

TRUTHY = frozenset({"1", "true", "yes", "on"})


def parse_bool_env(value: str | None) -> bool | None:
    """``None`` stays ``None``; anything outside ``TRUTHY`` is false."""
    if value is None:
        return None
    return value.strip().lower() in TRUTHY


def _parse_number(value: str | None, cast: Callable[[str], _T]) -> _T | None:
    if value is None:
        return None
    try:
        return cast(value)
    except ValueError:
        return None


def parse_int_env(value: str | None) -> int | None:
    return _parse_number(value, int)


def parse_float_env(value: str | None) -> float | None:
    return _parse_number(value, float)


def parse_list_env(value: str | None) -> list[str]:
    """``"store, mds,,"`` becomes ``["store", "mds"]``."""
    return [item.strip() for item in (value or "").split(",") if item.strip()]
