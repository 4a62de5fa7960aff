"""Small coercion helpers shared across the portal."""

from __future__ import annotations

import html


def escape(value: object) -> str:
    return html.escape("" if value is None else str(value), quote=True)


def coerce_int(value: object, *, default: int, min_value: int | None = None, max_value: int | None = None) -> int:
    try:
        parsed = int(value)
    except Exception:
        parsed = int(default)
    if min_value is not None:
        parsed = max(min_value, parsed)
    if max_value is not None:
        parsed = min(max_value, parsed)
    return parsed


def env_flag(value: str | None, *, default: bool = False) -> bool:
    """Interpret common truthy spellings of an environment flag."""
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}
