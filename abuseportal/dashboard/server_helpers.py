"""Shared helpers for server-rendered portal pages."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

from ..bulletins.models import parse_release_date
from ..utils.helpers import escape

_escape = escape

SEVERITY_CLASSES = {
    "critical": "sev-critical",
    "important": "sev-high",
    "high": "sev-high",
    "moderate": "sev-medium",
    "medium": "sev-medium",
    "low": "sev-low",
}

YEAR_OPTIONS_COUNT = 10


def _format_date(value: Any) -> str:
    parsed = parse_release_date(value)
    if parsed is None:
        return _escape(value or "-")
    return parsed.strftime("%B %d, %Y").replace(" 0", " ")


def _severity_badge(severity: str | None) -> str:
    if not severity:
        return ""
    css = SEVERITY_CLASSES.get(severity.lower(), "sev-none")
    return f'<span class="badge {css}">{_escape(severity)}</span>'


def _year_options(selected: str, *, now: datetime | None = None) -> str:
    current = (now or datetime.now()).year
    options = ['<option value="">All years</option>']
    for year in range(current, current - YEAR_OPTIONS_COUNT, -1):
        sel = " selected" if str(year) == selected else ""
        options.append(f'<option value="{year}"{sel}>{year}</option>')
    return "".join(options)


def _select_options(values: Iterable[tuple[str, str]], selected: str) -> str:
    parts = []
    for value, label in values:
        sel = " selected" if value == selected else ""
        parts.append(f'<option value="{_escape(value)}"{sel}>{_escape(label)}</option>')
    return "".join(parts)


def _error_panel(message: str) -> str:
    return f'<div class="panel panel-error"><p>{_escape(message)}</p></div>'
