"""Local search, ordering and paging of bulletin listings.

The upstream bulletin API ignores OData options, so the full listing is
fetched once and these operations are applied here.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from .models import UpdateQuery, parse_release_date

DEFAULT_ORDER_FIELD = "CurrentReleaseDate"


def _matches_search(update: Mapping[str, Any], needle: str) -> bool:
    for key in ("DocumentTitle", "ID", "Alias"):
        value = update.get(key)
        if isinstance(value, str) and needle in value.lower():
            return True
    return False


def filter_updates(updates: Sequence[Mapping[str, Any]], query: UpdateQuery) -> list[Mapping[str, Any]]:
    """Apply the case-insensitive search and the ID-prefix year filter."""
    result = list(updates)
    if query.search:
        needle = query.search.lower()
        result = [u for u in result if _matches_search(u, needle)]
    if query.year_filter:
        prefix = query.year_filter
        result = [u for u in result if str(u.get("ID") or "").startswith(prefix)]
    return result


def parse_order(query: UpdateQuery) -> tuple[str, bool]:
    """Return (field, descending) from ``orderby`` (OData "Field dir" allowed) + ``order``."""
    if not query.order_by:
        return DEFAULT_ORDER_FIELD, True
    parts = query.order_by.split()
    field = parts[0] if parts else DEFAULT_ORDER_FIELD
    direction = (parts[1] if len(parts) > 1 else None) or query.order or "desc"
    return field, direction.lower() == "desc"


def sort_updates(
    updates: Sequence[Mapping[str, Any]],
    field: str,
    *,
    descending: bool = True,
) -> list[Mapping[str, Any]]:
    """Sort by one field; date fields compare chronologically, missing values go last."""
    is_date = "Date" in field
    present: list[tuple[Any, Mapping[str, Any]]] = []
    missing: list[Mapping[str, Any]] = []
    for update in updates:
        raw = update.get(field)
        if raw is None:
            missing.append(update)
            continue
        if is_date:
            key = parse_release_date(raw)
            if key is None:
                missing.append(update)
                continue
        else:
            key = str(raw).casefold()
        present.append((key, update))

    present.sort(key=lambda item: item[0], reverse=descending)
    return [u for _, u in present] + missing


def apply_query(
    updates: Sequence[Mapping[str, Any]],
    query: UpdateQuery,
) -> tuple[list[Mapping[str, Any]], int]:
    """Filter, sort and page a listing; the count is taken before paging."""
    filtered = filter_updates(updates, query)
    total_count = len(filtered)
    field, descending = parse_order(query)
    ordered = sort_updates(filtered, field, descending=descending)
    start = max(0, query.skip)
    page = ordered[start:start + max(0, query.top)]
    return page, total_count
