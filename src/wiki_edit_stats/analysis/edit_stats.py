"""Edit statistics computed from contribution and log records.

Every function here is pure: it takes records already fetched by
:class:`~wiki_edit_stats.wiki.client.MediaWikiClient` and returns plain
dicts/lists that route handlers pass straight to the JSON serializer or a
template.

Contribution records carry ``page_namespace``, ``page_title`` (without
namespace prefix) and an ISO 8601 ``timestamp``.  Log records carry
``user``, ``type``, ``action`` and ``timestamp``.
"""

from __future__ import annotations

from collections import Counter, OrderedDict
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Sequence

import structlog

from wiki_edit_stats.core.domain import NamespaceId
from wiki_edit_stats.core.entity_resolver import full_page_title

logger = structlog.get_logger(__name__)

ADMIN_LOG_TYPES: tuple[str, ...] = ("delete", "block", "protect", "rights")
"""Log types counted by the admin statistics tool, in column order."""


def _parse_iso(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Edit counter
# ---------------------------------------------------------------------------


def month_counts(contribs: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    """Count edits per namespace and calendar month.

    Returns:
        ``{"totals": {ns_id: {"YYYY-MM": count}}}`` with months in
        chronological order and months without edits filled with ``0``
        between the first and last month seen.
    """
    per_ns: dict[int, Counter[str]] = {}
    months: set[str] = set()
    for rev in contribs:
        month = _parse_iso(rev["timestamp"]).strftime("%Y-%m")
        months.add(month)
        per_ns.setdefault(int(rev["page_namespace"]), Counter())[month] += 1

    if not months:
        return {"totals": {}}

    all_months = _month_range(min(months), max(months))
    totals: dict[int, OrderedDict[str, int]] = {}
    for ns_id in sorted(per_ns):
        totals[ns_id] = OrderedDict((m, per_ns[ns_id].get(m, 0)) for m in all_months)
    return {"totals": totals}


def _month_range(first: str, last: str) -> list[str]:
    year, month = (int(part) for part in first.split("-"))
    end_year, end_month = (int(part) for part in last.split("-"))
    out = []
    while (year, month) <= (end_year, end_month):
        out.append(f"{year:04d}-{month:02d}")
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return out


def timecard(contribs: Iterable[Mapping[str, Any]]) -> list[dict[str, int]]:
    """Count edits per weekday and hour (UTC).

    ``day_of_week`` runs from 1 (Sunday) to 7 (Saturday).  Only cells with
    at least one edit are returned, ordered by day then hour.
    """
    cells: Counter[tuple[int, int]] = Counter()
    for rev in contribs:
        ts = _parse_iso(rev["timestamp"])
        # isoweekday(): Monday=1 .. Sunday=7
        day = ts.isoweekday() % 7 + 1
        cells[(day, ts.hour)] += 1
    return [
        {"day_of_week": day, "hour": hour, "value": count}
        for (day, hour), count in sorted(cells.items())
    ]


def general_stats(contribs: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
    """Summarise a sample of contributions (newest first)."""
    if not contribs:
        return {"sample_size": 0, "namespaces": {}, "first_edit": None, "latest_edit": None, "minor_edits": 0}
    namespaces = Counter(int(rev["page_namespace"]) for rev in contribs)
    return {
        "sample_size": len(contribs),
        "namespaces": dict(sorted(namespaces.items())),
        "first_edit": contribs[-1]["timestamp"],
        "latest_edit": contribs[0]["timestamp"],
        "minor_edits": sum(1 for rev in contribs if rev.get("minor")),
    }


def rights_changes(events: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Flatten ``rights`` log entries into added/removed group lists."""
    changes = []
    for event in events:
        params = event.get("params") or {}
        old = set(_group_names(params.get("oldgroups")))
        new = set(_group_names(params.get("newgroups")))
        changes.append(
            {
                "timestamp": event["timestamp"],
                "performer": event.get("user"),
                "added": sorted(new - old),
                "removed": sorted(old - new),
                "comment": event.get("comment"),
            }
        )
    return changes


def _group_names(groups: Any) -> list[str]:
    if not groups:
        return []
    return [g["group"] if isinstance(g, Mapping) else str(g) for g in groups]


# ---------------------------------------------------------------------------
# Top edits
# ---------------------------------------------------------------------------


def top_edits(
    contribs: Iterable[Mapping[str, Any]],
    namespaces: Mapping[int, str],
    limit: int = 100,
) -> dict[int, list[dict[str, Any]]]:
    """Rank the pages edited most often, per namespace.

    Returns:
        ``{ns_id: [{"page_title", "full_page_title", "count"}]}``, at most
        *limit* pages per namespace, ties broken by title.
    """
    counts: Counter[tuple[int, str]] = Counter()
    for rev in contribs:
        counts[(int(rev["page_namespace"]), rev["page_title"])] += 1

    ranked: dict[int, list[dict[str, Any]]] = {}
    for (ns_id, title), count in sorted(counts.items(), key=lambda item: (-item[1], item[0][1])):
        bucket = ranked.setdefault(ns_id, [])
        if len(bucket) >= limit:
            continue
        bucket.append(
            {
                "page_title": title,
                "full_page_title": full_page_title(NamespaceId(ns_id), title, namespaces),
                "count": count,
            }
        )
    return dict(sorted(ranked.items()))


# ---------------------------------------------------------------------------
# Admin statistics
# ---------------------------------------------------------------------------


def admin_stats(events_by_type: Mapping[str, Iterable[Mapping[str, Any]]]) -> list[dict[str, Any]]:
    """Count administrative log actions per user.

    Args:
        events_by_type: Log records keyed by log type (see
            :data:`ADMIN_LOG_TYPES`).

    Returns:
        One row per user, sorted by descending total then username, with a
        column per log type and a ``total``.
    """
    per_user: dict[str, Counter[str]] = {}
    for log_type, events in events_by_type.items():
        for event in events:
            user = event.get("user")
            if not user:
                continue
            per_user.setdefault(user, Counter())[log_type] += 1

    rows = []
    for user, counts in per_user.items():
        row: dict[str, Any] = {"username": user}
        for log_type in ADMIN_LOG_TYPES:
            row[log_type] = counts.get(log_type, 0)
        row["total"] = sum(counts.values())
        rows.append(row)
    rows.sort(key=lambda r: (-r["total"], r["username"]))
    return rows
