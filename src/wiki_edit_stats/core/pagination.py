"""Shaping of paginated revision listings.

Revision records returned by the data layer carry a namespace ID and a
title without namespace prefix.  :func:`add_full_page_titles_and_continue`
adds the prefixed title and, when the page is full, a ``continue`` cursor
that callers send back as ``offset`` to fetch the next (older) page.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from wiki_edit_stats.core.dates import format_continue
from wiki_edit_stats.core.domain import NamespaceId
from wiki_edit_stats.core.entity_resolver import full_page_title


def continuation_token(records: Sequence[Mapping[str, Any]], limit: Optional[int]) -> Optional[str]:
    """Return the cursor for the next page, or ``None`` on a partial page.

    The cursor is the last record's timestamp as ``YYYY-MM-DDTHH:MM:SS``.
    """
    if not records or limit is None or len(records) != limit:
        return None
    return format_continue(records[-1]["timestamp"])


def add_full_page_titles_and_continue(
    key: str,
    out: dict[str, Any],
    records: Sequence[Mapping[str, Any]],
    limit: Optional[int],
    namespaces: Mapping[int, str],
) -> dict[str, Any]:
    """Attach *records* under *key* in *out*, enriched for API output.

    Each record gets a leading ``full_page_title`` key; its original
    ``page_namespace`` and ``page_title`` are kept.  A ``continue`` key is
    added when exactly *limit* records were returned.

    Returns:
        *out*, updated in place.
    """
    enriched = []
    for rev in records:
        title = full_page_title(
            NamespaceId(int(rev["page_namespace"])),
            rev["page_title"],
            namespaces,
        )
        enriched.append({"full_page_title": title, **rev})
    out[key] = enriched

    token = continuation_token(enriched, limit)
    if token is not None:
        out["continue"] = token
    return out
