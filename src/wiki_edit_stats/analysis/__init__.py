"""Analysis modules: per-user and per-project edit statistics."""

from __future__ import annotations

from wiki_edit_stats.analysis.edit_stats import (
    ADMIN_LOG_TYPES,
    admin_stats,
    general_stats,
    month_counts,
    rights_changes,
    timecard,
    top_edits,
)

__all__ = [
    # user statistics
    "general_stats",
    "month_counts",
    "timecard",
    "rights_changes",
    "top_edits",
    # project statistics
    "ADMIN_LOG_TYPES",
    "admin_stats",
]
