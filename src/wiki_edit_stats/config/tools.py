"""Per-tool request-handling configuration.

Every statistics tool shares the same request pipeline; what differs between
tools is captured here as a frozen :class:`ToolConfig`.  The pipeline reads
these values to decide which gates apply, which projects are accepted and
how date windows are defaulted and capped.

Route names referenced here must match the ``name=`` of a route registered
in :mod:`wiki_edit_stats.api.routes`, since redirects are generated from them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class ToolConfig:
    """Configuration for a single statistics tool.

    Attributes:
        name: Short tool identifier, also used in ``Settings.disabled_tools``.
        index_route: Route name of the tool's index form.  Resolution errors
            redirect here.
        label_key: Message key of the tool's display name.
        too_high_edit_count_route: Route to redirect users with too many
            edits to.  ``None`` disables the edit-count gate for the tool.
            When equal to ``index_route`` the ``username`` parameter is
            dropped from the redirect.
        edit_count_exempt_actions: Actions never subject to the edit-count gate.
        restricted_actions: API actions that require the target user to have
            opted in to restricted statistics.
        supported_projects: Allow-list of project domains.  ``None`` accepts
            every existing project.
        default_days: Window length used when one side of the date range is
            missing.  Falls back to ``max_days`` when unset.
        max_days: Hard cap on the date window length.
        max_limit: Upper bound for the ``limit`` parameter.
    """

    name: str
    index_route: str
    label_key: str
    too_high_edit_count_route: Optional[str] = None
    edit_count_exempt_actions: frozenset[str] = field(default_factory=frozenset)
    restricted_actions: frozenset[str] = field(default_factory=frozenset)
    supported_projects: Optional[frozenset[str]] = None
    default_days: Optional[int] = None
    max_days: Optional[int] = None
    max_limit: int = 5000


TOOLS: dict[str, ToolConfig] = {
    "editcounter": ToolConfig(
        name="editcounter",
        index_route="EditCounter",
        label_key="tool-editcounter",
        too_high_edit_count_route="SimpleEditCounterResult",
        edit_count_exempt_actions=frozenset({"rights_changes"}),
        restricted_actions=frozenset({"month_counts_api", "timecard_api"}),
    ),
    "simpleeditcounter": ToolConfig(
        name="simpleeditcounter",
        index_route="SimpleEditCounter",
        label_key="tool-simpleeditcounter",
    ),
    "topedits": ToolConfig(
        name="topedits",
        index_route="TopEdits",
        label_key="tool-topedits",
        too_high_edit_count_route="TopEdits",
        edit_count_exempt_actions=frozenset({"namespace_top_edits_api"}),
    ),
    "pageinfo": ToolConfig(
        name="pageinfo",
        index_route="PageInfo",
        label_key="tool-pageinfo",
    ),
    "authorship": ToolConfig(
        name="authorship",
        index_route="Authorship",
        label_key="tool-authorship",
        supported_projects=frozenset(
            {"en.wikipedia.org", "de.wikipedia.org", "it.wikipedia.org"}
        ),
    ),
    "adminstats": ToolConfig(
        name="adminstats",
        index_route="AdminStats",
        label_key="tool-adminstats",
        default_days=31,
        max_days=365,
    ),
    "usercontribs": ToolConfig(
        name="usercontribs",
        index_route="UserContribs",
        label_key="tool-usercontribs",
        max_limit=500,
    ),
}
"""Registry of every tool served by the application, keyed by tool name."""


def get_tool(name: str) -> ToolConfig:
    """Return the :class:`ToolConfig` registered under *name*.

    Raises:
        KeyError: If no tool with that name is registered.
    """
    return TOOLS[name]
