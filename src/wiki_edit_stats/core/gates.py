"""Access gates evaluated after entity resolution.

Both gates return a :data:`~wiki_edit_stats.core.domain.GateDecision`
instead of raising; the caller inspects it and either continues or
short-circuits with a redirect or an error response.

``EditCountGate``
    Sends users with extreme edit counts to a cheaper tool (or back to the
    index) before an expensive per-edit computation runs.

``RestrictedStatsGate``
    Refuses restricted API statistics about users who have not opted in.
    HTML requests are never refused; the view renders a placeholder instead.
"""

from __future__ import annotations

from typing import Mapping, Optional

import structlog

from wiki_edit_stats.config.settings import Settings
from wiki_edit_stats.config.tools import TOOLS, ToolConfig
from wiki_edit_stats.core.domain import (
    PROCEED,
    GateDecision,
    RedirectWithMessage,
    Rejected,
    ResolvedProject,
    ResolvedUser,
)
from wiki_edit_stats.core.entity_resolver import EntityResolver
from wiki_edit_stats.core.lookups import UserLookup
from wiki_edit_stats.core.messages import FlashBag, msg

logger = structlog.get_logger(__name__)


def _label_key_for_route(route: str) -> str:
    """Return the label key of the tool owning *route* (longest index-route prefix)."""
    owners = [t for t in TOOLS.values() if route.startswith(t.index_route)]
    if not owners:
        return route
    return max(owners, key=lambda t: len(t.index_route)).label_key


class EditCountGate:
    """Redirects users whose edit count exceeds ``Settings.max_user_edits``.

    Args:
        tool: Configuration of the current tool.
        settings: Application settings.
        resolver: Resolver whose request cache already holds the user lookup.
    """

    def __init__(self, tool: ToolConfig, settings: Settings, resolver: EntityResolver) -> None:
        self._tool = tool
        self._settings = settings
        self._resolver = resolver

    async def check(
        self,
        action: str,
        user: ResolvedUser,
        project: Optional[ResolvedProject],
        params: Mapping[str, str],
        flashes: FlashBag,
        is_api: bool = False,
    ) -> GateDecision:
        target = self._tool.too_high_edit_count_route
        if target is None or action in self._tool.edit_count_exempt_actions:
            return PROCEED
        if user.is_anon or project is None:
            return PROCEED

        info = await self._resolver.lookup_user(user.username, project)
        max_edits = self._settings.max_user_edits
        if info.edit_count <= max_edits:
            return PROCEED

        redirect_params = dict(params)
        stripped: Optional[str] = None
        flashes.add("danger", "too-many-edits", [max_edits])
        if target != self._tool.index_route:
            flashes.add(
                "danger",
                "too-many-edits-redir",
                [msg(_label_key_for_route(target))],
            )
        else:
            # The index would send the same username straight back here.
            redirect_params.pop("username", None)
            stripped = "username"

        if is_api:
            flashes.clear()

        logger.info(
            "edit_count_gate_tripped",
            tool=self._tool.name,
            edit_count=info.edit_count,
            max_edits=max_edits,
            target=target,
        )
        return RedirectWithMessage(
            target_route=target,
            message_key="too-many-edits",
            message_args=(max_edits,),
            stripped_param=stripped,
            params=redirect_params,
        )


class RestrictedStatsGate:
    """Requires the target user's opt-in for restricted API actions.

    Args:
        tool: Configuration of the current tool.
        settings: Application settings (opt-in page suffix, docs URL).
        users: Lookup answering the opt-in question.
    """

    def __init__(self, tool: ToolConfig, settings: Settings, users: UserLookup) -> None:
        self._tool = tool
        self._settings = settings
        self._users = users

    def opt_in_title(self, user: ResolvedUser, project: ResolvedProject) -> str:
        user_ns = project.namespaces.get(2) or "User"
        return f"{user_ns}:{user.username}/{self._settings.opt_in_page_suffix}"

    async def check(
        self,
        action: str,
        is_api: bool,
        user: Optional[ResolvedUser],
        project: Optional[ResolvedProject],
    ) -> GateDecision:
        if not is_api or action not in self._tool.restricted_actions:
            return PROCEED
        if user is None or project is None:
            return PROCEED

        title = self.opt_in_title(user, project)
        opted_in = False
        if not user.is_anon:
            opted_in = await self._users.is_opted_in(user.username, project.domain, title)
        if opted_in:
            return PROCEED

        logger.info("not_opted_in", tool=self._tool.name, action=action, project=project.domain)
        return Rejected(
            status_code=401,
            message_key="not-opted-in",
            message_args=(
                title,
                f"{msg('not-opted-in-link')} <{self._settings.opt_in_docs_url}>",
                msg("not-opted-in-login"),
            ),
        )
