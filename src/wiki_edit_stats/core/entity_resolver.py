"""Resolution of request strings into validated projects, users and pages.

The ``EntityResolver`` turns the canonical ``project``, ``username``,
``namespace`` and ``page`` parameters into domain entities, delegating every
existence check to the injected lookup collaborators.

Failures raise a :class:`~wiki_edit_stats.core.exceptions.ResolutionError`
subclass carrying the redirect target (the tool's index route), an i18n
message with arguments, and the parameter to strip before redirecting.

Policy notes:

- Single IP addresses are accepted without any lookup, whatever their edit
  history.
- IP ranges are accepted when their prefix is at least
  ``max_ipv4_cidr`` / ``max_ipv6_cidr`` bits long.
- Named accounts must exist on the resolved project.
"""

from __future__ import annotations

import ipaddress
import re
from typing import Mapping, Optional

import structlog

from wiki_edit_stats.config.settings import Settings
from wiki_edit_stats.config.tools import ToolConfig
from wiki_edit_stats.core.domain import (
    AnonymousIP,
    IPRange,
    NamedUser,
    NamespaceId,
    NamespaceSelector,
    ResolvedPage,
    ResolvedProject,
    ResolvedUser,
    UserKind,
)
from wiki_edit_stats.core.exceptions import (
    InvalidProjectError,
    IPRangeTooWideError,
    PageNotFoundError,
    UnsupportedProjectError,
    UserNotFoundError,
)
from wiki_edit_stats.core.lookups import (
    PageLookup,
    ProjectInfo,
    ProjectLookup,
    UserInfo,
    UserLookup,
)
from wiki_edit_stats.core.messages import msg
from wiki_edit_stats.core.request_cache import RequestCache

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def classify_username(raw: str) -> tuple[UserKind, Optional[int]]:
    """Classify *raw* as a named account, a single IP or an IP range.

    Returns:
        ``(kind, ip_version)``; ``ip_version`` is ``None`` for accounts.
    """
    try:
        address = ipaddress.ip_address(raw)
        return AnonymousIP(), address.version
    except ValueError:
        pass
    if "/" in raw:
        try:
            network = ipaddress.ip_network(raw, strict=False)
        except ValueError:
            return NamedUser(), None
        return IPRange(network.prefixlen), network.version
    return NamedUser(), None


def normalize_username(raw: str) -> str:
    """Apply MediaWiki title casing to an account name.

    Underscores become spaces and the first character is upper-cased.  IP
    addresses and ranges are only trimmed, with IPv6 hex digits upper-cased.
    """
    name = raw.strip()
    kind, version = classify_username(name)
    if not isinstance(kind, NamedUser):
        return name.upper() if version == 6 else name
    name = name.replace("_", " ")
    return name[:1].upper() + name[1:]


def full_page_title(
    namespace: Optional[NamespaceSelector],
    title: str,
    namespaces: Mapping[int, str],
) -> str:
    """Combine a namespace and an unprefixed title into a full page title.

    The article namespace (ID ``0``), ``all`` and an absent namespace keep
    the title as-is.  Otherwise the localized namespace name is prepended,
    after removing that prefix if the title already carries it.
    """
    if not isinstance(namespace, NamespaceId) or namespace.id == 0:
        return title
    ns_name = namespaces.get(namespace.id) or msg("unknown")
    bare = re.sub(rf"^{re.escape(ns_name)}:", "", title)
    return f"{ns_name}:{bare}"


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class EntityResolver:
    """Resolves projects, users and pages for one tool and one request.

    Args:
        tool: Configuration of the tool being served.
        settings: Application settings (CIDR limits, default project).
        projects: Project lookup collaborator.
        users: User lookup collaborator.
        pages: Page lookup collaborator.
        cache: Request-scoped cache shared with the gates.  A fresh one is
            created when omitted.
    """

    def __init__(
        self,
        tool: ToolConfig,
        settings: Settings,
        projects: ProjectLookup,
        users: UserLookup,
        pages: PageLookup,
        cache: RequestCache | None = None,
    ) -> None:
        self._tool = tool
        self._settings = settings
        self._projects = projects
        self._users = users
        self._pages = pages
        self.cache = cache if cache is not None else RequestCache()

    # ------------------------------------------------------------------
    # Lookups through the request cache
    # ------------------------------------------------------------------

    async def lookup_project(self, raw: str) -> ProjectInfo:
        return await self.cache.get_or_load(
            ("project", raw), lambda: self._projects.get_project(raw)
        )

    async def lookup_user(self, username: str, project: ResolvedProject) -> UserInfo:
        return await self.cache.get_or_load(
            ("user", project.domain, username),
            lambda: self._users.get_user(username, project.domain),
        )

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    async def resolve_project(self, raw: str) -> ResolvedProject:
        """Resolve a project from its domain or database name.

        Raises:
            UnsupportedProjectError: If the tool restricts projects and this
                one is not among them.
            InvalidProjectError: If the project does not exist.
        """
        info = await self.lookup_project(raw)

        supported = self._tool.supported_projects
        if supported is not None and info.domain not in supported:
            logger.info("entity_resolution_failed", kind="unsupported_project", project=raw)
            raise UnsupportedProjectError(
                self._tool.index_route,
                "error-unsupported-project",
                [raw],
                invalid_param="project",
            )

        if not info.exists:
            logger.info("entity_resolution_failed", kind="invalid_project", project=raw)
            raise InvalidProjectError(
                self._tool.index_route,
                "invalid-project",
                [raw],
                invalid_param="project",
            )

        return _to_project(info)

    async def project_from_query(
        self,
        raw: Optional[str],
        cookie_value: Optional[str],
    ) -> ResolvedProject:
        """Pick a project for an index page without failing.

        Tries the ``project`` parameter, then the cookie, then the configured
        default project; an invalid choice falls back to the default.
        """
        candidate = raw or cookie_value or self._settings.default_project
        info = await self.lookup_project(candidate)
        if not info.exists:
            info = await self.lookup_project(self._settings.default_project)
        return _to_project(info)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def resolve_user(
        self,
        raw: str,
        project: Optional[ResolvedProject],
    ) -> ResolvedUser:
        """Resolve a username, IP address or IP range.

        Raises:
            IPRangeTooWideError: If a CIDR range is wider than allowed.
            UserNotFoundError: If a named account does not exist on *project*.
        """
        username = normalize_username(raw)
        kind, version = classify_username(username)

        if isinstance(kind, AnonymousIP):
            return ResolvedUser(username=username, kind=kind)

        if isinstance(kind, IPRange):
            limit = (
                self._settings.max_ipv6_cidr
                if version == 6
                else self._settings.max_ipv4_cidr
            )
            if kind.cidr_bits < limit:
                logger.info(
                    "entity_resolution_failed",
                    kind="ip_range_too_wide",
                    cidr_bits=kind.cidr_bits,
                    limit=limit,
                )
                raise IPRangeTooWideError(self._tool.index_route, limit)
            return ResolvedUser(username=username, kind=kind)

        if project is None:
            return ResolvedUser(username=username, kind=kind)

        info = await self.lookup_user(username, project)
        if not info.exists:
            logger.info("entity_resolution_failed", kind="user_not_found", project=project.domain)
            raise UserNotFoundError(
                self._tool.index_route,
                "user-not-found",
                [],
                invalid_param="username",
            )
        return ResolvedUser(username=username, kind=kind, edit_count=info.edit_count)

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    async def resolve_page(
        self,
        namespace: Optional[NamespaceSelector],
        title: str,
        project: ResolvedProject,
    ) -> ResolvedPage:
        """Resolve a page from a namespace selector and a title.

        Raises:
            PageNotFoundError: If the page does not exist.
        """
        full_title = full_page_title(namespace, title, project.namespaces)
        info = await self._pages.get_page(full_title, project.domain)
        if not info.exists:
            logger.info("entity_resolution_failed", kind="page_not_found", project=project.domain)
            raise PageNotFoundError(
                self._tool.index_route,
                "no-result",
                [title],
                invalid_param="page",
            )
        return ResolvedPage(
            title=info.title or full_title,
            namespace_id=info.namespace_id,
            page_id=info.page_id,
        )


def _to_project(info: ProjectInfo) -> ResolvedProject:
    return ResolvedProject(
        domain=info.domain,
        database_name=info.database_name,
        namespaces=dict(info.namespaces),
    )
