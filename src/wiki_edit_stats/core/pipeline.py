"""The request normalisation and entity-resolution pipeline.

Every tool endpoint runs this pipeline before computing anything::

    parse_params -> convert_legacy_params
        -> (index actions) project from query / cookie / default, stop
        -> namespace, offset, limit
        -> project -> user -> EditCountGate -> page -> date window
        -> RestrictedStatsGate

The result is a :class:`ToolRequest`.  Callers check ``ctx.proceed`` and,
when it is ``False``, render ``ctx.decision`` instead of running the tool.
Resolution errors are converted into decisions here and never propagate;
:class:`~wiki_edit_stats.core.exceptions.DownstreamError` does propagate.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import structlog

from wiki_edit_stats.config.settings import Settings
from wiki_edit_stats.config.tools import ToolConfig
from wiki_edit_stats.core.dates import format_date, parse_timestamp, resolve_date_window
from wiki_edit_stats.core.domain import (
    PROCEED,
    DateWindow,
    GateDecision,
    NamespaceSelector,
    PaginationState,
    Proceed,
    RedirectWithMessage,
    Rejected,
    ResolvedPage,
    ResolvedProject,
    ResolvedUser,
)
from wiki_edit_stats.core.entity_resolver import EntityResolver
from wiki_edit_stats.core.exceptions import InvalidProjectError, ResolutionError
from wiki_edit_stats.core.gates import EditCountGate, RestrictedStatsGate
from wiki_edit_stats.core.lookups import PageLookup, ProjectLookup, UserLookup
from wiki_edit_stats.core.messages import FlashBag
from wiki_edit_stats.core.params import (
    convert_legacy_params,
    normalize_limit,
    parse_namespace,
    parse_params,
)
from wiki_edit_stats.core.request_cache import RequestCache

logger = structlog.get_logger(__name__)

API_DOCS_URL = "https://www.mediawiki.org/Special:MyLanguage/XTools/API"


@dataclass
class RawRequest:
    """The parts of an inbound HTTP request the pipeline reads.

    Header names are matched case-insensitively.
    """

    query: Mapping[str, Any]
    path_params: Mapping[str, Any] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    path: str = "/"
    started_at: float = field(default_factory=time.time)

    def header(self, name: str) -> str:
        value = self.headers.get(name)
        if value is None:
            value = self.headers.get(name.lower(), "")
        return value or ""

    @property
    def is_ajax(self) -> bool:
        return self.header("X-Requested-With").lower() == "xmlhttprequest"

    @property
    def is_sub_request(self) -> bool:
        """Views embedding another action pass ``htmlonly``."""
        return bool(self.query.get("htmlonly"))


@dataclass
class ToolRequest:
    """Everything resolved for one request to one tool action."""

    tool: ToolConfig
    action: str
    params: dict[str, str]
    is_api: bool = False
    is_sub_request: bool = False
    path: str = "/"
    started_at: float = field(default_factory=time.time)
    flashes: FlashBag = field(default_factory=FlashBag)
    cache: RequestCache = field(default_factory=RequestCache)
    project: Optional[ResolvedProject] = None
    user: Optional[ResolvedUser] = None
    page: Optional[ResolvedPage] = None
    namespace: Optional[NamespaceSelector] = None
    window: Optional[DateWindow] = None
    limit: Optional[int] = None
    offset: Optional[int] = None
    project_cookie: Optional[str] = None
    decision: GateDecision = PROCEED

    @property
    def proceed(self) -> bool:
        return isinstance(self.decision, Proceed)

    @property
    def pagination(self) -> PaginationState:
        return PaginationState(limit=self.limit or self.tool.max_limit, offset=self.offset)


def decision_for_error(exc: ResolutionError, ctx: ToolRequest) -> GateDecision:
    """Convert a resolution failure into a gate decision.

    API callers get a :class:`Rejected` carrying the error's status.  HTML
    callers are redirected to the tool index with a flash message, without
    the invalid parameter and without ``project`` so that the index does not
    resolve the same bad value again.
    """
    if ctx.is_api:
        return Rejected(exc.status_code, exc.message_key, tuple(exc.message_args))

    ctx.flashes.add("danger", exc.message_key, exc.message_args)
    params = dict(ctx.params)
    if exc.invalid_param is not None:
        params.pop(exc.invalid_param, None)
    params.pop("project", None)
    return RedirectWithMessage(
        target_route=exc.redirect_route,
        message_key=exc.message_key,
        message_args=tuple(exc.message_args),
        stripped_param=exc.invalid_param,
        params=params,
        api_status=exc.status_code,
    )


class RequestPipeline:
    """Runs the shared pipeline for one tool.

    Args:
        settings: Application settings.
        tool: Configuration of the tool being served.
        projects: Project lookup collaborator.
        users: User lookup collaborator.
        pages: Page lookup collaborator.
    """

    def __init__(
        self,
        settings: Settings,
        tool: ToolConfig,
        projects: ProjectLookup,
        users: UserLookup,
        pages: PageLookup,
    ) -> None:
        self._settings = settings
        self._tool = tool
        self._projects = projects
        self._users = users
        self._pages = pages

    async def run(self, raw: RawRequest, action: str) -> ToolRequest:
        params = convert_legacy_params(
            parse_params(raw.query, raw.path_params),
            self._settings.languageless_projects,
        )
        ctx = ToolRequest(
            tool=self._tool,
            action=action,
            params=params,
            is_api=action.endswith("_api"),
            is_sub_request=raw.is_sub_request,
            path=raw.path,
            started_at=raw.started_at,
        )
        resolver = EntityResolver(
            self._tool,
            self._settings,
            self._projects,
            self._users,
            self._pages,
            cache=ctx.cache,
        )
        structlog.contextvars.bind_contextvars(tool=self._tool.name, action=action)

        if raw.is_ajax and not ctx.is_api and not ctx.is_sub_request:
            ctx.decision = Rejected(403, "error-automation", (API_DOCS_URL,))
            return ctx

        cookie = None
        if not ctx.is_sub_request:
            cookie = raw.cookies.get(self._settings.project_cookie_name) or None

        if "index" in action.lower():
            ctx.project = await resolver.project_from_query(params.get("project"), cookie)
            self._remember_project(ctx)
            return ctx

        try:
            await self._set_properties(ctx, resolver, cookie)
        except ResolutionError as exc:
            ctx.decision = decision_for_error(exc, ctx)
            return ctx

        if not ctx.proceed:
            return ctx

        restricted = RestrictedStatsGate(self._tool, self._settings, self._users)
        ctx.decision = await restricted.check(action, ctx.is_api, ctx.user, ctx.project)
        return ctx

    async def _set_properties(
        self,
        ctx: ToolRequest,
        resolver: EntityResolver,
        cookie: Optional[str],
    ) -> None:
        params = ctx.params

        if "offset" in params:
            ctx.offset = parse_timestamp(params["offset"])

        if "limit" in params:
            ctx.limit = normalize_limit(params["limit"], self._tool.max_limit)
            params["limit"] = str(ctx.limit)

        project_raw = params.get("project") or cookie
        if project_raw:
            ctx.project = await resolver.resolve_project(project_raw)
            self._remember_project(ctx)

        namespaces = ctx.project.namespaces if ctx.project is not None else None
        ctx.namespace = parse_namespace(params.get("namespace"), namespaces)

        if "username" in params:
            ctx.user = await resolver.resolve_user(params["username"], ctx.project)
            gate = EditCountGate(self._tool, self._settings, resolver)
            ctx.decision = await gate.check(
                ctx.action,
                ctx.user,
                ctx.project,
                params,
                ctx.flashes,
                is_api=ctx.is_api,
            )
            if not ctx.proceed:
                return

        if "page" in params:
            if ctx.project is None:
                raise InvalidProjectError(
                    self._tool.index_route,
                    "invalid-project",
                    [""],
                    invalid_param="project",
                )
            ctx.page = await resolver.resolve_page(ctx.namespace, params["page"], ctx.project)

        self._set_dates(ctx)

    def _set_dates(self, ctx: ToolRequest) -> None:
        start = ctx.params.get("start")
        end = ctx.params.get("end")
        if not (start or end or self._tool.max_days is not None or self._tool.default_days is not None):
            return

        ctx.window = resolve_date_window(
            start,
            end,
            default_days=self._tool.default_days,
            max_days=self._tool.max_days,
            flashes=ctx.flashes,
        )
        # Echoed back by API responses.
        for key, value in (("start", ctx.window.start), ("end", ctx.window.end)):
            formatted = format_date(value)
            if formatted is None:
                ctx.params.pop(key, None)
            else:
                ctx.params[key] = formatted

    def _remember_project(self, ctx: ToolRequest) -> None:
        if ctx.project is not None and not ctx.is_sub_request:
            ctx.project_cookie = ctx.project.domain
