"""Response rendering for tool views and API endpoints.

``render_tool_response``
    Renders ``<tool>/<view>.<format>.j2`` for HTML-flavoured routes.  The
    ``format`` parameter selects the template; a missing template falls
    back to HTML silently.  CSV and TSV responses are sent as attachments.

``format_api_response``
    Builds the JSON envelope of API routes: queued flash messages first,
    then the echoed parameters, then the tool payload, then
    ``elapsed_time``.

``render_decision``
    Turns a non-proceed :data:`~wiki_edit_stats.core.domain.GateDecision`
    into a redirect (HTML) or a JSON error (API).
"""

from __future__ import annotations

import html
import re
import time
from typing import Any, Mapping, Optional

import structlog
from fastapi import Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from jinja2 import TemplateNotFound

from wiki_edit_stats.api.routing import build_url
from wiki_edit_stats.config.settings import get_settings
from wiki_edit_stats.core.domain import NamespaceId, RedirectWithMessage, Rejected
from wiki_edit_stats.core.messages import msg_if_exists
from wiki_edit_stats.core.params import explode_multi_value
from wiki_edit_stats.core.pipeline import ToolRequest

logger = structlog.get_logger(__name__)

DEFAULT_FORMAT = "html"

FORMAT_CONTENT_TYPES: dict[str, str] = {
    "wikitext": "text/plain",
    "csv": "text/csv",
    "tsv": "text/tab-separated-values",
    "json": "application/json",
    "html": "text/html",
}

ATTACHMENT_FORMATS = frozenset({"csv", "tsv"})

_UNSAFE_FILENAME_CHARS = re.compile(r'[-\/\\:;*?|<>%#"]+')

# Ten years.
_COOKIE_MAX_AGE = 10 * 365 * 24 * 60 * 60


def requested_format(params: Mapping[str, str]) -> str:
    return (params.get("format") or "").strip().lower() or DEFAULT_FORMAT


def content_type_for(fmt: str) -> str:
    return FORMAT_CONTENT_TYPES.get(fmt, FORMAT_CONTENT_TYPES[DEFAULT_FORMAT])


def export_filename(path: str) -> str:
    """Derive a download filename from a request path.

    ``/adminstats/en.wikipedia.org/2020-01-01/2020-02-01`` becomes
    ``adminstats-en.wikipedia.org-2020-01-01-2020-02-01``.
    """
    return _UNSAFE_FILENAME_CHARS.sub("-", path).strip("-")


def template_exists(templates: Jinja2Templates, name: str) -> bool:
    try:
        templates.get_template(name)
    except TemplateNotFound:
        return False
    return True


def flash_messages(request: Request, ctx: Optional[ToolRequest] = None) -> list[tuple[str, str]]:
    """Collect ``(level, text)`` pairs queued on *ctx* and carried in the query string."""
    pairs: list[tuple[str, str]] = []
    if ctx is not None:
        for level, texts in ctx.flashes.pop_all().items():
            pairs.extend((level, text) for text in texts)
    texts = request.query_params.getlist("flash")
    levels = request.query_params.getlist("flash_level")
    for index, text in enumerate(texts):
        level = levels[index] if index < len(levels) else "info"
        pairs.append((level, text))
    return pairs


def carried_flashes(ctx: ToolRequest) -> list[tuple[str, str]]:
    """Drain the flash queue into repeated ``flash``/``flash_level`` query pairs."""
    carried: list[tuple[str, str]] = []
    for level, texts in ctx.flashes.pop_all().items():
        for text in texts:
            carried.append(("flash", text))
            carried.append(("flash_level", level))
    return carried


def apply_project_cookie(response: Response, ctx: ToolRequest) -> None:
    if ctx.project_cookie and not ctx.is_sub_request:
        response.set_cookie(
            get_settings().project_cookie_name,
            ctx.project_cookie,
            max_age=_COOKIE_MAX_AGE,
            httponly=True,
            samesite="lax",
        )


# ---------------------------------------------------------------------------
# HTML-flavoured responses
# ---------------------------------------------------------------------------


def render_tool_response(
    request: Request,
    ctx: ToolRequest,
    view: str,
    context: Mapping[str, Any] | None = None,
    status_code: int = 200,
) -> Response:
    """Render a tool view in the requested format.

    Args:
        request: The incoming HTTP request.
        ctx: Pipeline result for the request.
        view: View name, e.g. ``"result"``.
        context: Extra template variables.
        status_code: HTTP status of the response.

    Returns:
        A ``TemplateResponse`` with content type, attachment filename and
        project cookie set.
    """
    templates: Jinja2Templates = request.app.state.templates
    fmt = requested_format(ctx.params)
    name = f"{ctx.tool.name}/{view}.{fmt}.j2"
    if not template_exists(templates, name):
        if fmt != DEFAULT_FORMAT:
            logger.debug("format_template_missing", template=name)
        fmt = DEFAULT_FORMAT
        name = f"{ctx.tool.name}/{view}.{fmt}.j2"

    response = templates.TemplateResponse(
        request,
        name,
        {
            "ctx": ctx,
            "params": ctx.params,
            "project": ctx.project,
            "user": ctx.user,
            "page": ctx.page,
            "window": ctx.window,
            "flashes": flash_messages(request, ctx),
            "format": fmt,
            **(context or {}),
        },
        status_code=status_code,
        media_type=content_type_for(fmt),
    )
    if fmt in ATTACHMENT_FORMATS:
        response.headers["Content-Disposition"] = (
            f'attachment; filename="{export_filename(ctx.path)}.{fmt}"'
        )
    apply_project_cookie(response, ctx)
    return response


def render_error_page(request: Request, text: str, status_code: int) -> Response:
    templates: Jinja2Templates | None = getattr(request.app.state, "templates", None)
    if templates is None:
        return HTMLResponse(f"<p>{html.escape(text)}</p>", status_code=status_code)
    return templates.TemplateResponse(
        request,
        "error.html.j2",
        {"message": text, "status_code": status_code, "flashes": []},
        status_code=status_code,
    )


# ---------------------------------------------------------------------------
# API responses
# ---------------------------------------------------------------------------


def echoed_params(ctx: ToolRequest) -> dict[str, Any]:
    """Return the request parameters as echoed in API responses.

    Pipe-delimited values become lists, ``project`` is the normalized
    domain, and ``namespace``/``limit`` are numbers where they resolved to one.
    """
    echoed = explode_multi_value(ctx.params)
    if ctx.project is not None:
        echoed["project"] = ctx.project.domain
    if "namespace" in echoed and isinstance(ctx.namespace, NamespaceId):
        echoed["namespace"] = ctx.namespace.id
    if ctx.limit is not None:
        echoed["limit"] = ctx.limit
    return echoed


def format_api_response(
    ctx: ToolRequest,
    payload: Mapping[str, Any],
    status_code: int = 200,
) -> JSONResponse:
    """Build the JSON envelope for an API route."""
    out: dict[str, Any] = {}
    out.update(ctx.flashes.pop_all())
    out.update(echoed_params(ctx))
    out.update(payload)
    out["elapsed_time"] = round(time.time() - ctx.started_at, 3)
    return JSONResponse(out, status_code=status_code)


# ---------------------------------------------------------------------------
# Gate decisions
# ---------------------------------------------------------------------------


def render_decision(request: Request, ctx: ToolRequest) -> Response:
    """Render the non-proceed decision held by *ctx*.

    Raises:
        ValueError: If the decision is ``Proceed``.
    """
    decision = ctx.decision

    if isinstance(decision, Rejected):
        text = msg_if_exists(decision.message_key, decision.message_args)
        if ctx.is_api:
            return JSONResponse({"error": text}, status_code=decision.status_code)
        return render_error_page(request, text, decision.status_code)

    if isinstance(decision, RedirectWithMessage):
        text = msg_if_exists(decision.message_key, decision.message_args)
        if ctx.is_api:
            url = build_url(request.app, decision.target_route, decision.params)
            return JSONResponse(
                {"error": text},
                status_code=decision.api_status,
                headers={"Location": url},
            )

        url = build_url(request.app, decision.target_route, decision.params, carried_flashes(ctx))
        response = RedirectResponse(url=url, status_code=302)
        apply_project_cookie(response, ctx)
        return response

    raise ValueError(f"Cannot render decision {decision!r}")
