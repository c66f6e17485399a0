"""Helpers shared by the tool route modules."""

from __future__ import annotations

from typing import Any, Optional

import structlog
from fastapi import Request
from fastapi.responses import RedirectResponse

from wiki_edit_stats.api.formatting import apply_project_cookie, carried_flashes
from wiki_edit_stats.api.routing import build_url
from wiki_edit_stats.core.exceptions import DownstreamError
from wiki_edit_stats.core.messages import msg
from wiki_edit_stats.core.pipeline import ToolRequest

logger = structlog.get_logger(__name__)


def redirect_from_index(request: Request, ctx: ToolRequest, route_name: str, **defaults: str) -> RedirectResponse:
    """Send a filled-in index form to the tool's result route.

    The project is the one the index resolved (parameter, cookie or default).
    *defaults* fill path parameters the form left empty.
    """
    params: dict[str, Any] = {**defaults, **ctx.params}
    if ctx.project is not None:
        params["project"] = ctx.project.domain
    url = build_url(request.app, route_name, params, carried_flashes(ctx))
    response = RedirectResponse(url=url, status_code=302)
    apply_project_cookie(response, ctx)
    return response


def downstream_error_payload(exc: DownstreamError, ctx: ToolRequest) -> dict[str, str]:
    """Return the ``error`` field of a partial response after a data-source failure."""
    source: Optional[str] = exc.source or (ctx.project.domain if ctx.project else None)
    logger.warning(
        "tool_computation_degraded",
        tool=ctx.tool.name,
        action=ctx.action,
        source=source,
        error=str(exc),
    )
    return {"error": msg("api-error-service-unavailable", [source or ""])}


async def fetch_contributions(client: Any, ctx: ToolRequest, limit: int) -> list[dict[str, Any]]:
    """Fetch the target user's contributions within the request's namespace and window."""
    window = ctx.window
    return await client.get_contributions(
        ctx.user.username,
        ctx.project,
        namespace=ctx.namespace,
        start=window.start if window else None,
        end=window.end if window else None,
        offset=ctx.offset,
        limit=limit,
    )
