"""Paginated user contributions API.

    ``GET /api/user/contribs/{project}/{username}``

Query parameters: ``namespace`` (ID, name or ``all``; default all),
``start``/``end`` (``YYYY-MM-DD``), ``limit`` (1-500, default 50) and
``offset``.  A full page carries a ``continue`` value; pass it back as
``offset`` to fetch the next, older page.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from wiki_edit_stats.api.dependencies import get_wiki_client, tool_request
from wiki_edit_stats.api.formatting import format_api_response, render_decision
from wiki_edit_stats.api.limiter import api_rate_limit, limiter
from wiki_edit_stats.api.routes._shared import downstream_error_payload, fetch_contributions
from wiki_edit_stats.core.exceptions import DownstreamError
from wiki_edit_stats.core.pagination import add_full_page_titles_and_continue
from wiki_edit_stats.core.pipeline import ToolRequest

router = APIRouter()

DEFAULT_CONTRIBS_LIMIT = 50


@router.get("/api/user/contribs/{project}/{username:path}", name="UserApiContribs", tags=["user"])
@limiter.limit(api_rate_limit)
async def user_contribs_api(
    request: Request,
    ctx: Annotated[ToolRequest, Depends(tool_request("usercontribs", "contribs_api"))],
    client: Annotated[Any, Depends(get_wiki_client)],
) -> Response:
    if not ctx.proceed:
        return render_decision(request, ctx)

    limit = ctx.limit or DEFAULT_CONTRIBS_LIMIT
    payload: dict[str, Any] = {}
    try:
        records = await fetch_contributions(client, ctx, limit)
        add_full_page_titles_and_continue("contribs", payload, records, limit, ctx.project.namespaces)
    except DownstreamError as exc:
        payload = {"contribs": [], **downstream_error_payload(exc, ctx)}
    return format_api_response(ctx, payload)
