"""Top Edits routes: the pages a user edited most, per namespace.

    ``GET /topedits``                                          index form
    ``GET /topedits/{project}/{username}/{namespace}``         result page
    ``GET /api/user/top_edits/{project}/{username}/{namespace}`` JSON

The result page is subject to the edit-count gate, which redirects back to
the index (without ``username``) for users with too many edits.  The API
route is exempt.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from wiki_edit_stats.analysis.edit_stats import top_edits
from wiki_edit_stats.api.dependencies import get_wiki_client, tool_request
from wiki_edit_stats.api.formatting import format_api_response, render_decision, render_tool_response
from wiki_edit_stats.api.limiter import api_rate_limit, limiter
from wiki_edit_stats.api.routes._shared import (
    downstream_error_payload,
    fetch_contributions,
    redirect_from_index,
)
from wiki_edit_stats.core.exceptions import DownstreamError
from wiki_edit_stats.core.pipeline import ToolRequest

router = APIRouter()

DEFAULT_TOP_EDITS_LIMIT = 100


async def _ranked(client: Any, ctx: ToolRequest) -> dict[str, Any]:
    contribs = await fetch_contributions(client, ctx, ctx.tool.max_limit)
    ranked = top_edits(
        contribs,
        ctx.project.namespaces,
        limit=ctx.limit or DEFAULT_TOP_EDITS_LIMIT,
    )
    return {"top_edits": ranked}


@router.get("/topedits", name="TopEdits", include_in_schema=False)
async def top_edits_index(
    request: Request,
    ctx: Annotated[ToolRequest, Depends(tool_request("topedits", "index"))],
) -> Response:
    if not ctx.proceed:
        return render_decision(request, ctx)
    if "username" in ctx.params:
        return redirect_from_index(request, ctx, "TopEditsResultNamespace", namespace="all")
    return render_tool_response(request, ctx, "index")


@router.get(
    "/topedits/{project}/{username:path}/{namespace}",
    name="TopEditsResultNamespace",
    include_in_schema=False,
)
async def top_edits_namespace(
    request: Request,
    ctx: Annotated[ToolRequest, Depends(tool_request("topedits", "namespace_top_edits"))],
    client: Annotated[Any, Depends(get_wiki_client)],
) -> Response:
    if not ctx.proceed:
        return render_decision(request, ctx)
    try:
        context = await _ranked(client, ctx)
    except DownstreamError as exc:
        context = {"top_edits": {}, **downstream_error_payload(exc, ctx)}
    return render_tool_response(request, ctx, "namespace", context)


@router.get(
    "/api/user/top_edits/{project}/{username:path}/{namespace}",
    name="UserApiTopEditsNamespace",
    tags=["user"],
)
@limiter.limit(api_rate_limit)
async def top_edits_namespace_api(
    request: Request,
    ctx: Annotated[ToolRequest, Depends(tool_request("topedits", "namespace_top_edits_api"))],
    client: Annotated[Any, Depends(get_wiki_client)],
) -> Response:
    """Most-edited pages per namespace, ``limit`` pages each (default 100)."""
    if not ctx.proceed:
        return render_decision(request, ctx)
    try:
        payload = await _ranked(client, ctx)
    except DownstreamError as exc:
        payload = downstream_error_payload(exc, ctx)
    return format_api_response(ctx, payload)
