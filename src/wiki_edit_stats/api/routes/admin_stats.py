"""Admin Stats routes: administrative actions per user over a date window.

    ``GET /adminstats``                               index form
    ``GET /adminstats/{project}/{start}/{end}``       result page (html, wikitext, csv, tsv)
    ``GET /api/project/adminstats/{project}``         JSON; ``start``/``end`` in the query

Windows default to the last 31 days and are capped at 365 days; longer
ranges are truncated with a warning.
"""

import asyncio
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from wiki_edit_stats.analysis.edit_stats import ADMIN_LOG_TYPES, admin_stats
from wiki_edit_stats.api.dependencies import get_wiki_client, tool_request
from wiki_edit_stats.api.formatting import format_api_response, render_decision, render_tool_response
from wiki_edit_stats.api.limiter import api_rate_limit, limiter
from wiki_edit_stats.api.routes._shared import downstream_error_payload, redirect_from_index
from wiki_edit_stats.core.dates import format_date, resolve_date_window
from wiki_edit_stats.core.exceptions import DownstreamError
from wiki_edit_stats.core.pipeline import ToolRequest

router = APIRouter()


async def _stats(client: Any, ctx: ToolRequest) -> dict[str, Any]:
    window = ctx.window
    results = await asyncio.gather(
        *(
            client.get_log_events(ctx.project.domain, log_type, start=window.start, end=window.end)
            for log_type in ADMIN_LOG_TYPES
        )
    )
    rows = admin_stats(dict(zip(ADMIN_LOG_TYPES, results)))
    return {"log_types": list(ADMIN_LOG_TYPES), "users": rows}


@router.get("/adminstats", name="AdminStats", include_in_schema=False)
async def admin_stats_index(
    request: Request,
    ctx: Annotated[ToolRequest, Depends(tool_request("adminstats", "index"))],
) -> Response:
    if not ctx.proceed:
        return render_decision(request, ctx)
    if "project" in ctx.params:
        window = resolve_date_window(
            ctx.params.get("start"),
            ctx.params.get("end"),
            default_days=ctx.tool.default_days,
            max_days=ctx.tool.max_days,
            flashes=ctx.flashes,
        )
        ctx.params["start"] = format_date(window.start)
        ctx.params["end"] = format_date(window.end)
        return redirect_from_index(request, ctx, "AdminStatsResult")
    return render_tool_response(request, ctx, "index")


@router.get("/adminstats/{project}/{start}/{end}", name="AdminStatsResult", include_in_schema=False)
async def admin_stats_result(
    request: Request,
    ctx: Annotated[ToolRequest, Depends(tool_request("adminstats", "result"))],
    client: Annotated[Any, Depends(get_wiki_client)],
) -> Response:
    if not ctx.proceed:
        return render_decision(request, ctx)
    try:
        context = await _stats(client, ctx)
    except DownstreamError as exc:
        context = {"log_types": list(ADMIN_LOG_TYPES), "users": [], **downstream_error_payload(exc, ctx)}
    return render_tool_response(request, ctx, "result", context)


@router.get("/api/project/adminstats/{project}", name="ProjectApiAdminStats", tags=["project"])
@limiter.limit(api_rate_limit)
async def admin_stats_api(
    request: Request,
    ctx: Annotated[ToolRequest, Depends(tool_request("adminstats", "adminstats_api"))],
    client: Annotated[Any, Depends(get_wiki_client)],
) -> Response:
    if not ctx.proceed:
        return render_decision(request, ctx)
    try:
        payload = await _stats(client, ctx)
    except DownstreamError as exc:
        payload = downstream_error_payload(exc, ctx)
    return format_api_response(ctx, payload)
