"""Edit Counter and Simple Edit Counter routes.

Edit Counter
    ``GET /ec``                                   index form
    ``GET /ec/{project}/{username}``              result page
    ``GET /ec-rightschanges/{project}/{username}`` user rights log
    ``GET /api/user/month_counts/...``            restricted; edits per month
    ``GET /api/user/timecard/...``                restricted; edits per weekday/hour

Simple Edit Counter
    ``GET /sc``                                   index form
    ``GET /sc/{project}/{username}``              result page
    ``GET /api/user/simple_editcount/...``        edit count only

Users above ``Settings.max_user_edits`` are sent from the Edit Counter to
the Simple Edit Counter by the request pipeline before anything is fetched.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from wiki_edit_stats.analysis.edit_stats import general_stats, month_counts, rights_changes, timecard
from wiki_edit_stats.api.dependencies import get_wiki_client, tool_request
from wiki_edit_stats.api.formatting import format_api_response, render_decision, render_tool_response
from wiki_edit_stats.api.limiter import api_rate_limit, limiter
from wiki_edit_stats.api.routes._shared import (
    downstream_error_payload,
    fetch_contributions,
    redirect_from_index,
)
from wiki_edit_stats.config.settings import get_settings
from wiki_edit_stats.core.exceptions import DownstreamError
from wiki_edit_stats.core.gates import RestrictedStatsGate
from wiki_edit_stats.core.pipeline import ToolRequest

router = APIRouter()

# ---------------------------------------------------------------------------
# Edit Counter
# ---------------------------------------------------------------------------


@router.get("/ec", name="EditCounter", include_in_schema=False)
async def edit_counter_index(
    request: Request,
    ctx: Annotated[ToolRequest, Depends(tool_request("editcounter", "index"))],
) -> Response:
    if not ctx.proceed:
        return render_decision(request, ctx)
    if "username" in ctx.params:
        return redirect_from_index(request, ctx, "EditCounterResult")
    return render_tool_response(request, ctx, "index")


@router.get("/ec/{project}/{username:path}", name="EditCounterResult", include_in_schema=False)
async def edit_counter_result(
    request: Request,
    ctx: Annotated[ToolRequest, Depends(tool_request("editcounter", "result"))],
    client: Annotated[Any, Depends(get_wiki_client)],
) -> Response:
    """Render general statistics; monthly and timecard charts only for opted-in users."""
    if not ctx.proceed:
        return render_decision(request, ctx)

    context: dict[str, Any] = {"opted_in": False}
    gate = RestrictedStatsGate(ctx.tool, get_settings(), client)
    context["opt_in_title"] = gate.opt_in_title(ctx.user, ctx.project)
    try:
        contribs = await fetch_contributions(client, ctx, ctx.tool.max_limit)
        context["stats"] = general_stats(contribs)
        if not ctx.user.is_anon:
            context["opted_in"] = await client.is_opted_in(
                ctx.user.username, ctx.project.domain, context["opt_in_title"]
            )
        if context["opted_in"]:
            context["month_counts"] = month_counts(contribs)["totals"]
            context["timecard"] = timecard(contribs)
    except DownstreamError as exc:
        context.update(downstream_error_payload(exc, ctx))
    return render_tool_response(request, ctx, "result", context)


@router.get(
    "/ec-rightschanges/{project}/{username:path}",
    name="EditCounterRightsChanges",
    include_in_schema=False,
)
async def edit_counter_rights_changes(
    request: Request,
    ctx: Annotated[ToolRequest, Depends(tool_request("editcounter", "rights_changes"))],
    client: Annotated[Any, Depends(get_wiki_client)],
) -> Response:
    if not ctx.proceed:
        return render_decision(request, ctx)

    user_ns = ctx.project.namespaces.get(2) or "User"
    context: dict[str, Any] = {"changes": []}
    try:
        events = await client.get_log_events(
            ctx.project.domain, "rights", title=f"{user_ns}:{ctx.user.username}"
        )
        context["changes"] = rights_changes(events)
    except DownstreamError as exc:
        context.update(downstream_error_payload(exc, ctx))
    return render_tool_response(request, ctx, "rights_changes", context)


@router.get("/api/user/month_counts/{project}/{username:path}", name="UserApiMonthCounts", tags=["user"])
@limiter.limit(api_rate_limit)
async def month_counts_api(
    request: Request,
    ctx: Annotated[ToolRequest, Depends(tool_request("editcounter", "month_counts_api"))],
    client: Annotated[Any, Depends(get_wiki_client)],
) -> Response:
    """Edits per namespace and month.  Requires the user's opt-in."""
    if not ctx.proceed:
        return render_decision(request, ctx)
    try:
        contribs = await fetch_contributions(client, ctx, ctx.tool.max_limit)
        payload: dict[str, Any] = month_counts(contribs)
    except DownstreamError as exc:
        payload = downstream_error_payload(exc, ctx)
    return format_api_response(ctx, payload)


@router.get("/api/user/timecard/{project}/{username:path}", name="UserApiTimeCard", tags=["user"])
@limiter.limit(api_rate_limit)
async def timecard_api(
    request: Request,
    ctx: Annotated[ToolRequest, Depends(tool_request("editcounter", "timecard_api"))],
    client: Annotated[Any, Depends(get_wiki_client)],
) -> Response:
    """Edits per weekday and hour.  Requires the user's opt-in."""
    if not ctx.proceed:
        return render_decision(request, ctx)
    try:
        contribs = await fetch_contributions(client, ctx, ctx.tool.max_limit)
        payload: dict[str, Any] = {"timecard": timecard(contribs)}
    except DownstreamError as exc:
        payload = downstream_error_payload(exc, ctx)
    return format_api_response(ctx, payload)


# ---------------------------------------------------------------------------
# Simple Edit Counter
# ---------------------------------------------------------------------------


async def _simple_counts(client: Any, ctx: ToolRequest) -> dict[str, Any]:
    if ctx.user.edit_count is not None:
        return {"username": ctx.user.username, "editcount": ctx.user.edit_count}
    # IPs and ranges have no account row; count what the API returns.
    contribs = await fetch_contributions(client, ctx, ctx.tool.max_limit)
    return {
        "username": ctx.user.username,
        "editcount": len(contribs),
        "approximate": len(contribs) >= ctx.tool.max_limit,
    }


@router.get("/sc", name="SimpleEditCounter", include_in_schema=False)
async def simple_edit_counter_index(
    request: Request,
    ctx: Annotated[ToolRequest, Depends(tool_request("simpleeditcounter", "index"))],
) -> Response:
    if not ctx.proceed:
        return render_decision(request, ctx)
    if "username" in ctx.params:
        return redirect_from_index(request, ctx, "SimpleEditCounterResult")
    return render_tool_response(request, ctx, "index")


@router.get("/sc/{project}/{username:path}", name="SimpleEditCounterResult", include_in_schema=False)
async def simple_edit_counter_result(
    request: Request,
    ctx: Annotated[ToolRequest, Depends(tool_request("simpleeditcounter", "result"))],
    client: Annotated[Any, Depends(get_wiki_client)],
) -> Response:
    if not ctx.proceed:
        return render_decision(request, ctx)
    try:
        context = await _simple_counts(client, ctx)
    except DownstreamError as exc:
        context = downstream_error_payload(exc, ctx)
    return render_tool_response(request, ctx, "result", context)


@router.get(
    "/api/user/simple_editcount/{project}/{username:path}",
    name="SimpleEditCounterApi",
    tags=["user"],
)
@limiter.limit(api_rate_limit)
async def simple_editcount_api(
    request: Request,
    ctx: Annotated[ToolRequest, Depends(tool_request("simpleeditcounter", "simple_editcount_api"))],
    client: Annotated[Any, Depends(get_wiki_client)],
) -> Response:
    if not ctx.proceed:
        return render_decision(request, ctx)
    try:
        payload = await _simple_counts(client, ctx)
    except DownstreamError as exc:
        payload = downstream_error_payload(exc, ctx)
    return format_api_response(ctx, payload)
