"""Page-level tool routes: Page Info and Authorship.

Page Info
    ``GET /pageinfo``                         index form
    ``GET /pageinfo/{project}/{page}``        result page
    ``GET /api/page/pageinfo/{project}/{page}`` JSON

Authorship (English, German and Italian Wikipedia only)
    ``GET /authorship``                       index form
    ``GET /authorship/{project}/{page}``      result page

Page titles may contain slashes, so ``{page}`` matches the rest of the path.
"""

import urllib.parse
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from wiki_edit_stats.api.dependencies import tool_request
from wiki_edit_stats.api.formatting import format_api_response, render_decision, render_tool_response
from wiki_edit_stats.api.limiter import api_rate_limit, limiter
from wiki_edit_stats.api.routes._shared import redirect_from_index
from wiki_edit_stats.core.pipeline import ToolRequest

router = APIRouter()


def _page_url(ctx: ToolRequest) -> str:
    path = urllib.parse.quote(ctx.page.title.replace(" ", "_"), safe="/:")
    return f"https://{ctx.project.domain}/wiki/{path}"


def _page_summary(ctx: ToolRequest) -> dict[str, Any]:
    return {
        "page": ctx.page.title,
        "page_id": ctx.page.page_id,
        "namespace": ctx.page.namespace_id,
        "url": _page_url(ctx),
    }


# ---------------------------------------------------------------------------
# Page Info
# ---------------------------------------------------------------------------


@router.get("/pageinfo", name="PageInfo", include_in_schema=False)
async def page_info_index(
    request: Request,
    ctx: Annotated[ToolRequest, Depends(tool_request("pageinfo", "index"))],
) -> Response:
    if not ctx.proceed:
        return render_decision(request, ctx)
    if "page" in ctx.params:
        return redirect_from_index(request, ctx, "PageInfoResult")
    return render_tool_response(request, ctx, "index")


@router.get("/pageinfo/{project}/{page:path}", name="PageInfoResult", include_in_schema=False)
async def page_info_result(
    request: Request,
    ctx: Annotated[ToolRequest, Depends(tool_request("pageinfo", "result"))],
) -> Response:
    if not ctx.proceed:
        return render_decision(request, ctx)
    return render_tool_response(request, ctx, "result", {"url": _page_url(ctx)})


@router.get("/api/page/pageinfo/{project}/{page:path}", name="PageApiPageInfo", tags=["page"])
@limiter.limit(api_rate_limit)
async def page_info_api(
    request: Request,
    ctx: Annotated[ToolRequest, Depends(tool_request("pageinfo", "pageinfo_api"))],
) -> Response:
    if not ctx.proceed:
        return render_decision(request, ctx)
    return format_api_response(ctx, _page_summary(ctx))


# ---------------------------------------------------------------------------
# Authorship
# ---------------------------------------------------------------------------


@router.get("/authorship", name="Authorship", include_in_schema=False)
async def authorship_index(
    request: Request,
    ctx: Annotated[ToolRequest, Depends(tool_request("authorship", "index"))],
) -> Response:
    if not ctx.proceed:
        return render_decision(request, ctx)
    if "page" in ctx.params:
        return redirect_from_index(request, ctx, "AuthorshipResult")
    return render_tool_response(
        request,
        ctx,
        "index",
        {"supported_projects": sorted(ctx.tool.supported_projects or ())},
    )


@router.get("/authorship/{project}/{page:path}", name="AuthorshipResult", include_in_schema=False)
async def authorship_result(
    request: Request,
    ctx: Annotated[ToolRequest, Depends(tool_request("authorship", "result"))],
) -> Response:
    if not ctx.proceed:
        return render_decision(request, ctx)
    return render_tool_response(request, ctx, "result", {"url": _page_url(ctx)})
