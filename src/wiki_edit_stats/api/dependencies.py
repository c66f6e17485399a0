"""FastAPI dependency injection providers.

Dependency hierarchy::

    get_wiki_client           : the shared MediaWikiClient on app.state
    tool_request(tool, action): runs the request pipeline, yields a ToolRequest

Tests replace ``get_wiki_client`` through ``app.dependency_overrides`` with
an in-memory fake implementing the lookup protocols.
"""

from __future__ import annotations

import time
from typing import Annotated, Any, Awaitable, Callable

from fastapi import Depends, HTTPException, Request, status

from wiki_edit_stats.api.metrics import api_requests_total, gate_decisions_total
from wiki_edit_stats.config.settings import get_settings
from wiki_edit_stats.config.tools import get_tool
from wiki_edit_stats.core.domain import Proceed, RedirectWithMessage
from wiki_edit_stats.core.messages import msg
from wiki_edit_stats.core.pipeline import RawRequest, RequestPipeline, ToolRequest
from wiki_edit_stats.wiki.client import MediaWikiClient


async def get_wiki_client(request: Request) -> Any:
    """Return the application's MediaWiki client, creating it on first use.

    The client lives on ``app.state`` so that every request shares one
    connection pool; it is closed on application shutdown.
    """
    client = getattr(request.app.state, "wiki_client", None)
    if client is None:
        client = MediaWikiClient(get_settings())
        request.app.state.wiki_client = client
    return client


def _outcome(ctx: ToolRequest) -> str:
    if isinstance(ctx.decision, Proceed):
        return "proceed"
    if isinstance(ctx.decision, RedirectWithMessage):
        return "redirect"
    return "rejected"


def tool_request(tool_name: str, action: str) -> Callable[..., Awaitable[ToolRequest]]:
    """Return a dependency running the request pipeline for one tool action.

    Args:
        tool_name: Key into :data:`~wiki_edit_stats.config.tools.TOOLS`.
        action: Action name; names ending in ``_api`` are API actions and
            names containing ``index`` skip entity resolution.

    Raises:
        HTTPException 404: If the tool is listed in ``Settings.disabled_tools``.
    """

    async def _dependency(
        request: Request,
        client: Annotated[Any, Depends(get_wiki_client)],
    ) -> ToolRequest:
        settings = get_settings()
        tool = get_tool(tool_name)
        if tool.name in settings.disabled_tools:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=msg("tool-disabled"),
            )

        raw = RawRequest(
            query=request.query_params,
            path_params=request.path_params,
            cookies=request.cookies,
            headers=request.headers,
            path=request.url.path,
            started_at=getattr(request.state, "started_at", time.time()),
        )
        pipeline = RequestPipeline(settings, tool, client, client, client)
        ctx = await pipeline.run(raw, action)

        gate_decisions_total.labels(tool=tool.name, outcome=_outcome(ctx)).inc()
        if ctx.is_api and ctx.proceed:
            api_requests_total.labels(endpoint=f"{tool.name}/{action}").inc()
        return ctx

    return _dependency
