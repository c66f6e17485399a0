"""Health and metrics endpoints.

``GET /health``
    Process-level liveness check.  Performs no I/O and always returns 200.

``GET /metrics``
    Prometheus text exposition; 404 when ``Settings.metrics_enabled`` is off.

These endpoints are diagnostic; they must never raise HTTP 5xx errors.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse, Response

from wiki_edit_stats.api.metrics import get_metrics_response
from wiki_edit_stats.config.settings import get_settings
from wiki_edit_stats.config.tools import TOOLS

router = APIRouter(tags=["system"])


@router.get("/health", include_in_schema=True)
async def health() -> JSONResponse:
    """Return a minimal liveness status and the enabled tools.

    Used by Docker health checks and load balancers that need a fast
    ``200 OK`` without performing any I/O.

    Returns:
        JSON with keys: ``status``, ``tools``, ``timestamp``.
    """
    disabled = set(get_settings().disabled_tools)
    return JSONResponse(
        {
            "status": "ok",
            "tools": sorted(name for name in TOOLS if name not in disabled),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    if not get_settings().metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    body, content_type = get_metrics_response()
    return Response(content=body, media_type=content_type)
