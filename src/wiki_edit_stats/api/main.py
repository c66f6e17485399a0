"""ASGI entry point for the edit statistics web service.

``create_app()`` assembles the FastAPI application: templates, rate
limiting, CORS, the request-logging middleware, the data-source error
handler and the tool routers.

Run locally with::

    uvicorn wiki_edit_stats.api.main:app --reload

or behind gunicorn with ``-k uvicorn.workers.UvicornWorker``.
"""

from __future__ import annotations

import time
import uuid
from pathlib import Path
from typing import Callable

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from wiki_edit_stats.api.limiter import limiter
from wiki_edit_stats.api.metrics import http_request_duration_seconds, http_requests_total
from wiki_edit_stats.config.settings import Settings, get_settings
from wiki_edit_stats.core.exceptions import DownstreamError, DownstreamTimeoutError
from wiki_edit_stats.core.logging_config import configure_logging, request_id_var
from wiki_edit_stats.core.messages import msg

# Configured before the app is built so construction-time records are
# rendered too; create_app() applies the configured level afterwards.
configure_logging("INFO")

logger = structlog.get_logger(__name__)

_TEMPLATES_DIR = Path(__file__).parent / "templates"


async def _log_and_measure(request: Request, call_next: Callable) -> Response:
    """Wrap every request with a request ID, timing, metrics and one log line.

    ``request.state.started_at`` is read by the pipeline to compute the
    ``elapsed_time`` of API responses.
    """
    request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )
    request.state.started_at = time.time()

    began = time.perf_counter()
    response: Response | None = None
    try:
        response = await call_next(request)
    except Exception as exc:
        logger.error("unhandled_exception", exc_info=exc)
        raise
    finally:
        duration = time.perf_counter() - began
        status_code = response.status_code if response is not None else 500
        # Labelled by route template, never by the raw path.
        route = request.scope.get("route")
        template = getattr(route, "path", request.url.path)
        http_requests_total.labels(method=request.method, path=template, status=str(status_code)).inc()
        http_request_duration_seconds.labels(method=request.method, path=template).observe(duration)
        (logger.warning if status_code >= 400 else logger.info)(
            "request_complete",
            status_code=status_code,
            elapsed_ms=round(duration * 1000, 2),
        )

    response.headers["X-Request-ID"] = request_id
    return response


async def _downstream_error_handler(request: Request, exc: DownstreamError) -> JSONResponse:
    """Answer 503 when a data source failed before the tool could degrade gracefully."""
    logger.error(
        "downstream_unavailable",
        source=exc.source,
        timeout=isinstance(exc, DownstreamTimeoutError),
        error=str(exc),
    )
    return JSONResponse(
        {"error": msg("api-error-service-unavailable", [exc.source or ""])},
        status_code=503,
    )


def _include_tool_routers(application: FastAPI) -> None:
    from wiki_edit_stats.api.routes import (  # noqa: PLC0415
        admin_stats,
        contributions,
        edit_counter,
        health,
        pages,
        top_edits,
    )

    application.include_router(health.router)
    application.include_router(edit_counter.router, tags=["editcounter"])
    application.include_router(top_edits.router, tags=["topedits"])
    application.include_router(pages.router, tags=["pages"])
    application.include_router(admin_stats.router, tags=["adminstats"])
    application.include_router(contributions.router, tags=["usercontribs"])


def _register_lifecycle(application: FastAPI, settings: Settings) -> None:
    @application.on_event("startup")
    async def on_startup() -> None:
        logger.info(
            "application_startup",
            app_name=settings.app_name,
            default_project=settings.default_project,
            log_level=settings.log_level,
            disabled_tools=settings.disabled_tools,
        )

    @application.on_event("shutdown")
    async def on_shutdown() -> None:
        wiki_client = getattr(application.state, "wiki_client", None)
        if wiki_client is not None:
            await wiki_client.aclose()
        logger.info("application_shutdown")


def create_app() -> FastAPI:
    """Build the application from the current :func:`get_settings`.

    Kept separate from the ``app`` singleton so tests can build an instance
    after adjusting the environment.
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    application = FastAPI(
        title=settings.app_name,
        description=(
            "Edit statistics for Wikimedia projects: edit counts, top edits, "
            "page information and administrator activity."
        ),
        version="0.1.0",
        debug=settings.debug,
        # Usernames and page titles can end with a slash.
        redirect_slashes=False,
    )
    application.state.templates = Jinja2Templates(directory=_TEMPLATES_DIR)
    application.state.wiki_client = None

    limiter.enabled = settings.rate_limit_enabled
    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    application.middleware("http")(_log_and_measure)
    application.add_exception_handler(DownstreamError, _downstream_error_handler)

    _include_tool_routers(application)
    _register_lifecycle(application, settings)
    return application


app = create_app()
"""ASGI callable served by uvicorn or gunicorn."""
