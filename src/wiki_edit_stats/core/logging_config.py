"""structlog setup shared by the web process and the test-suite.

``configure_logging()`` is called by ``api/main.py`` at import time and again
once settings are loaded.  Application code logs key/value events through
structlog::

    logger = structlog.get_logger(__name__)
    logger.info("edit_count_gate_tripped", tool="editcounter", edit_count=412000)

Records from stdlib loggers (uvicorn, httpx) pass through the same
processor chain, so every line on stdout has one shape: ``event``,
``level``, ``logger``, ``timestamp`` and, during a request, ``request_id``,
``tool`` and ``action``.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
"""Set by the request-logging middleware; read by :func:`_inject_request_id`."""

_REDACTED = "[REDACTED]"

# Keys containing one of these (case-insensitive) never reach the renderer.
# ``cookie`` covers the project cookie sent by browsers.
_SECRET_SUBSTRINGS: tuple[str, ...] = (
    "authorization",
    "cookie",
    "password",
    "secret",
    "session",
    "token",
)

# Third-party loggers that log one line per outbound or inbound request.
_CHATTY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore", "uvicorn.access")


def _is_secret(key: Any) -> bool:
    lowered = str(key).lower()
    return any(part in lowered for part in _SECRET_SUBSTRINGS)


def _redact_secrets(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Mask secret-bearing values, including keys of dicts one level down.

    Header mappings are the usual nested case.
    """
    for key, value in list(event_dict.items()):
        if _is_secret(key):
            event_dict[key] = _REDACTED
        elif isinstance(value, dict):
            event_dict[key] = {
                inner: (_REDACTED if _is_secret(inner) else inner_value)
                for inner, inner_value in value.items()
            }
    return event_dict


def _inject_request_id(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Copy ``request_id_var`` into records that were not bound through structlog."""
    request_id = request_id_var.get()
    if request_id is not None:
        event_dict.setdefault("request_id", request_id)
    return event_dict


def _processor_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        _inject_request_id,
        _redact_secrets,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def configure_logging(log_level: str = "INFO") -> None:
    """Route structlog and stdlib logging to one stdout handler.

    ``DEBUG`` selects the coloured console renderer and leaves the chatty
    HTTP loggers alone; every other level writes one JSON object per line
    and raises those loggers to ``WARNING``.  Repeated calls replace the
    root handler instead of adding another.

    Args:
        log_level: Level name, case-insensitive.  Unknown names mean ``INFO``.
    """
    level_name = log_level.upper()
    debug = level_name == "DEBUG"
    chain = _processor_chain()

    renderer: Processor = (
        structlog.dev.ConsoleRenderer(colors=True) if debug else structlog.processors.JSONRenderer()
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))

    if not debug:
        for name in _CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[*chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
