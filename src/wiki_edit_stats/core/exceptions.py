"""Application-wide exception hierarchy for Wiki Edit Stats.

All custom exceptions subclass ``WikiEditStatsError``, enabling
consistent error handling and structured logging across the application.

Hierarchy::

    WikiEditStatsError
    ├── ResolutionError              (redirect_route, message_key, invalid_param)
    │   ├── InvalidProjectError
    │   ├── UnsupportedProjectError
    │   ├── UserNotFoundError
    │   ├── PageNotFoundError
    │   └── IPRangeTooWideError      (limit: int)
    └── DownstreamError              (source: str)
        ├── DownstreamUnavailableError
        └── DownstreamTimeoutError

``ResolutionError`` subclasses never escape the request pipeline: they are
converted into a :class:`~wiki_edit_stats.core.domain.GateDecision` by
:func:`wiki_edit_stats.core.pipeline.decision_for_error`.  ``DownstreamError``
is raised by collaborators performing I/O and is either caught by tool
computations (partial response) or rendered as HTTP 503 by the application.
"""

from __future__ import annotations

from typing import Any


class WikiEditStatsError(Exception):
    """Base class for all Wiki Edit Stats exceptions.

    All application-specific exceptions inherit from this class so that
    callers can catch the entire hierarchy with a single ``except`` clause
    when needed.
    """


# ---------------------------------------------------------------------------
# Entity resolution exceptions
# ---------------------------------------------------------------------------


class ResolutionError(WikiEditStatsError):
    """Raised when a request parameter cannot be resolved into a domain entity.

    Args:
        redirect_route: Route name of the tool index the caller is sent back to.
        message_key: i18n key of the message shown to the caller.
        message_args: Positional arguments for the message.
        invalid_param: Parameter to strip from the redirect so that the index
            route does not re-trigger resolution with the same bad value.
    """

    status_code: int = 404

    def __init__(
        self,
        redirect_route: str,
        message_key: str,
        message_args: list[Any] | None = None,
        invalid_param: str | None = None,
    ) -> None:
        super().__init__(f"{message_key}: {message_args or []}")
        self.redirect_route = redirect_route
        self.message_key = message_key
        self.message_args = list(message_args or [])
        self.invalid_param = invalid_param


class InvalidProjectError(ResolutionError):
    """Raised when the requested project does not exist."""


class UnsupportedProjectError(ResolutionError):
    """Raised when the project exists but the tool does not support it."""


class UserNotFoundError(ResolutionError):
    """Raised when a named account does not exist on the resolved project."""


class PageNotFoundError(ResolutionError):
    """Raised when the requested page does not exist on the resolved project."""


class IPRangeTooWideError(ResolutionError):
    """Raised when a CIDR range is wider than the configured maximum.

    Args:
        redirect_route: Route name of the tool index.
        limit: The minimum prefix length allowed for the address family.
    """

    status_code = 400

    def __init__(self, redirect_route: str, limit: int) -> None:
        super().__init__(
            redirect_route,
            "ip-range-too-wide",
            [limit],
            invalid_param="username",
        )
        self.limit = limit


# ---------------------------------------------------------------------------
# Downstream (collaborator I/O) exceptions
# ---------------------------------------------------------------------------


class DownstreamError(WikiEditStatsError):
    """Raised when a backing data source cannot answer a lookup.

    Args:
        message: Human-readable description of the failure.
        source: Identifier of the data source (e.g. ``"en.wikipedia.org"``).
    """

    def __init__(self, message: str, source: str | None = None) -> None:
        super().__init__(message)
        self.source = source


class DownstreamUnavailableError(DownstreamError):
    """Raised on connection failures, rate limiting and 5xx responses."""


class DownstreamTimeoutError(DownstreamError):
    """Raised when a data source did not answer within the configured timeout."""
