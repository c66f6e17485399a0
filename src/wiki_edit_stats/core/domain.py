"""Domain types shared by every stage of the request pipeline.

The types here are plain frozen dataclasses; none of them know about HTTP.

Sum types are modelled as a small family of dataclasses joined by a
``Union`` alias and distinguished with ``isinstance``:

- :data:`NamespaceSelector`: :class:`AllNamespaces` | :class:`NamespaceId`
- :data:`UserKind`: :class:`NamedUser` | :class:`AnonymousIP` | :class:`IPRange`
- :data:`GateDecision`: :class:`Proceed` | :class:`RedirectWithMessage` | :class:`Rejected`
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

# ---------------------------------------------------------------------------
# Namespace selector
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AllNamespaces:
    """Selects every namespace (the ``namespace=all`` parameter)."""

    def __str__(self) -> str:
        return "all"


@dataclass(frozen=True)
class NamespaceId:
    """Selects a single namespace by numeric ID."""

    id: int

    def __str__(self) -> str:
        return str(self.id)


NamespaceSelector = Union[AllNamespaces, NamespaceId]

ALL_NAMESPACES = AllNamespaces()
MAIN_NAMESPACE = NamespaceId(0)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NamedUser:
    """A registered account."""


@dataclass(frozen=True)
class AnonymousIP:
    """A single IPv4 or IPv6 address."""


@dataclass(frozen=True)
class IPRange:
    """A CIDR block treated as one pseudo-user."""

    cidr_bits: int


UserKind = Union[NamedUser, AnonymousIP, IPRange]


# ---------------------------------------------------------------------------
# Resolved entities
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResolvedProject:
    """A wiki that exists and is supported by the current tool.

    Attributes:
        domain: Canonical domain, e.g. ``"en.wikipedia.org"``.
        database_name: Replica database name, e.g. ``"enwiki"``.
        namespaces: Namespace ID to localized name; ``0`` maps to ``""``.
    """

    domain: str
    database_name: str
    namespaces: Mapping[int, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ResolvedUser:
    """A user (account, IP or IP range) validated against a project.

    ``edit_count`` is ``None`` for IPs and ranges, which are never looked up.
    """

    username: str
    kind: UserKind
    edit_count: Optional[int] = None

    @property
    def is_anon(self) -> bool:
        return not isinstance(self.kind, NamedUser)

    @property
    def is_ip_range(self) -> bool:
        return isinstance(self.kind, IPRange)


@dataclass(frozen=True)
class ResolvedPage:
    """A page known to exist on its project."""

    title: str
    namespace_id: int
    page_id: Optional[int] = None


# ---------------------------------------------------------------------------
# Date window and pagination
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DateWindow:
    """A clamped ``[start, end]`` window in Unix seconds (UTC).

    Either bound may be ``None`` (absent).  When both are present
    ``start <= end``, and neither lies after today's midnight.

    Attributes:
        truncated: ``True`` when the window was cut down to the tool's
            maximum span.
    """

    start: Optional[int]
    end: Optional[int]
    truncated: bool = False


@dataclass(frozen=True)
class PaginationState:
    """Page size and cursor for chronologically descending results."""

    limit: int
    offset: Optional[int] = None


# ---------------------------------------------------------------------------
# Gate decisions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Proceed:
    """Continue with the tool computation."""


@dataclass(frozen=True)
class RedirectWithMessage:
    """Send the caller elsewhere with a flash message.

    Attributes:
        target_route: Route name to redirect to.
        message_key: i18n key of the message shown on arrival.
        message_args: Positional message arguments.
        stripped_param: Parameter removed from ``params`` before redirecting.
        params: Parameters used to build the redirect URL.
        api_status: HTTP status used when the caller is an API client.
    """

    target_route: str
    message_key: str
    message_args: tuple[Any, ...] = ()
    stripped_param: Optional[str] = None
    params: Mapping[str, str] = field(default_factory=dict)
    api_status: int = 302


@dataclass(frozen=True)
class Rejected:
    """Stop with an error status and message."""

    status_code: int
    message_key: str
    message_args: tuple[Any, ...] = ()


GateDecision = Union[Proceed, RedirectWithMessage, Rejected]

PROCEED = Proceed()
