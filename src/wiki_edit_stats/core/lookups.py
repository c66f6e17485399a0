"""Collaborator contracts consumed by the request pipeline.

The pipeline never talks to a database or an API itself.  It is handed
objects satisfying these protocols; production wiring passes a single
:class:`~wiki_edit_stats.wiki.client.MediaWikiClient`, tests pass in-memory
fakes.  Implementations may raise
:class:`~wiki_edit_stats.core.exceptions.DownstreamError` subclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class ProjectInfo:
    exists: bool
    domain: str
    database_name: str = ""
    namespaces: Mapping[int, str] = field(default_factory=dict)


@dataclass(frozen=True)
class UserInfo:
    exists: bool
    edit_count: int = 0


@dataclass(frozen=True)
class PageInfo:
    exists: bool
    namespace_id: int = 0
    title: str = ""
    page_id: Optional[int] = None


@runtime_checkable
class ProjectLookup(Protocol):
    async def get_project(self, raw: str) -> ProjectInfo:
        """Look up a project by domain or database name."""
        ...


@runtime_checkable
class UserLookup(Protocol):
    async def get_user(self, username: str, domain: str) -> UserInfo:
        """Look up an account on the project with the given domain."""
        ...

    async def is_opted_in(self, username: str, domain: str, opt_in_title: str) -> bool:
        """Return whether *username* last edited their opt-in page *opt_in_title*."""
        ...


@runtime_checkable
class PageLookup(Protocol):
    async def get_page(self, title: str, domain: str) -> PageInfo:
        """Look up a fully qualified page title."""
        ...


@runtime_checkable
class ContributionsLookup(Protocol):
    async def get_contributions(
        self,
        username: str,
        project: Any,
        namespace: Any = None,
        start: Optional[int] = None,
        end: Optional[int] = None,
        offset: Optional[int] = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Return revisions by *username*, newest first.

        Each record carries at least ``page_namespace``, ``page_title``
        (without namespace prefix) and ``timestamp``.
        """
        ...
