"""MediaWiki Action API client implementing the pipeline's lookup contracts.

One :class:`MediaWikiClient` serves every project: the project domain is
substituted into ``Settings.mediawiki_api_url`` per request.  It satisfies
:class:`~wiki_edit_stats.core.lookups.ProjectLookup`,
:class:`~wiki_edit_stats.core.lookups.UserLookup`,
:class:`~wiki_edit_stats.core.lookups.PageLookup` and
:class:`~wiki_edit_stats.core.lookups.ContributionsLookup`.

**No credentials required**: every call is an unauthenticated read.  A
``User-Agent`` header is mandatory per Wikimedia policy.

**Failures**: HTTP 429, 5xx and connection errors raise
:class:`~wiki_edit_stats.core.exceptions.DownstreamUnavailableError`;
timeouts raise :class:`~wiki_edit_stats.core.exceptions.DownstreamTimeoutError`.
Project lookups are the exception: a wiki that cannot be reached or
answers 404 simply does not exist.

**Concurrency**: ``asyncio.Semaphore(5)`` caps concurrent outbound requests.
"""

from __future__ import annotations

import asyncio
import re
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
import structlog

from wiki_edit_stats.api.metrics import mediawiki_requests_total
from wiki_edit_stats.config.settings import Settings, get_settings
from wiki_edit_stats.core.domain import IPRange, NamespaceId, NamespaceSelector, ResolvedProject
from wiki_edit_stats.core.entity_resolver import classify_username
from wiki_edit_stats.core.exceptions import (
    DownstreamTimeoutError,
    DownstreamUnavailableError,
)
from wiki_edit_stats.core.lookups import PageInfo, ProjectInfo, UserInfo

logger = structlog.get_logger(__name__)

# Maximum concurrent outbound requests.
_MAX_CONCURRENT_REQUESTS: int = 5

# Largest page size the Action API grants to anonymous clients.
_API_BATCH_LIMIT: int = 500

_MW_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Database-name suffix -> project family.
_DB_FAMILIES: dict[str, str] = {
    "wiktionary": "wiktionary",
    "wikiquote": "wikiquote",
    "wikibooks": "wikibooks",
    "wikisource": "wikisource",
    "wikinews": "wikinews",
    "wikiversity": "wikiversity",
    "wikivoyage": "wikivoyage",
    "wiki": "wikipedia",
}

# Database names whose domain does not follow the ``<lang>.<family>.org`` shape.
_SPECIAL_DB_DOMAINS: dict[str, str] = {
    "commonswiki": "commons.wikimedia.org",
    "metawiki": "meta.wikimedia.org",
    "specieswiki": "species.wikimedia.org",
    "incubatorwiki": "incubator.wikimedia.org",
    "wikidatawiki": "www.wikidata.org",
    "mediawikiwiki": "www.mediawiki.org",
}

_DB_NAME_RE = re.compile(r"^[a-z][a-z0-9_]*$")


def project_domain(raw: str) -> str:
    """Normalise a project identifier to a domain.

    Accepts domains (``en.wikipedia.org``), domains without the TLD
    (``en.wikipedia``) and database names (``enwiki``, ``frwiktionary``,
    ``commonswiki``).  Unrecognised input is returned lower-cased, so that the
    subsequent siteinfo request decides whether it exists.
    """
    value = raw.strip().lower()
    if value.startswith(("http://", "https://")):
        value = value.split("://", 1)[1].split("/", 1)[0]
    if "." in value:
        return value if value.endswith(".org") else f"{value}.org"

    if value in _SPECIAL_DB_DOMAINS:
        return _SPECIAL_DB_DOMAINS[value]
    if _DB_NAME_RE.match(value):
        for suffix, family in _DB_FAMILIES.items():
            if value.endswith(suffix) and len(value) > len(suffix):
                lang = value[: -len(suffix)].replace("_", "-")
                return f"{lang}.{family}.org"
    return value


def _to_mw_timestamp(value: Optional[int]) -> Optional[str]:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc).strftime(_MW_TIMESTAMP_FORMAT)


def _strip_namespace(title: str, ns_id: int) -> str:
    """Return *title* without its namespace prefix."""
    if ns_id == 0 or ":" not in title:
        return title
    return title.split(":", 1)[1]


class MediaWikiClient:
    """Async MediaWiki Action API client.

    Args:
        settings: Application settings.  Uses :func:`get_settings` when omitted.
        http_client: Optional injected :class:`httpx.AsyncClient` for testing.
            An injected client is never closed by :meth:`aclose`.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._http_client = http_client
        self._owns_client = http_client is None
        self._semaphore = asyncio.Semaphore(_MAX_CONCURRENT_REQUESTS)

    async def __aenter__(self) -> "MediaWikiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    # ------------------------------------------------------------------
    # ProjectLookup
    # ------------------------------------------------------------------

    async def get_project(self, raw: str) -> ProjectInfo:
        """Look up a project by domain or database name via ``meta=siteinfo``."""
        domain = project_domain(raw)
        params = {
            "action": "query",
            "meta": "siteinfo",
            "siprop": "general|namespaces",
        }
        try:
            data = await self._api_get(domain, params)
        except DownstreamUnavailableError as exc:
            if isinstance(exc.__cause__, httpx.ConnectError) or _is_not_found(exc):
                return ProjectInfo(exists=False, domain=domain)
            raise

        general = (data.get("query") or {}).get("general")
        if not general:
            return ProjectInfo(exists=False, domain=domain)

        namespaces: dict[int, str] = {}
        for key, ns in ((data.get("query") or {}).get("namespaces") or {}).items():
            ns_id = int(ns.get("id", key))
            namespaces[ns_id] = ns.get("name", ns.get("*", ""))

        return ProjectInfo(
            exists=True,
            domain=general.get("servername") or domain,
            database_name=general.get("wikiid", ""),
            namespaces=namespaces,
        )

    # ------------------------------------------------------------------
    # UserLookup
    # ------------------------------------------------------------------

    async def get_user(self, username: str, domain: str) -> UserInfo:
        """Look up an account and its edit count via ``list=users``."""
        data = await self._api_get(
            domain,
            {
                "action": "query",
                "list": "users",
                "ususers": username,
                "usprop": "editcount",
            },
        )
        users = (data.get("query") or {}).get("users") or []
        if not users:
            return UserInfo(exists=False)
        user = users[0]
        if user.get("missing") or user.get("invalid"):
            return UserInfo(exists=False)
        return UserInfo(exists=True, edit_count=int(user.get("editcount", 0)))

    async def is_opted_in(self, username: str, domain: str, opt_in_title: str) -> bool:
        """Return whether *username* made the latest edit to *opt_in_title*."""
        data = await self._api_get(
            domain,
            {
                "action": "query",
                "prop": "revisions",
                "titles": opt_in_title,
                "rvprop": "user",
                "rvlimit": 1,
            },
        )
        pages = (data.get("query") or {}).get("pages") or []
        if not pages or pages[0].get("missing"):
            return False
        revisions = pages[0].get("revisions") or []
        return bool(revisions) and revisions[0].get("user") == username

    # ------------------------------------------------------------------
    # PageLookup
    # ------------------------------------------------------------------

    async def get_page(self, title: str, domain: str) -> PageInfo:
        """Look up a page via ``prop=info``; missing and invalid titles do not exist."""
        data = await self._api_get(
            domain,
            {"action": "query", "prop": "info", "titles": title},
        )
        pages = (data.get("query") or {}).get("pages") or []
        if not pages:
            return PageInfo(exists=False, title=title)
        page = pages[0]
        if page.get("missing") or page.get("invalid"):
            return PageInfo(exists=False, title=title)
        return PageInfo(
            exists=True,
            namespace_id=int(page.get("ns", 0)),
            title=page.get("title", title),
            page_id=page.get("pageid"),
        )

    # ------------------------------------------------------------------
    # ContributionsLookup
    # ------------------------------------------------------------------

    async def get_contributions(
        self,
        username: str,
        project: ResolvedProject,
        namespace: Optional[NamespaceSelector] = None,
        start: Optional[int] = None,
        end: Optional[int] = None,
        offset: Optional[int] = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Fetch contributions by *username*, newest first.

        Paginates via ``uccontinue`` tokens until *limit* records are
        collected or no more results are available.  *offset* is an
        exclusive upper bound, as produced by a previous page's
        ``continue`` token.

        Returns:
            Records with ``rev_id``, ``page_id``, ``page_namespace``,
            ``page_title`` (unprefixed), ``timestamp``, ``minor``,
            ``length``, ``size_diff`` and ``comment``.
        """
        newest = end
        if offset is not None:
            bound = offset - 1
            newest = bound if newest is None else min(newest, bound)

        # Ranges are queried with uciprange; ucuser only takes names and single IPs.
        kind, _ = classify_username(username)
        user_param = "uciprange" if isinstance(kind, IPRange) else "ucuser"

        contribs: list[dict[str, Any]] = []
        continue_token: str | None = None

        while len(contribs) < limit:
            params: dict[str, Any] = {
                "action": "query",
                "list": "usercontribs",
                user_param: username,
                "ucprop": "ids|title|timestamp|comment|size|sizediff|flags",
                "uclimit": min(_API_BATCH_LIMIT, limit - len(contribs)),
                "ucdir": "older",
            }
            if isinstance(namespace, NamespaceId):
                params["ucnamespace"] = namespace.id
            # ucdir=older means ucstart is the most recent date.
            if newest is not None:
                params["ucstart"] = _to_mw_timestamp(newest)
            if start is not None:
                params["ucend"] = _to_mw_timestamp(start)
            if continue_token:
                params["uccontinue"] = continue_token

            data = await self._api_get(project.domain, params)
            batch = (data.get("query") or {}).get("usercontribs") or []
            for contrib in batch:
                ns_id = int(contrib.get("ns", 0))
                contribs.append(
                    {
                        "rev_id": contrib.get("revid"),
                        "page_id": contrib.get("pageid"),
                        "page_namespace": ns_id,
                        "page_title": _strip_namespace(contrib.get("title", ""), ns_id),
                        "timestamp": contrib.get("timestamp", ""),
                        "minor": bool(contrib.get("minor", False)),
                        "length": contrib.get("size"),
                        "size_diff": contrib.get("sizediff"),
                        "comment": contrib.get("comment") or None,
                    }
                )

            continue_token = (data.get("continue") or {}).get("uccontinue")
            if not continue_token or not batch:
                break

        return contribs[:limit]

    # ------------------------------------------------------------------
    # Log events
    # ------------------------------------------------------------------

    async def get_log_events(
        self,
        domain: str,
        log_type: str,
        start: Optional[int] = None,
        end: Optional[int] = None,
        title: Optional[str] = None,
        limit: int = _API_BATCH_LIMIT,
    ) -> list[dict[str, Any]]:
        """Fetch log entries of *log_type*, newest first, via ``list=logevents``."""
        events: list[dict[str, Any]] = []
        continue_token: str | None = None

        while len(events) < limit:
            params: dict[str, Any] = {
                "action": "query",
                "list": "logevents",
                "letype": log_type,
                "leprop": "user|type|timestamp|title|details|comment",
                "lelimit": min(_API_BATCH_LIMIT, limit - len(events)),
                "ledir": "older",
            }
            if end is not None:
                params["lestart"] = _to_mw_timestamp(end)
            if start is not None:
                params["leend"] = _to_mw_timestamp(start)
            if title:
                params["letitle"] = title
            if continue_token:
                params["lecontinue"] = continue_token

            data = await self._api_get(domain, params)
            batch = (data.get("query") or {}).get("logevents") or []
            for event in batch:
                events.append(
                    {
                        "user": event.get("user"),
                        "type": event.get("type"),
                        "action": event.get("action"),
                        "title": event.get("title"),
                        "timestamp": event.get("timestamp", ""),
                        "comment": event.get("comment") or None,
                        "params": event.get("params") or {},
                    }
                )

            continue_token = (data.get("continue") or {}).get("lecontinue")
            if not continue_token or not batch:
                break

        return events[:limit]

    # ------------------------------------------------------------------
    # Private HTTP helpers
    # ------------------------------------------------------------------

    async def _api_get(self, domain: str, params: dict[str, Any]) -> dict[str, Any]:
        """Make a GET request to the Action API of *domain*.

        Args:
            domain: Project domain, substituted into the endpoint template.
            params: Query parameters; ``format=json&formatversion=2`` is added.

        Returns:
            Parsed JSON response dict.

        Raises:
            DownstreamTimeoutError: When the request timed out.
            DownstreamUnavailableError: On HTTP 429, other HTTP errors,
                connection failures or an API-level ``error`` block.
        """
        url = self._settings.mediawiki_api_url.format(domain=domain)
        query = {**params, "format": "json", "formatversion": 2}
        client = self._build_http_client()

        async with self._semaphore:
            try:
                response = await client.get(url, params=query)
                response.raise_for_status()
                result: dict[str, Any] = response.json()
            except httpx.TimeoutException as exc:
                _failed(domain, "timeout")
                raise DownstreamTimeoutError(
                    f"mediawiki: request to {domain} timed out",
                    source=domain,
                ) from exc
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                if status == 429:
                    _failed(domain, "rate_limited", status=status)
                    raise DownstreamUnavailableError(
                        f"mediawiki: rate limited by {domain} (HTTP 429)",
                        source=domain,
                    ) from exc
                _failed(domain, "http_error", status=status)
                raise DownstreamUnavailableError(
                    f"mediawiki: HTTP {status} from {url}",
                    source=domain,
                ) from exc
            except httpx.RequestError as exc:
                _failed(domain, "request_error", error=type(exc).__name__)
                raise DownstreamUnavailableError(
                    f"mediawiki: request error calling {url}: {exc}",
                    source=domain,
                ) from exc
            except ValueError as exc:
                _failed(domain, "invalid_json")
                raise DownstreamUnavailableError(
                    f"mediawiki: invalid JSON from {url}",
                    source=domain,
                ) from exc

        if "error" in result:
            error = result["error"] or {}
            _failed(domain, "api_error", code=error.get("code"))
            raise DownstreamUnavailableError(
                f"mediawiki: API error {error.get('code')}: {error.get('info')}",
                source=domain,
            )
        mediawiki_requests_total.labels(outcome="ok").inc()
        return result

    def _build_http_client(self) -> httpx.AsyncClient:
        """Return the injected client, or lazily create one with Wikimedia headers."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self._settings.http_timeout_seconds,
                headers=self._make_headers(),
                follow_redirects=True,
            )
        return self._http_client

    def _make_headers(self) -> dict[str, str]:
        return {"User-Agent": self._settings.user_agent}


def _is_not_found(exc: DownstreamUnavailableError) -> bool:
    cause = exc.__cause__
    return isinstance(cause, httpx.HTTPStatusError) and cause.response.status_code == 404


def _failed(domain: str, outcome: str, **details: Any) -> None:
    mediawiki_requests_total.labels(outcome=outcome).inc()
    logger.warning("mediawiki_request_failed", domain=domain, reason=outcome, **details)
