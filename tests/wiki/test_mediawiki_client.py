"""Tests for the MediaWiki Action API client.

Covers:
- project_domain(): domains, short domains, database names, special wikis.
- get_project(): siteinfo parsing, database-name input, unreachable and
  404 wikis treated as non-existent.
- get_user() / is_opted_in() / get_page()
- get_contributions(): record shape, namespace filter, offset bound,
  uciprange for IP ranges, uccontinue pagination.
- get_log_events()
- Failure mapping: HTTP 429 and 5xx, timeouts, API error blocks, non-JSON.
- User-Agent header, injected client ownership, outcome counter.

All HTTP is mocked with respx; nothing reaches a live wiki.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import httpx
import pytest
import respx
from prometheus_client import REGISTRY

from wiki_edit_stats.config.settings import Settings
from wiki_edit_stats.core.dates import parse_timestamp
from wiki_edit_stats.core.domain import ALL_NAMESPACES, NamespaceId, ResolvedProject
from wiki_edit_stats.core.exceptions import DownstreamTimeoutError, DownstreamUnavailableError
from wiki_edit_stats.wiki.client import MediaWikiClient, project_domain

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures" / "api_responses" / "mediawiki"

EN_API = "https://en.wikipedia.org/w/api.php"

EN_PROJECT = ResolvedProject("en.wikipedia.org", "enwiki", {0: "", 1: "Talk"})


def _load_fixture(name: str) -> dict[str, Any]:
    return json.loads((FIXTURES_DIR / name).read_text(encoding="utf-8"))


def _params(route: respx.Route, index: int = -1) -> httpx.QueryParams:
    return route.calls[index].request.url.params


def _outcome_count(outcome: str) -> float:
    return REGISTRY.get_sample_value("mediawiki_requests_total", {"outcome": outcome}) or 0.0


# ---------------------------------------------------------------------------
# project_domain()
# ---------------------------------------------------------------------------


class TestProjectDomain:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("en.wikipedia.org", "en.wikipedia.org"),
            ("EN.Wikipedia.org", "en.wikipedia.org"),
            ("en.wikipedia", "en.wikipedia.org"),
            ("https://de.wikipedia.org/wiki/Berlin", "de.wikipedia.org"),
            ("enwiki", "en.wikipedia.org"),
            ("frwiktionary", "fr.wiktionary.org"),
            ("zh_min_nanwiki", "zh-min-nan.wikipedia.org"),
            ("commonswiki", "commons.wikimedia.org"),
            ("wikidatawiki", "www.wikidata.org"),
            ("nonsense", "nonsense"),
        ],
    )
    def test_normalization(self, raw: str, expected: str) -> None:
        assert project_domain(raw) == expected


# ---------------------------------------------------------------------------
# Project lookup
# ---------------------------------------------------------------------------


class TestGetProject:
    @pytest.mark.asyncio
    @respx.mock
    async def test_siteinfo_is_parsed(self) -> None:
        route = respx.get(EN_API).mock(
            return_value=httpx.Response(200, json=_load_fixture("siteinfo_response.json"))
        )

        async with MediaWikiClient(Settings()) as client:
            info = await client.get_project("en.wikipedia.org")

        assert info.exists
        assert info.domain == "en.wikipedia.org"
        assert info.database_name == "enwiki"
        assert info.namespaces[0] == ""
        assert info.namespaces[1] == "Talk"
        assert info.namespaces[-1] == "Special"
        params = _params(route)
        assert params["meta"] == "siteinfo"
        assert params["format"] == "json"
        assert params["formatversion"] == "2"

    @pytest.mark.asyncio
    @respx.mock
    async def test_database_name_is_looked_up_on_its_domain(self) -> None:
        route = respx.get(EN_API).mock(
            return_value=httpx.Response(200, json=_load_fixture("siteinfo_response.json"))
        )

        async with MediaWikiClient(Settings()) as client:
            info = await client.get_project("enwiki")

        assert route.called
        assert info.domain == "en.wikipedia.org"

    @pytest.mark.asyncio
    @respx.mock
    async def test_unreachable_wiki_does_not_exist(self) -> None:
        respx.get("https://nope.wikipedia.org/w/api.php").mock(
            side_effect=httpx.ConnectError("name resolution failed")
        )

        async with MediaWikiClient(Settings()) as client:
            info = await client.get_project("nope.wikipedia.org")

        assert info.exists is False
        assert info.domain == "nope.wikipedia.org"

    @pytest.mark.asyncio
    @respx.mock
    async def test_404_wiki_does_not_exist(self) -> None:
        respx.get("https://xx.wikipedia.org/w/api.php").mock(return_value=httpx.Response(404))

        async with MediaWikiClient(Settings()) as client:
            info = await client.get_project("xx.wikipedia.org")

        assert info.exists is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_server_error_propagates(self) -> None:
        respx.get(EN_API).mock(return_value=httpx.Response(503))

        async with MediaWikiClient(Settings()) as client:
            with pytest.raises(DownstreamUnavailableError) as exc_info:
                await client.get_project("en.wikipedia.org")

        assert exc_info.value.source == "en.wikipedia.org"


# ---------------------------------------------------------------------------
# User and page lookups
# ---------------------------------------------------------------------------


class TestUserLookups:
    @pytest.mark.asyncio
    @respx.mock
    async def test_existing_user_has_edit_count(self) -> None:
        route = respx.get(EN_API).mock(
            return_value=httpx.Response(
                200,
                json={"query": {"users": [{"userid": 12345, "name": "Example", "editcount": 1200}]}},
            )
        )

        async with MediaWikiClient(Settings()) as client:
            info = await client.get_user("Example", "en.wikipedia.org")

        assert info.exists
        assert info.edit_count == 1200
        assert _params(route)["ususers"] == "Example"

    @pytest.mark.asyncio
    @respx.mock
    async def test_missing_user(self) -> None:
        respx.get(EN_API).mock(
            return_value=httpx.Response(200, json={"query": {"users": [{"name": "Nobody", "missing": True}]}})
        )

        async with MediaWikiClient(Settings()) as client:
            info = await client.get_user("Nobody", "en.wikipedia.org")

        assert info.exists is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_opt_in_requires_last_edit_by_the_user(self) -> None:
        respx.get(EN_API).mock(
            side_effect=[
                httpx.Response(
                    200,
                    json={"query": {"pages": [{"title": "User:Example/EditCounterOptIn.js", "revisions": [{"user": "Example"}]}]}},
                ),
                httpx.Response(
                    200,
                    json={"query": {"pages": [{"title": "User:Example/EditCounterOptIn.js", "revisions": [{"user": "Vandal"}]}]}},
                ),
                httpx.Response(
                    200,
                    json={"query": {"pages": [{"title": "User:Example/EditCounterOptIn.js", "missing": True}]}},
                ),
            ]
        )

        async with MediaWikiClient(Settings()) as client:
            results = [
                await client.is_opted_in("Example", "en.wikipedia.org", "User:Example/EditCounterOptIn.js")
                for _ in range(3)
            ]

        assert results == [True, False, False]

    @pytest.mark.asyncio
    @respx.mock
    async def test_page_lookup(self) -> None:
        respx.get(EN_API).mock(
            return_value=httpx.Response(
                200, json={"query": {"pages": [{"pageid": 42, "ns": 1, "title": "Talk:Foo"}]}}
            )
        )

        async with MediaWikiClient(Settings()) as client:
            info = await client.get_page("Talk:Foo", "en.wikipedia.org")

        assert info.exists
        assert (info.page_id, info.namespace_id, info.title) == (42, 1, "Talk:Foo")

    @pytest.mark.asyncio
    @respx.mock
    async def test_missing_page(self) -> None:
        respx.get(EN_API).mock(
            return_value=httpx.Response(200, json={"query": {"pages": [{"ns": 0, "title": "Nope", "missing": True}]}})
        )

        async with MediaWikiClient(Settings()) as client:
            info = await client.get_page("Nope", "en.wikipedia.org")

        assert info.exists is False


# ---------------------------------------------------------------------------
# Contributions and logs
# ---------------------------------------------------------------------------


class TestGetContributions:
    @pytest.mark.asyncio
    @respx.mock
    async def test_records_are_normalized(self) -> None:
        route = respx.get(EN_API).mock(
            return_value=httpx.Response(200, json=_load_fixture("usercontribs_response.json"))
        )

        async with MediaWikiClient(Settings()) as client:
            records = await client.get_contributions("Example", EN_PROJECT, limit=2)

        assert route.call_count == 1
        assert records[0] == {
            "rev_id": 934567999,
            "page_id": 42,
            "page_namespace": 1,
            "page_title": "Foo",
            "timestamp": "2020-01-15T12:30:00Z",
            "minor": True,
            "length": 5120,
            "size_diff": 230,
            "comment": "reply",
        }
        assert records[1]["page_title"] == "Bar"
        assert records[1]["comment"] is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_filters_are_sent(self) -> None:
        """Namespace, window start and the exclusive offset bound reach the API."""
        route = respx.get(EN_API).mock(
            return_value=httpx.Response(200, json={"query": {"usercontribs": []}})
        )

        async with MediaWikiClient(Settings()) as client:
            await client.get_contributions(
                "Example",
                EN_PROJECT,
                namespace=NamespaceId(1),
                start=parse_timestamp("2020-01-01"),
                offset=parse_timestamp("2020-01-15T12:30:00"),
                limit=50,
            )

        params = _params(route)
        assert params["ucnamespace"] == "1"
        assert params["ucend"] == "2020-01-01T00:00:00Z"
        assert params["ucstart"] == "2020-01-15T12:29:59Z"
        assert params["ucdir"] == "older"
        assert params["uclimit"] == "50"

    @pytest.mark.asyncio
    @respx.mock
    async def test_all_namespaces_sends_no_filter(self) -> None:
        route = respx.get(EN_API).mock(
            return_value=httpx.Response(200, json={"query": {"usercontribs": []}})
        )

        async with MediaWikiClient(Settings()) as client:
            await client.get_contributions("Example", EN_PROJECT, namespace=ALL_NAMESPACES)

        assert "ucnamespace" not in _params(route)

    @pytest.mark.parametrize("ip_range", ["1.2.3.0/24", "2001:DB8:0:0:0:0:0:0/48"])
    @pytest.mark.asyncio
    @respx.mock
    async def test_ip_range_is_sent_as_uciprange(self, ip_range: str) -> None:
        route = respx.get(EN_API).mock(
            return_value=httpx.Response(200, json={"query": {"usercontribs": []}})
        )

        async with MediaWikiClient(Settings()) as client:
            await client.get_contributions(ip_range, EN_PROJECT)

        params = _params(route)
        assert params["uciprange"] == ip_range
        assert "ucuser" not in params

    @pytest.mark.parametrize("username", ["Example", "192.0.2.7"])
    @pytest.mark.asyncio
    @respx.mock
    async def test_names_and_single_ips_are_sent_as_ucuser(self, username: str) -> None:
        route = respx.get(EN_API).mock(
            return_value=httpx.Response(200, json={"query": {"usercontribs": []}})
        )

        async with MediaWikiClient(Settings()) as client:
            await client.get_contributions(username, EN_PROJECT)

        params = _params(route)
        assert params["ucuser"] == username
        assert "uciprange" not in params

    @pytest.mark.asyncio
    @respx.mock
    async def test_continuation_is_followed(self) -> None:
        second_page = {
            "query": {
                "usercontribs": [
                    {"pageid": 9, "revid": 1, "ns": 0, "title": "Baz", "timestamp": "2020-01-10T08:30:00Z"},
                ]
            }
        }
        route = respx.get(EN_API).mock(
            side_effect=[
                httpx.Response(200, json=_load_fixture("usercontribs_response.json")),
                httpx.Response(200, json=second_page),
            ]
        )

        async with MediaWikiClient(Settings()) as client:
            records = await client.get_contributions("Example", EN_PROJECT, limit=10)

        assert [r["page_title"] for r in records] == ["Foo", "Bar", "Baz"]
        assert route.call_count == 2
        assert _params(route, 1)["uccontinue"] == "20200110083000|934567890"
        assert _params(route, 1)["uclimit"] == "8"


class TestGetLogEvents:
    @pytest.mark.asyncio
    @respx.mock
    async def test_log_events_are_normalized(self) -> None:
        route = respx.get(EN_API).mock(
            return_value=httpx.Response(
                200,
                json={
                    "query": {
                        "logevents": [
                            {
                                "logid": 1,
                                "type": "rights",
                                "action": "rights",
                                "user": "Steward",
                                "title": "User:Example",
                                "timestamp": "2019-05-01T10:00:00Z",
                                "comment": "per request",
                                "params": {"oldgroups": [], "newgroups": ["sysop"]},
                            }
                        ]
                    }
                },
            )
        )

        async with MediaWikiClient(Settings()) as client:
            events = await client.get_log_events(
                "en.wikipedia.org",
                "rights",
                start=parse_timestamp("2019-01-01"),
                end=parse_timestamp("2019-12-31"),
                title="User:Example",
            )

        assert events == [
            {
                "user": "Steward",
                "type": "rights",
                "action": "rights",
                "title": "User:Example",
                "timestamp": "2019-05-01T10:00:00Z",
                "comment": "per request",
                "params": {"oldgroups": [], "newgroups": ["sysop"]},
            }
        ]
        params = _params(route)
        assert params["letype"] == "rights"
        assert params["letitle"] == "User:Example"
        assert params["lestart"] == "2019-12-31T00:00:00Z"
        assert params["leend"] == "2019-01-01T00:00:00Z"


# ---------------------------------------------------------------------------
# Failure mapping and HTTP plumbing
# ---------------------------------------------------------------------------


class TestFailures:
    @pytest.mark.asyncio
    @respx.mock
    async def test_http_429_is_unavailable(self) -> None:
        respx.get(EN_API).mock(return_value=httpx.Response(429, headers={"Retry-After": "60"}))

        async with MediaWikiClient(Settings()) as client:
            with pytest.raises(DownstreamUnavailableError, match="429"):
                await client.get_user("Example", "en.wikipedia.org")

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout(self) -> None:
        respx.get(EN_API).mock(side_effect=httpx.ReadTimeout("slow"))
        before = _outcome_count("timeout")

        async with MediaWikiClient(Settings()) as client:
            with pytest.raises(DownstreamTimeoutError) as exc_info:
                await client.get_user("Example", "en.wikipedia.org")

        assert exc_info.value.source == "en.wikipedia.org"
        assert _outcome_count("timeout") == before + 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_api_error_block(self) -> None:
        respx.get(EN_API).mock(
            return_value=httpx.Response(
                200, json={"error": {"code": "maxlag", "info": "Waiting for a database server"}}
            )
        )

        async with MediaWikiClient(Settings()) as client:
            with pytest.raises(DownstreamUnavailableError, match="maxlag"):
                await client.get_page("Foo", "en.wikipedia.org")

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_json_body(self) -> None:
        respx.get(EN_API).mock(
            return_value=httpx.Response(200, text="<html>maintenance</html>")
        )

        async with MediaWikiClient(Settings()) as client:
            with pytest.raises(DownstreamUnavailableError):
                await client.get_page("Foo", "en.wikipedia.org")


class TestHttpPlumbing:
    @pytest.mark.asyncio
    @respx.mock
    async def test_user_agent_is_sent(self) -> None:
        settings = Settings()
        route = respx.get(EN_API).mock(
            return_value=httpx.Response(200, json={"query": {"users": []}})
        )

        async with MediaWikiClient(settings) as client:
            await client.get_user("Example", "en.wikipedia.org")

        assert route.calls.last.request.headers["User-Agent"] == settings.user_agent

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self) -> None:
        http_client = httpx.AsyncClient()
        client = MediaWikiClient(Settings(), http_client=http_client)

        await client.aclose()

        assert not http_client.is_closed
        await http_client.aclose()
