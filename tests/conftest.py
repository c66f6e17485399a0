"""Shared pytest fixtures for Wiki Edit Stats tests.

Fixture summary
---------------
settings   : The cached application Settings.
fake_wiki  : In-memory wiki farm (see tests/factories/wiki.py) seeded with
              en/de/fr Wikipedia, Commons and a few users and pages.
client     : httpx.AsyncClient against the FastAPI app, with the MediaWiki
              client dependency replaced by ``fake_wiki``.

No test talks to a live wiki.  Tests of the MediaWiki client itself mock
HTTP with respx.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# ---------------------------------------------------------------------------
# Test environment bootstrap
# ---------------------------------------------------------------------------
# Set env vars before any application modules are imported so that the
# module-level app is built with test settings.

_TEST_ENV_DEFAULTS: dict[str, str] = {
    "RATE_LIMIT_ENABLED": "false",
    "METRICS_ENABLED": "true",
    "DEFAULT_PROJECT": "en.wikipedia.org",
    "LOG_LEVEL": "WARNING",
}

for _key, _default in _TEST_ENV_DEFAULTS.items():
    os.environ.setdefault(_key, _default)

# ---------------------------------------------------------------------------
# Application imports (after env bootstrap)
# ---------------------------------------------------------------------------

from tests.factories.wiki import FakeWiki  # noqa: E402
from wiki_edit_stats.api.dependencies import get_wiki_client  # noqa: E402
from wiki_edit_stats.api.main import app  # noqa: E402
from wiki_edit_stats.config.settings import Settings, get_settings  # noqa: E402

# Clear the lru_cache so Settings() re-reads from the patched environment.
get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def fake_wiki() -> FakeWiki:
    return FakeWiki.with_defaults()


@pytest_asyncio.fixture
async def client(fake_wiki: FakeWiki) -> AsyncGenerator[AsyncClient, None]:
    """Provide an HTTP client wired to the app with the fake wiki injected.

    Redirects are not followed so that tests can inspect ``Location``.
    """
    app.dependency_overrides[get_wiki_client] = lambda: fake_wiki
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://testserver",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
