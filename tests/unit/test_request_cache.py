"""Unit tests for the request-scoped lookup cache."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from wiki_edit_stats.core.request_cache import RequestCache


class TestRequestCache:
    @pytest.mark.asyncio
    async def test_loader_runs_once_per_key(self) -> None:
        cache = RequestCache()
        loader = AsyncMock(return_value=42)

        assert await cache.get_or_load(("user", "Example"), loader) == 42
        assert await cache.get_or_load(("user", "Example"), loader) == 42

        loader.assert_awaited_once()
        assert ("user", "Example") in cache
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self) -> None:
        cache = RequestCache()
        loader = AsyncMock(side_effect=[RuntimeError("down"), 7])

        with pytest.raises(RuntimeError):
            await cache.get_or_load("key", loader)

        assert await cache.get_or_load("key", loader) == 7
        assert loader.await_count == 2
