"""Shared slowapi rate-limiter singleton.

Keeping the ``Limiter`` instance in its own module breaks the circular
import that would arise if route modules imported directly from ``main.py``
(which itself imports every route module).

Usage in route modules::

    from wiki_edit_stats.api.limiter import api_rate_limit, limiter

    @router.get("/api/user/simple_editcount/{project}/{username}")
    @limiter.limit(api_rate_limit)
    async def simple_editcount_api(request: Request, ...):
        ...

The ``request`` parameter **must** be present in the route function
signature for slowapi to resolve the rate-limit key.

The ``Limiter`` is configured in ``main.create_app()`` where it is
attached to ``app.state`` and enabled or disabled from
``Settings.rate_limit_enabled``.
"""

from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

from wiki_edit_stats.config.settings import get_settings

limiter: Limiter = Limiter(key_func=get_remote_address)
"""Global rate-limiter instance, keyed by client IP address."""


def api_rate_limit() -> str:
    """Return the per-client limit applied to ``/api`` routes (read at request time)."""
    return get_settings().api_rate_limit
