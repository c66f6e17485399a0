"""Request-scoped memoisation of collaborator lookups.

One :class:`RequestCache` is created per inbound request and passed down
the pipeline, so that e.g. a user's edit count fetched during resolution is
reused by the edit-count gate.  It is not thread-safe and must never outlive
or be shared between requests.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Hashable, TypeVar

T = TypeVar("T")


class RequestCache:
    def __init__(self) -> None:
        self._values: dict[Hashable, Any] = {}

    async def get_or_load(self, key: Hashable, loader: Callable[[], Awaitable[T]]) -> T:
        """Return the cached value for *key*, awaiting *loader* on first access.

        Failures are not cached; a later call retries the loader.
        """
        if key not in self._values:
            self._values[key] = await loader()
        return self._values[key]

    def __contains__(self, key: Hashable) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)
