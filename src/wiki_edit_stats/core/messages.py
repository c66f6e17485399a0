"""Message catalog and the request-scoped flash queue.

Messages are identified by i18n key and take ``$1``-style positional
arguments, mirroring MediaWiki message conventions.  Only English ships
with the service; unknown keys are shown verbatim so that callers may pass
raw text where no key exists.

:class:`FlashBag` queues messages for the current request.  HTML flows
carry them across a redirect as ``flash``/``flash_level`` query parameters;
API flows merge them into the JSON envelope.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable

MESSAGES: dict[str, str] = {
    "invalid-project": "$1 is not a valid project",
    "error-unsupported-project": "$1 is not supported by this tool",
    "user-not-found": "User not found",
    "no-result": "No result for $1",
    "ip-range-too-wide": "The IP range is too wide. The maximum CIDR is /$1",
    "too-many-edits": "User has made too many edits! Maximum: $1",
    "too-many-edits-redir": "You have been redirected to the $1",
    "date-range-too-wide": "The date range may not exceed $1 days. The start date has been adjusted",
    "not-opted-in": (
        "This user has not opted in to the restricted statistics. "
        "They can do so by creating the page $1. $2. $3"
    ),
    "not-opted-in-link": "More information is available at",
    "not-opted-in-login": "If this is your account, log in to view these statistics",
    "error-automation": "Automated requests to this page are not permitted. Use the API instead: $1",
    "tool-disabled": "This tool is disabled",
    "api-error-service-unavailable": "The data source for $1 is currently unavailable",
    "unknown": "Unknown",
    "tool-editcounter": "Edit Counter",
    "tool-simpleeditcounter": "Simple Counter",
    "tool-topedits": "Top Edits",
    "tool-pageinfo": "Page Info",
    "tool-authorship": "Authorship",
    "tool-adminstats": "Admin Stats",
    "tool-usercontribs": "User Contributions",
}

_PLACEHOLDER = re.compile(r"\$(\d+)")


def msg_exists(key: str) -> bool:
    return key in MESSAGES


def msg(key: str, args: Iterable[Any] = ()) -> str:
    """Render the message *key* with positional *args*.

    Placeholders without a matching argument are left untouched.

    Raises:
        KeyError: If *key* is not in the catalog.
    """
    values = [_format_arg(a) for a in args]

    def _sub(match: re.Match[str]) -> str:
        index = int(match.group(1)) - 1
        return values[index] if 0 <= index < len(values) else match.group(0)

    return _PLACEHOLDER.sub(_sub, MESSAGES[key])


def msg_if_exists(key: str, args: Iterable[Any] = ()) -> str:
    """Render *key* if it is a known message, else return *key* itself."""
    if msg_exists(key):
        return msg(key, args)
    return key


def number_format(value: int) -> str:
    return f"{value:,}"


def _format_arg(value: Any) -> str:
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, int):
        return number_format(value)
    return str(value)


# ---------------------------------------------------------------------------
# Flash queue
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FlashMessage:
    level: str
    key: str
    args: tuple[Any, ...] = ()

    @property
    def text(self) -> str:
        return msg_if_exists(self.key, self.args)


class FlashBag:
    """Ordered, per-request queue of user-facing messages.

    Levels follow Bootstrap naming (``danger``, ``warning``, ``info``).
    A new bag is created for every request; it is never shared.
    """

    def __init__(self) -> None:
        self._messages: list[FlashMessage] = []

    def add(self, level: str, key: str, args: Iterable[Any] = ()) -> None:
        self._messages.append(FlashMessage(level, key, tuple(args)))

    def peek_all(self) -> dict[str, list[str]]:
        """Return rendered messages grouped by level without clearing them."""
        grouped: dict[str, list[str]] = {}
        for message in self._messages:
            grouped.setdefault(message.level, []).append(message.text)
        return grouped

    def messages(self) -> list[FlashMessage]:
        return list(self._messages)

    def clear(self) -> None:
        self._messages.clear()

    def pop_all(self) -> dict[str, list[str]]:
        grouped = self.peek_all()
        self.clear()
        return grouped

    def __len__(self) -> int:
        return len(self._messages)
