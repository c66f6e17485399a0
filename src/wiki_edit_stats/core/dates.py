"""Date window resolution for tools that report over a period.

Turns optional ``start``/``end`` parameters into a concrete window of Unix
timestamps (UTC).  Input is never rejected: unparseable values count as
absent, future dates are clamped to today's midnight, reversed ranges are
swapped and over-long ranges are truncated with a warning.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

import structlog

from wiki_edit_stats.core.domain import DateWindow
from wiki_edit_stats.core.messages import FlashBag

logger = structlog.get_logger(__name__)

DATE_FORMAT = "%Y-%m-%d"
CONTINUE_FORMAT = "%Y-%m-%dT%H:%M:%S"

_DAY_SECONDS = 86_400

RawDate = Union[int, str, date, datetime, None]


def today_midnight(now: Optional[datetime] = None) -> int:
    """Return the Unix timestamp of the most recent UTC midnight."""
    now = now or datetime.now(tz=timezone.utc)
    midnight = datetime.combine(now.astimezone(timezone.utc).date(), time.min, tzinfo=timezone.utc)
    return int(midnight.timestamp())


def parse_timestamp(value: RawDate) -> Optional[int]:
    """Parse a date-like value into a Unix timestamp, or ``None``.

    Accepts integers (already timestamps), ``date``/``datetime`` objects,
    ``YYYY-MM-DD``, ISO 8601 datetimes (``Z`` suffix allowed) and MediaWiki's
    compact ``YYYYMMDDHHMMSS`` form.  Naive datetimes are taken as UTC.
    """
    if value is None or value is False or value == "":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, datetime):
        return _datetime_to_unix(value)
    if isinstance(value, date):
        return _datetime_to_unix(datetime.combine(value, time.min))

    text = str(value).strip()
    if len(text) == 14 and text.isdigit():
        try:
            return _datetime_to_unix(datetime.strptime(text, "%Y%m%d%H%M%S"))
        except ValueError:
            return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return _datetime_to_unix(datetime.fromisoformat(text))
    except ValueError:
        return None


def format_date(timestamp: Optional[int]) -> Optional[str]:
    """Format a timestamp as ``YYYY-MM-DD`` (UTC)."""
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime(DATE_FORMAT)


def format_continue(value: RawDate) -> Optional[str]:
    """Format a timestamp-like value as ``YYYY-MM-DDTHH:MM:SS`` (UTC)."""
    timestamp = parse_timestamp(value)
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime(CONTINUE_FORMAT)


def _datetime_to_unix(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


def _days(count: int) -> int:
    return count * _DAY_SECONDS


def resolve_date_window(
    start: RawDate,
    end: RawDate,
    *,
    default_days: Optional[int] = None,
    max_days: Optional[int] = None,
    today: Optional[int] = None,
    flashes: Optional[FlashBag] = None,
) -> DateWindow:
    """Compute a clamped date window from raw ``start``/``end`` values.

    Steps, in order:

    1. Both bounds are capped at today's midnight; a missing or unparseable
       ``end`` becomes today.
    2. With a span ``D`` (``default_days``, else ``max_days``): a missing
       ``start`` becomes ``end - D``, and a missing raw ``end`` becomes
       ``min(start + D, today)``.
    3. A ``start`` after a supplied ``end`` is swapped with it.
    4. A window longer than ``max_days`` whole days is truncated to end at
       ``end``; a ``date-range-too-wide`` warning is queued on *flashes*.

    Args:
        start: Raw start value.
        end: Raw end value.
        default_days: Preferred span when one side is missing.
        max_days: Fallback span, and hard cap on the window length.
        today: Override for today's midnight (tests).
        flashes: Flash queue receiving the truncation warning.

    Returns:
        The resolved :class:`DateWindow`.
    """
    today = today_midnight() if today is None else today
    end_given = end is not None and end is not False and end != ""

    start_time = parse_timestamp(start)
    if start_time is not None:
        start_time = min(start_time, today)

    end_time = min(parse_timestamp(end) or today, today)

    span = default_days if default_days is not None else max_days
    if start_time is None and span is not None:
        start_time = end_time - _days(span)

    if not end_given and span is not None and start_time is not None:
        end_time = min(start_time + _days(span), today)

    if start_time is not None and end_given and start_time > end_time:
        start_time, end_time = end_time, start_time

    truncated = False
    if (
        max_days is not None
        and start_time is not None
        and abs(end_time - start_time) // _DAY_SECONDS > max_days
    ):
        truncated = True
        start_time = end_time - _days(max_days)
        if flashes is not None:
            flashes.add("warning", "date-range-too-wide", [max_days])
        logger.info("date_range_truncated", max_days=max_days, end=format_date(end_time))

    return DateWindow(start=start_time, end=end_time, truncated=truncated)
