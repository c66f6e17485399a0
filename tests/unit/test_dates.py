"""Unit tests for date parsing and date window resolution.

Covers:
- parse_timestamp(): accepted formats and rejection of garbage.
- format_date() / format_continue().
- resolve_date_window(): default window, future clamp, swap, truncation
  with warning, unparseable input, and the window invariants.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from wiki_edit_stats.core.dates import (
    format_continue,
    format_date,
    parse_timestamp,
    resolve_date_window,
    today_midnight,
)
from wiki_edit_stats.core.messages import FlashBag

DAY = 86_400


def _ts(value: str) -> int:
    return int(datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=timezone.utc).timestamp())


TODAY = _ts("2024-03-01")


class TestParseTimestamp:
    def test_plain_date(self) -> None:
        assert parse_timestamp("2020-01-15") == _ts("2020-01-15")

    def test_iso_datetime_with_z_suffix(self) -> None:
        assert parse_timestamp("2020-01-15T12:30:00Z") == _ts("2020-01-15") + 12 * 3600 + 30 * 60

    def test_mediawiki_compact_format(self) -> None:
        assert parse_timestamp("20200115123000") == _ts("2020-01-15") + 12 * 3600 + 30 * 60

    def test_integers_and_dates_pass_through(self) -> None:
        assert parse_timestamp(1_600_000_000) == 1_600_000_000
        assert parse_timestamp(date(2020, 1, 15)) == _ts("2020-01-15")

    @pytest.mark.parametrize("value", [None, "", "garbage", "2020-13-45", False])
    def test_unparseable_values_are_none(self, value: object) -> None:
        assert parse_timestamp(value) is None  # type: ignore[arg-type]


class TestFormatting:
    def test_format_date(self) -> None:
        assert format_date(_ts("2020-01-15") + 3600) == "2020-01-15"
        assert format_date(None) is None

    def test_format_continue(self) -> None:
        assert format_continue("2020-01-15T12:30:00Z") == "2020-01-15T12:30:00"

    def test_today_midnight_truncates_to_utc_day(self) -> None:
        now = datetime(2024, 3, 1, 23, 59, tzinfo=timezone.utc)

        assert today_midnight(now) == TODAY


class TestResolveDateWindow:
    def test_default_window_ends_today(self) -> None:
        """With neither bound and a 20-day default, the window is the last 20 days."""
        window = resolve_date_window(None, None, default_days=20, today=TODAY)

        assert window.end == TODAY
        assert window.start == TODAY - 20 * DAY
        assert window.truncated is False

    def test_no_span_and_no_start_leaves_start_absent(self) -> None:
        window = resolve_date_window(None, None, today=TODAY)

        assert window.start is None
        assert window.end == TODAY

    def test_future_start_is_clamped_to_today(self) -> None:
        window = resolve_date_window("2099-01-01", None, today=TODAY)

        assert window.start == TODAY
        assert window.end == TODAY

    def test_future_end_is_clamped_to_today(self) -> None:
        window = resolve_date_window("2024-02-01", "2099-01-01", today=TODAY)

        assert window.end == TODAY

    def test_reversed_range_is_swapped(self) -> None:
        window = resolve_date_window("2020-02-10", "2020-01-01", today=TODAY)

        assert window.start == _ts("2020-01-01")
        assert window.end == _ts("2020-02-10")

    def test_missing_end_extends_from_start_by_default_span(self) -> None:
        window = resolve_date_window("2023-01-01", None, default_days=31, max_days=365, today=TODAY)

        assert window.start == _ts("2023-01-01")
        assert window.end == _ts("2023-02-01")

    def test_missing_end_never_passes_today(self) -> None:
        window = resolve_date_window("2024-02-20", None, default_days=31, today=TODAY)

        assert window.end == TODAY

    def test_unparseable_start_counts_as_absent(self) -> None:
        window = resolve_date_window("garbage", "2023-06-30", max_days=30, today=TODAY)

        assert window.start == _ts("2023-06-30") - 30 * DAY
        assert window.end == _ts("2023-06-30")

    def test_overlong_range_is_truncated_with_warning(self) -> None:
        """A two-year range with a 365-day cap keeps the end and moves the start."""
        flashes = FlashBag()

        window = resolve_date_window(
            "2020-01-01", "2022-01-01", max_days=365, today=TODAY, flashes=flashes
        )

        assert window.truncated is True
        assert window.end == _ts("2022-01-01")
        assert window.start == _ts("2022-01-01") - 365 * DAY
        assert flashes.peek_all() == {
            "warning": ["The date range may not exceed 365 days. The start date has been adjusted"]
        }

    def test_range_within_cap_is_untouched(self) -> None:
        flashes = FlashBag()

        window = resolve_date_window(
            "2021-01-01", "2021-03-01", max_days=365, today=TODAY, flashes=flashes
        )

        assert window.start == _ts("2021-01-01")
        assert window.truncated is False
        assert len(flashes) == 0

    @pytest.mark.parametrize(
        ("start", "end", "default_days", "max_days"),
        [
            (None, None, None, 365),
            ("2010-01-01", None, 31, 365),
            ("2099-05-01", "2001-01-01", None, 30),
            ("2023-12-01", "2023-01-01", 31, 60),
            ("bad", "bad", 7, 14),
            ("2024-02-28", "2024-02-29", None, 365),
        ],
    )
    def test_window_invariants(
        self,
        start: str | None,
        end: str | None,
        default_days: int | None,
        max_days: int,
    ) -> None:
        """start <= end <= today, and the span never exceeds max_days."""
        window = resolve_date_window(
            start, end, default_days=default_days, max_days=max_days, today=TODAY
        )

        assert window.start is not None
        assert window.start <= window.end <= TODAY
        assert (window.end - window.start) // DAY <= max_days
