"""Unit tests for the structured logging configuration.

Verifies that ``configure_logging()`` produces JSON records carrying the
standard fields, that the ``request_id_var`` context variable is
propagated, and that secret-bearing keys (the project cookie included) are
redacted.
"""

from __future__ import annotations

import json
import logging
from io import StringIO

from wiki_edit_stats.core.logging_config import (
    _redact_secrets,
    configure_logging,
    request_id_var,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _capture_records(log_level: str, message: str) -> list[dict]:
    """Emit one stdlib log record and return the parsed JSON lines written.

    The root handler's stream is swapped for a buffer for the duration of
    the call.
    """
    configure_logging(log_level)

    buffer = StringIO()
    swapped = []
    for handler in logging.getLogger().handlers:
        if hasattr(handler, "stream"):
            swapped.append((handler, handler.stream))
            handler.stream = buffer

    logging.getLogger("test.logging_config").warning(message)

    for handler, stream in swapped:
        handler.flush()
        handler.stream = stream

    lines = [line for line in buffer.getvalue().splitlines() if line.strip()]
    return [json.loads(line) for line in lines]


def _find(records: list[dict], event: str) -> dict:
    matching = [r for r in records if r.get("event") == event]
    assert matching, f"No record with event={event!r} in {records!r}"
    return matching[0]


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestConfigureLoggingJson:
    """Verify non-debug (production) JSON output."""

    def test_record_has_standard_fields(self) -> None:
        """Each record carries event, timestamp, level and logger."""
        record = _find(_capture_records("INFO", "standard_fields"), "standard_fields")

        assert record["level"] == "warning"
        assert record["logger"] == "test.logging_config"
        assert "timestamp" in record

    def test_level_filters_records(self) -> None:
        """At ERROR level, a warning is not written at all."""
        assert _capture_records("ERROR", "filtered_out") == []

    def test_calling_twice_keeps_one_handler(self) -> None:
        configure_logging("INFO")
        configure_logging("INFO")

        assert len(logging.getLogger().handlers) == 1


class TestRequestIdContextVar:
    def test_request_id_appears_in_output(self) -> None:
        token = request_id_var.set("req-42")
        try:
            records = _capture_records("INFO", "with_request_id")
        finally:
            request_id_var.reset(token)

        assert _find(records, "with_request_id")["request_id"] == "req-42"

    def test_no_request_id_outside_a_request(self) -> None:
        token = request_id_var.set(None)
        try:
            records = _capture_records("INFO", "without_request_id")
        finally:
            request_id_var.reset(token)

        assert _find(records, "without_request_id").get("request_id") is None


class TestRedactSecrets:
    def test_secret_keys_are_redacted(self) -> None:
        event = _redact_secrets(
            None,
            "info",
            {"event": "x", "cookie": "WikiEditStatsProject=en.wikipedia.org", "project": "en.wikipedia.org"},
        )

        assert event["cookie"] == "[REDACTED]"
        assert event["project"] == "en.wikipedia.org"

    def test_nested_header_dicts_are_redacted(self) -> None:
        event = _redact_secrets(
            None,
            "info",
            {"event": "x", "headers": {"Authorization": "Bearer abc", "User-Agent": "curl"}},
        )

        assert event["headers"] == {"Authorization": "[REDACTED]", "User-Agent": "curl"}
