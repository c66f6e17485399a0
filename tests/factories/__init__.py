"""Factory Boy factories and fakes for test data generation.

Available factories
-------------------
ContributionFactory  : contribution record dict (newest first per batch)
LogEventFactory      : log event record dict
FakeWiki             : in-memory implementation of every wiki lookup
"""

from __future__ import annotations

from tests.factories.wiki import ContributionFactory, FakeWiki, LogEventFactory

__all__ = [
    "ContributionFactory",
    "FakeWiki",
    "LogEventFactory",
]
