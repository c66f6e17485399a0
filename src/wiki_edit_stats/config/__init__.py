"""Configuration package for Wiki Edit Stats.

Re-exports the most commonly used configuration symbols so that
callers can write::

    from wiki_edit_stats.config import get_settings, get_tool

without needing to know which sub-module each symbol lives in.
"""

from __future__ import annotations

from wiki_edit_stats.config.settings import Settings, get_settings
from wiki_edit_stats.config.tools import TOOLS, ToolConfig, get_tool

__all__ = [
    # settings
    "Settings",
    "get_settings",
    # tools
    "TOOLS",
    "ToolConfig",
    "get_tool",
]
