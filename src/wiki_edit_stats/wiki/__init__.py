"""MediaWiki Action API collaborators."""

from wiki_edit_stats.wiki.client import MediaWikiClient, project_domain

__all__ = ["MediaWikiClient", "project_domain"]
