"""Application settings loaded from environment variables.

Uses Pydantic Settings v2 for validated, type-safe configuration.
Deployment-specific values are accessed exclusively through this module;
never call ``os.getenv`` directly elsewhere in the codebase.

Usage::

    from wiki_edit_stats.config.settings import get_settings

    settings = get_settings()
    threshold = settings.max_user_edits
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application-wide configuration backed by environment variables and an optional .env file.

    Every field has a sensible default so that the service starts without
    any environment at all; production deployments normally override the
    default project, the edit-count threshold and the CORS origins.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Application behaviour
    # ------------------------------------------------------------------

    app_name: str = "Wiki Edit Stats"
    """Human-readable application name shown in the UI and OpenAPI docs."""

    debug: bool = False
    """Enable FastAPI debug mode and verbose error responses.  Never True in production."""

    log_level: str = "INFO"
    """Logging verbosity.  One of: DEBUG, INFO, WARNING, ERROR, CRITICAL."""

    disabled_tools: list[str] = []
    """Tool names (see :data:`wiki_edit_stats.config.tools.TOOLS`) that answer
    every request with HTTP 404."""

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    default_project: str = "en.wikipedia.org"
    """Project shown on index pages when neither the query string nor the
    project cookie names a valid one."""

    languageless_projects: list[str] = [
        "commons",
        "meta",
        "species",
        "wikidata",
        "mediawiki",
        "incubator",
    ]
    """Wikis with no language subdomain.

    Legacy ``wiki``/``lang`` parameter pairs naming one of these are rebuilt
    without the language prefix (``commons`` + ``en`` -> ``commons.org``).
    """

    project_cookie_name: str = "WikiEditStatsProject"
    """Name of the persistent cookie remembering the last resolved project domain."""

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    max_user_edits: int = 350_000
    """Edit count above which per-edit tools redirect to a lighter alternative."""

    max_ipv4_cidr: int = 16
    """Widest queryable IPv4 range, as a minimum prefix length."""

    max_ipv6_cidr: int = 32
    """Widest queryable IPv6 range, as a minimum prefix length."""

    opt_in_page_suffix: str = "EditCounterOptIn.js"
    """User subpage whose last edit by the user opts them in to restricted statistics."""

    opt_in_docs_url: str = "https://www.mediawiki.org/wiki/XTools/Edit_Counter#restricted_stats"
    """Generic explanation of the restricted statistics, linked from the not-opted-in error."""

    # ------------------------------------------------------------------
    # MediaWiki Action API
    # ------------------------------------------------------------------

    mediawiki_api_url: str = "https://{domain}/w/api.php"
    """Action API endpoint template.  ``{domain}`` is replaced by the project domain."""

    user_agent: str = "WikiEditStats/1.0 (edit statistics tool; tools@wikieditstats.org) python-httpx"
    """User-Agent sent on every Wikimedia request, as required by the API etiquette."""

    http_timeout_seconds: float = 30.0
    """Timeout applied to each outbound MediaWiki request."""

    # ------------------------------------------------------------------
    # CORS
    # ------------------------------------------------------------------

    allowed_origins: list[str] = ["http://localhost:8000"]
    """Origins permitted by the CORS middleware.  Extend for production domains."""

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    """Toggle the slowapi limiter.  Disabled in the test suite."""

    api_rate_limit: str = "100/minute"
    """Per-client limit applied to every ``/api`` endpoint."""

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    metrics_enabled: bool = True
    """Expose Prometheus metrics at ``GET /metrics``.

    Set to ``False`` to disable the endpoint entirely (e.g. in environments
    where the metrics path must not be publicly reachable and a network-level
    restriction is not practical).
    """


@lru_cache
def get_settings() -> Settings:
    """Return the cached application settings singleton.

    Uses ``functools.lru_cache`` so that Pydantic Settings reads the environment
    and .env file exactly once per process lifetime.  In tests, call
    ``get_settings.cache_clear()`` after patching environment variables.

    Returns:
        Settings: The validated, immutable settings object.
    """
    return Settings()
