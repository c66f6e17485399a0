"""Request parameter parsing and legacy parameter rewriting.

Every tool accepts the same fixed catalog of parameters, from either the
query string or the route path.  Years of older URL conventions are folded
into the canonical names here so that nothing downstream ever sees a legacy
key.

Typical use::

    params = parse_params(request.query_params, request.path_params)
    params = convert_legacy_params(params, settings.languageless_projects)
"""

from __future__ import annotations

import urllib.parse
from typing import Any, Iterable, Mapping, Optional

import structlog

from wiki_edit_stats.core.domain import (
    ALL_NAMESPACES,
    MAIN_NAMESPACE,
    NamespaceId,
    NamespaceSelector,
)

logger = structlog.get_logger(__name__)

RECOGNIZED_PARAMS: tuple[str, ...] = (
    "project",
    "username",
    "namespace",
    "page",
    "categories",
    "group",
    "redirects",
    "deleted",
    "start",
    "end",
    "offset",
    "limit",
    "format",
    "tool",
    "tools",
    "q",
    "include_pattern",
    "exclude_pattern",
    # Legacy parameters, rewritten by convert_legacy_params().
    "user",
    "name",
    "article",
    "wiki",
    "wikifam",
    "lang",
    "wikilang",
    "begin",
)
"""Every parameter name read from a request, canonical names first."""

LEGACY_PARAM_MAP: tuple[tuple[str, str], ...] = (
    ("user", "username"),
    ("name", "username"),
    ("article", "page"),
    ("begin", "start"),
    # Older project components, renamed so they combine below.
    ("wikifam", "wiki"),
    ("wikilang", "lang"),
)
"""Ordered legacy -> canonical renames.  A legacy value overwrites the
canonical key, and later entries overwrite earlier ones."""


def parse_params(
    query: Mapping[str, Any],
    path_params: Mapping[str, Any] | None = None,
) -> dict[str, str]:
    """Extract the recognized parameters from a request.

    The query-string value wins over the path value.  Values are URL-decoded
    (``%2F`` becomes ``/``, ``+`` is kept literally) and kept as strings.
    Parameters whose value is missing or blank are dropped; ``"0"`` is kept
    since both ``namespace`` and ``username`` may legitimately be zero.

    Args:
        query: Query-string mapping.
        path_params: Route path parameters.

    Returns:
        A new dict containing only recognized, non-blank parameters.
    """
    path_params = path_params or {}
    params: dict[str, str] = {}
    for name in RECOGNIZED_PARAMS:
        value = query.get(name)
        if value is None or value == "":
            value = path_params.get(name)
        if value is None or value == "":
            continue
        decoded = urllib.parse.unquote(str(value))
        if decoded != "":
            params[name] = decoded
    return params


def convert_legacy_params(
    params: Mapping[str, str],
    languageless_projects: Iterable[str] = (),
) -> dict[str, str]:
    """Rewrite legacy parameter names and shapes to the canonical set.

    Renames follow :data:`LEGACY_PARAM_MAP`.  A ``wiki`` value (optionally
    with ``lang``) is combined into ``project``: leading and trailing periods
    and a trailing ``.org`` are stripped from ``wiki``, ``.org`` is appended
    back, and ``lang.`` is prepended unless the wiki is languageless.  Both
    component keys are removed afterwards.

    Re-applying the function to its own output returns an equal dict.

    Args:
        params: Parsed request parameters.
        languageless_projects: Wikis without a language subdomain.

    Returns:
        A new dict with canonical keys only.
    """
    converted = dict(params)
    renamed: list[str] = []

    for legacy, modern in LEGACY_PARAM_MAP:
        if legacy in converted:
            converted[modern] = converted.pop(legacy)
            renamed.append(legacy)

    if "wiki" in converted:
        wiki = converted.pop("wiki")
        lang = converted.pop("lang", None)
        family = wiki.strip(".")
        if family.endswith(".org"):
            family = family[: -len(".org")].rstrip(".")
        project = f"{family}.org"

        languageless = set(languageless_projects)
        if lang and wiki not in languageless and family not in languageless:
            project = f"{lang}.{project}"
        converted["project"] = project
        renamed.append("wiki")

    if renamed:
        logger.debug("legacy_params_converted", legacy=renamed)
    return converted


# ---------------------------------------------------------------------------
# Typed views of individual parameters
# ---------------------------------------------------------------------------


def parse_namespace(
    raw: Optional[str],
    namespaces: Mapping[int, str] | None = None,
) -> Optional[NamespaceSelector]:
    """Turn the ``namespace`` parameter into a :data:`NamespaceSelector`.

    ``"all"`` selects every namespace and integers select by ID.  Any other
    value is matched against the localized namespace names of the project
    (``"Main"`` and ``""`` meaning the article namespace); unknown names fall
    back to the article namespace.

    Returns:
        ``None`` when the parameter is absent.
    """
    if raw is None:
        return None
    value = raw.strip()
    if value.lower() == "all":
        return ALL_NAMESPACES
    try:
        return NamespaceId(int(value))
    except ValueError:
        pass

    wanted = value.replace("_", " ").lower()
    if wanted in ("", "main"):
        return MAIN_NAMESPACE
    for ns_id, ns_name in (namespaces or {}).items():
        if ns_name.replace("_", " ").lower() == wanted:
            return NamespaceId(ns_id)
    return MAIN_NAMESPACE


def normalize_limit(raw: Optional[str], max_limit: int) -> Optional[int]:
    """Clamp the ``limit`` parameter to ``[1, max_limit]``.

    Non-numeric input counts as zero and is therefore raised to ``1``.
    """
    if raw is None:
        return None
    try:
        limit = int(raw)
    except ValueError:
        limit = 0
    return min(max(1, limit), max_limit)


def explode_multi_value(params: Mapping[str, Any]) -> dict[str, Any]:
    """Split pipe-delimited string values into lists (``a|b`` -> ``["a", "b"]``)."""
    exploded: dict[str, Any] = {}
    for key, value in params.items():
        if isinstance(value, str) and "|" in value:
            exploded[key] = value.split("|")
        else:
            exploded[key] = value
    return exploded
