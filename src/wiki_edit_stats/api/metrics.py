"""Prometheus metrics for Wiki Edit Stats.

Exposes application-level metrics alongside the standard process metrics
from prometheus_client.

All metrics are module-level singletons registered on the default
``REGISTRY``.  They are safe to import from multiple modules because
prometheus_client deduplicates by metric name.

Metrics defined here:

  http_requests_total{method, path, status}
      Counter: HTTP requests handled by the FastAPI application, labelled by
      HTTP method, route template, and response status code.

  http_request_duration_seconds{method, path}
      Histogram: HTTP request latency in seconds.

  gate_decisions_total{tool, outcome}
      Counter: request pipeline outcomes per tool (proceed, redirect,
      rejected).

  api_requests_total{endpoint}
      Counter: API calls that passed the pipeline, per ``tool/action``.

  mediawiki_requests_total{outcome}
      Counter: outbound Action API calls by outcome.

Usage::

    from wiki_edit_stats.api.metrics import gate_decisions_total
    gate_decisions_total.labels(tool="editcounter", outcome="redirect").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by middleware in main.py)
# ---------------------------------------------------------------------------

http_requests_total: Counter = Counter(
    "http_requests_total",
    "HTTP requests handled by the FastAPI application.",
    labelnames=["method", "path", "status"],
)
"""Counter incremented after every HTTP response.

Labels:
  method: HTTP method (GET, POST, …)
  path:   route template where possible (e.g. /ec/{project}/{username})
  status: HTTP response status code as string (e.g. '200', '404')
"""

http_request_duration_seconds: Histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds.",
    labelnames=["method", "path"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)
"""Histogram of HTTP request durations.

Labels:
  method: HTTP method
  path:   route template
"""

# ---------------------------------------------------------------------------
# Pipeline metrics (populated in api/dependencies.py)
# ---------------------------------------------------------------------------

gate_decisions_total: Counter = Counter(
    "gate_decisions_total",
    "Request pipeline outcomes by tool.",
    labelnames=["tool", "outcome"],
)
"""Counter incremented once per pipeline run.

Labels:
  tool:    tool name (e.g. editcounter, topedits)
  outcome: one of proceed, redirect, rejected
"""

api_requests_total: Counter = Counter(
    "api_requests_total",
    "API requests that passed the request pipeline, by endpoint.",
    labelnames=["endpoint"],
)
"""Counter of successful API usage.

Labels:
  endpoint: ``<tool>/<action>`` (e.g. editcounter/month_counts_api)
"""

# ---------------------------------------------------------------------------
# Data-source metrics (populated in wiki/client.py)
# ---------------------------------------------------------------------------

mediawiki_requests_total: Counter = Counter(
    "mediawiki_requests_total",
    "Outbound MediaWiki Action API requests by outcome.",
    labelnames=["outcome"],
)
"""Counter incremented once per Action API call.

Labels:
  outcome: ok, timeout, rate_limited, http_error, request_error,
           invalid_json or api_error
"""


# ---------------------------------------------------------------------------
# Response helper
# ---------------------------------------------------------------------------


def get_metrics_response() -> tuple[bytes, str]:
    """Generate a Prometheus text-format metrics response.

    Returns:
        A tuple of (body_bytes, content_type_string) suitable for constructing
        a FastAPI ``Response`` object.
    """
    from prometheus_client import CONTENT_TYPE_LATEST, generate_latest  # noqa: PLC0415

    return generate_latest(), CONTENT_TYPE_LATEST
