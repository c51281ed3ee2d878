"""Prometheus metric inventory.

Every metric the service exports is declared here; the modules that own
the behaviour import the metric and update it at the point of action.

HTTP metrics are filled in by MetricsMiddleware.  The domain counters
track the enrollment engine: how many enrollments were created, how many
completion-state changes were applied, and how often a progress write
lost a version race and had to be recomputed.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Enrollment engine
# ---------------------------------------------------------------------------

ENROLLMENTS_CREATED = Counter(
    "enrollments_created_total",
    "Enrollments created",
)

LESSON_COMPLETIONS = Counter(
    "lesson_completions_total",
    "Completion-state changes applied to enrollments",
    ["action"],  # complete|undo|course
)

PROGRESS_WRITE_CONFLICTS = Counter(
    "progress_write_conflicts_total",
    "Progress writes rejected by the version check and recomputed",
)
