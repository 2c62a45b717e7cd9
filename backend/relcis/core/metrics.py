from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# ---------------------------------------------------------------------------
# Request-level counters
# ---------------------------------------------------------------------------
search_requests_total = Counter(
    "search_requests_total",
    "Total search/capture operations by kind and outcome",
    ["kind", "status"],
)

# ---------------------------------------------------------------------------
# Provider state machine
# ---------------------------------------------------------------------------
provider_attempts_total = Counter(
    "provider_attempts_total",
    "Provider attempts by provider and classified outcome",
    ["provider", "outcome"],
)
provider_attempt_duration_seconds = Histogram(
    "provider_attempt_duration_seconds",
    "Duration of a single provider attempt (navigation + classification)",
    ["provider"],
    buckets=[0.5, 1, 2, 5, 10, 15, 30, 60],
)
provider_fallbacks_total = Counter(
    "provider_fallbacks_total",
    "Times the chain advanced past a failed provider",
    ["provider", "kind"],
)
last_resort_attempts_total = Counter(
    "last_resort_attempts_total",
    "Last-resort alternate attempts at the tail of the web-search chain",
)

# ---------------------------------------------------------------------------
# Browser session
# ---------------------------------------------------------------------------
active_browser_contexts = Gauge(
    "active_browser_contexts",
    "Number of currently active browser contexts",
)
browser_pool_exhausted_total = Counter(
    "browser_pool_exhausted_total",
    "Number of lease requests rejected after the admission timeout",
)
browser_launches_total = Counter(
    "browser_launches_total",
    "Browser process launch attempts",
    ["status"],
)

# ---------------------------------------------------------------------------
# Artifact ingestion
# ---------------------------------------------------------------------------
artifact_uploads_total = Counter(
    "artifact_uploads_total",
    "Artifact uploads by category and outcome",
    ["category", "status"],
)
artifact_upload_duration_seconds = Histogram(
    "artifact_upload_duration_seconds",
    "Time spent uploading a single artifact",
    ["category"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10],
)
image_mirror_failures_total = Counter(
    "image_mirror_failures_total",
    "Image mirrors that fell back to the original URL",
)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
