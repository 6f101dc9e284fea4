"""Prometheus metrics for reconciliation observability.

Counters and histograms at each pipeline stage.
Exposed via /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, make_asgi_app

# Source counters
source_fetch_total = Counter(
    "source_fetch_total",
    "Total source adapter fetches",
    ["origin", "outcome"],  # outcome: ok, empty, or a failure reason
)

records_rejected_total = Counter(
    "records_rejected_total",
    "Raw records dropped during normalization",
    ["origin"],
)

trend_requests_total = Counter(
    "trend_requests_total",
    "Total reconciliation passes by diagnostic source tag",
    ["source_used"],
)

# API counters
api_requests_total = Counter(
    "api_requests_total",
    "Total API requests",
    ["endpoint", "method", "status_code"],
)

# Histograms
source_fetch_duration_seconds = Histogram(
    "source_fetch_duration_seconds",
    "Duration of source adapter fetches",
    ["origin"],
)

pipeline_duration_seconds = Histogram(
    "pipeline_duration_seconds",
    "Duration of a full reconciliation pass",
    ["granularity"],
)

api_response_duration_seconds = Histogram(
    "api_response_duration_seconds",
    "Duration of API responses",
    ["endpoint"],
)


def create_metrics_app():
    """Create ASGI app for /metrics endpoint."""
    return make_asgi_app()
