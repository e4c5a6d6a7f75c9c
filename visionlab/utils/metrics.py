"""
Prometheus-based metrics for the transform client.
Exposition (HTTP endpoint, push gateway) is left to the embedding application.
"""
from prometheus_client import Counter, Histogram


# Counters
adapter_attempts_total = Counter(
    "adapter_attempts_total",
    "Adapter attempts made by the fallback cascade",
    ["adapter", "outcome"],  # found, not_found, route_missing, error
)

transform_requests_total = Counter(
    "transform_requests_total",
    "Transform requests handled by GenerationClient",
    ["path", "status"],  # path: managed, cascade
)

# Histograms
transform_duration_seconds = Histogram(
    "transform_duration_seconds",
    "End-to-end transform duration",
    ["path"],
    buckets=(1, 2.5, 5, 10, 20, 40, 60, 120, 240),
)
