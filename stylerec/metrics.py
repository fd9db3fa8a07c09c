"""Prometheus metrics for the recommendation service."""

from prometheus_client import Counter, Histogram, Info

# Application info
app_info = Info("stylerec", "Style recommendation service info")
app_info.info({"version": "0.1.0", "name": "stylerec"})

# Request metrics
recommendation_requests_total = Counter(
    "recommendation_requests_total",
    "Total number of recommendation requests",
    ["status"],  # success, empty, invalid, error
)

recommendation_pipeline_duration_seconds = Histogram(
    "recommendation_pipeline_duration_seconds",
    "Time spent generating recommendations for one request",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)

recommendations_returned = Histogram(
    "recommendations_returned",
    "Number of recommendations returned per request",
    buckets=[0, 1, 2, 4, 6, 8],
)

recommendation_persist_failures_total = Counter(
    "recommendation_persist_failures_total",
    "Total number of failed recommendation inserts",
)

# Candidate source metrics
candidate_source_attempts_total = Counter(
    "candidate_source_attempts_total",
    "Candidate source invocations by outcome",
    ["source", "outcome"],  # success, empty, transient, fatal
)

recommendation_fallbacks_total = Counter(
    "recommendation_fallbacks_total",
    "Fallbacks from one candidate source to the next",
    ["from_source", "to_source"],
)

# Upstream capability metrics
embedding_requests_total = Counter(
    "embedding_requests_total",
    "Embedding requests by provider and status",
    ["provider", "status"],
)

llm_requests_total = Counter(
    "llm_requests_total",
    "Generation requests by status",
    ["status"],  # success, cache_hit, error
)

discovery_requests_total = Counter(
    "discovery_requests_total",
    "Product discovery requests by query form and status",
    ["query_form", "status"],
)
