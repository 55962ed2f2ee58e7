"""Prometheus metrics."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# Database connection pool metrics
db_connections_active = Gauge(
    "db_connections_active",
    "Number of active database connections",
)
db_connections_idle = Gauge(
    "db_connections_idle",
    "Number of idle database connections in pool",
)
db_pool_size = Gauge(
    "db_pool_size",
    "Configured database connection pool size",
)

# Database retry operation metrics
db_retry_attempts_total = Counter(
    "db_retry_attempts_total",
    "Total number of database operation retry attempts",
    ["operation_type"],
)
db_lock_errors_total = Counter(
    "db_lock_errors_total",
    "Total number of database lock errors encountered",
)
db_retries_failed_total = Counter(
    "db_retries_failed_total",
    "Total number of database operations that failed after all retries",
    ["operation_type"],
)

# Search pipeline metrics
search_results_total = Counter(
    "search_results_total",
    "Torrent results leaving each pipeline stage",
    ["stage"],  # stage: raw, deduplicated, filtered, selected
)
search_term_failures_total = Counter(
    "search_term_failures_total",
    "Indexer search terms that failed and were skipped",
)
scene_matches_total = Counter(
    "scene_matches_total",
    "Scene group match outcomes",
    ["strategy", "outcome"],  # strategy: lexical, cross_encoder; outcome: matched, unmatched, error
)
discovered_groups_total = Counter(
    "discovered_groups_total",
    "Unmatched scene groups seen on enough indexers to be reported",
)
pipeline_duration_seconds = Histogram(
    "pipeline_duration_seconds",
    "Duration of a subscription search pipeline run in seconds",
    ["entity_type"],
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0),
)

# Download queue metrics
enqueue_attempts_total = Counter(
    "enqueue_attempts_total",
    "Attempts to hand a queued torrent to the download client",
    ["outcome"],  # outcome: success, failure
)
retry_permanent_failures = Gauge(
    "retry_permanent_failures",
    "Queue items that reached the maximum number of add attempts",
)
