"""Prometheus metrics for record retrieval and access decisions."""

from prometheus_client import Counter, Histogram

ACCESS_DECISIONS = Counter(
    "record_access_decisions_total",
    "Access decisions observed by the gateway",
    labelnames=["outcome", "source"],
)

DECISION_CACHE_LOOKUPS = Counter(
    "record_access_decision_cache_lookups_total",
    "Access decision cache lookups",
    labelnames=["result"],  # hit, miss, joined
)

AUDIT_WRITE_FAILURES = Counter(
    "record_access_audit_write_failures_total",
    "Audit events that could not be written to the audit trail",
    labelnames=["action"],
)

DOWNSTREAM_FAILURES = Counter(
    "record_access_downstream_failures_total",
    "Retrievals that failed because a dependency could not respond",
    labelnames=["stage"],
)

RETRIEVAL_LATENCY = Histogram(
    "record_access_retrieval_latency_seconds",
    "End-to-end latency of get_record calls",
    labelnames=["outcome"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
