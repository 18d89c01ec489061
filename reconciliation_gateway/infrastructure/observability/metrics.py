"""Prometheus metrics for monitoring suggestion quality, match volume and conflicts"""

from typing import List
from prometheus_client import Counter, Histogram

# Suggestion metrics
suggestion_request_counter = Counter(
    "reconciliation_suggestion_requests_total",
    "Match suggestion requests served",
    ["outcome"],  # found | empty
)

suggestion_confidence_histogram = Histogram(
    "reconciliation_suggestion_confidence",
    "Confidence of returned match suggestions",
    buckets=[0.4, 0.55, 0.6, 0.75, 0.8, 0.95, 1.0],
)

# Match lifecycle metrics
match_created_counter = Counter(
    "reconciliation_matches_created_total",
    "Manual matches created",
)

unmatch_counter = Counter(
    "reconciliation_unmatches_total",
    "Matches removed",
)

conflict_counter = Counter(
    "reconciliation_conflicts_total",
    "Operations rejected because a side was already matched",
    ["operation"],  # suggest | create_match
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_suggestions(confidences: List[float]) -> None:
    """Record how many suggestions were found and how confident they were"""
    suggestion_request_counter.labels(outcome="found" if confidences else "empty").inc()
    for confidence in confidences:
        suggestion_confidence_histogram.observe(confidence)
