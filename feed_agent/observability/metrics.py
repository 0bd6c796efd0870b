"""
Prometheus metrics for the community feed aggregator.

This module defines and exports Prometheus metrics for monitoring:
- Feed request rates and latencies
- Per-source fetch outcomes, durations and item counts
- Rate limiter rejections and cache effectiveness
"""

import time
from contextlib import contextmanager

from prometheus_client import (
    Counter,
    Histogram,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
)


# Create a custom registry for this application
metrics_registry = CollectorRegistry()


# ============================================================================
# Feed Request Metrics
# ============================================================================

feed_request_counter = Counter(
    "feed_requests_total",
    "Total number of feed aggregation requests",
    ["status"],  # status: success, error
    registry=metrics_registry,
)

feed_request_duration = Histogram(
    "feed_request_duration_seconds",
    "Feed aggregation duration in seconds",
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0, 30.0, 60.0],
    registry=metrics_registry,
)

# ============================================================================
# Source Fetch Metrics
# ============================================================================

source_fetch_counter = Counter(
    "source_fetch_total",
    "Total number of source fetches",
    ["source", "outcome"],  # outcome: success, failure
    registry=metrics_registry,
)

source_fetch_duration = Histogram(
    "source_fetch_duration_seconds",
    "Source fetch duration in seconds",
    ["source"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0, 30.0],
    registry=metrics_registry,
)

source_items_counter = Counter(
    "source_items_returned_total",
    "Total number of posts returned per source",
    ["source"],
    registry=metrics_registry,
)

# ============================================================================
# Resource Control Metrics
# ============================================================================

rate_limit_rejections_counter = Counter(
    "rate_limit_rejections_total",
    "Fetches skipped because the token bucket was empty",
    ["source"],
    registry=metrics_registry,
)

cache_lookup_counter = Counter(
    "cache_lookups_total",
    "Result cache lookups",
    ["source", "result"],  # result: hit, miss
    registry=metrics_registry,
)


# ============================================================================
# Helper Functions
# ============================================================================


@contextmanager
def track_fetch_duration(source: str):
    """
    Time a source fetch.

    Example:
        with track_fetch_duration("nostr"):
            await fetcher.collect(...)
    """
    start_time = time.time()
    try:
        yield
    finally:
        source_fetch_duration.labels(source=source).observe(time.time() - start_time)


def record_fetch_outcome(source: str, outcome: str, item_count: int = 0) -> None:
    """
    Record the outcome of one source fetch.

    Args:
        source: Source name
        outcome: success or failure
        item_count: Number of posts returned
    """
    source_fetch_counter.labels(source=source, outcome=outcome).inc()
    if item_count:
        source_items_counter.labels(source=source).inc(item_count)


def record_cache_lookup(source: str, hit: bool) -> None:
    """Record a result cache hit or miss."""
    cache_lookup_counter.labels(source=source, result="hit" if hit else "miss").inc()


def record_rate_limit_rejection(source: str) -> None:
    """Record a fetch skipped by the rate limiter."""
    rate_limit_rejections_counter.labels(source=source).inc()


def get_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format.

    Returns:
        Metrics in Prometheus exposition format
    """
    return generate_latest(metrics_registry)


def get_content_type() -> str:
    """Get Prometheus metrics content type."""
    return CONTENT_TYPE_LATEST
