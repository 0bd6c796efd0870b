"""
Observability module for logging and metrics.
"""

from feed_agent.observability.metrics import (
    metrics_registry,
    feed_request_counter,
    feed_request_duration,
    source_fetch_counter,
    get_metrics,
    get_content_type,
)

from feed_agent.observability.logging import (
    setup_logging,
    log_context,
    log_error,
)

__all__ = [
    # Metrics
    "metrics_registry",
    "feed_request_counter",
    "feed_request_duration",
    "source_fetch_counter",
    "get_metrics",
    "get_content_type",
    # Logging
    "setup_logging",
    "log_context",
    "log_error",
]
