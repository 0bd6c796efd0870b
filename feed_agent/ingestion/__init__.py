"""
Ingestion layer for the community feed aggregator.

This package provides the per-source fetchers and the resource controls
they share: topic classification, rate limiting, result caching and
health tracking.
"""

# Base classes
from feed_agent.ingestion.base import FetchError, SourceFetcher

# Interface contracts (Protocols)
from feed_agent.ingestion.interfaces import RateLimiter, ResultCache

# Concrete implementations
from feed_agent.ingestion.classifier import (
    InvalidTabError,
    TopicClassifier,
    regex_to_search_query,
)
from feed_agent.ingestion.rate_limiter import TokenBucketRateLimiter, create_rate_limiter
from feed_agent.ingestion.cache import (
    InMemoryResultCache,
    RedisResultCache,
    create_result_cache,
)
from feed_agent.ingestion.health import SourceHealthTracker
from feed_agent.ingestion.relay_pool import RelayPool, RelayPoolError

__all__ = [
    # Base classes
    "FetchError",
    "SourceFetcher",
    # Interface contracts
    "RateLimiter",
    "ResultCache",
    # Implementations
    "InvalidTabError",
    "TopicClassifier",
    "regex_to_search_query",
    "TokenBucketRateLimiter",
    "create_rate_limiter",
    "InMemoryResultCache",
    "RedisResultCache",
    "create_result_cache",
    "SourceHealthTracker",
    "RelayPool",
    "RelayPoolError",
]
