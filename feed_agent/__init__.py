"""
Community feed aggregator.

Aggregates topic-filtered posts from Bluesky, Nostr and Mastodon into one
feed, partitioned per source.
"""

__version__ = "1.0.0"

from feed_agent.aggregator import AggregationError, FeedAggregator, create_aggregator
from feed_agent.types import FeedResult

__all__ = [
    "AggregationError",
    "FeedAggregator",
    "FeedResult",
    "create_aggregator",
]
