"""
Source fetcher plugins, one per upstream network.
"""

from feed_agent.ingestion.plugins.bluesky import BlueskyFetcher
from feed_agent.ingestion.plugins.mastodon import MastodonFetcher
from feed_agent.ingestion.plugins.nostr import NostrFetcher

__all__ = [
    "BlueskyFetcher",
    "MastodonFetcher",
    "NostrFetcher",
]
