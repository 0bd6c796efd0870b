"""
Feed aggregation across Bluesky, Nostr and Mastodon.

The aggregator owns one fetcher per source plus the process-wide resources
they share (classifier, rate limiter, result cache, health tracker) and runs
the three fetches concurrently for each request.
"""

import asyncio
import logging
import time
from typing import Optional

import aiohttp
import redis.asyncio as aioredis

from feed_agent.config import FeedSettings, load_settings
from feed_agent.ingestion.cache import create_result_cache
from feed_agent.ingestion.classifier import TopicClassifier
from feed_agent.ingestion.health import SourceHealthTracker
from feed_agent.ingestion.interfaces import ResultCache
from feed_agent.ingestion.plugins.bluesky import BlueskyFetcher
from feed_agent.ingestion.plugins.mastodon import MastodonFetcher
from feed_agent.ingestion.plugins.nostr import NostrFetcher
from feed_agent.ingestion.rate_limiter import create_rate_limiter
from feed_agent.observability.logging import log_context
from feed_agent.observability.metrics import feed_request_counter, feed_request_duration
from feed_agent.tabs import load_tabs
from feed_agent.types import FeedResult, FetchOptions, NostrEvent

logger = logging.getLogger(__name__)


class AggregationError(Exception):
    """Raised when the aggregation itself fails, as opposed to a single source."""

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class FeedAggregator:
    """
    Runs every source fetcher for a tab and combines the results.

    Fetchers reduce their own failures to empty lists, so one source going
    down never empties the others.
    """

    def __init__(
        self,
        classifier: TopicClassifier,
        bluesky: BlueskyFetcher,
        nostr: NostrFetcher,
        mastodon: MastodonFetcher,
        health: Optional[SourceHealthTracker] = None,
        redis_client=None,
    ):
        """
        Initialize the aggregator.

        Args:
            classifier: Classifier shared by the fetchers
            bluesky: Bluesky fetcher
            nostr: Nostr fetcher
            mastodon: Mastodon fetcher
            health: Health tracker shared by the fetchers
            redis_client: Redis client to close on shutdown, if owned
        """
        self.classifier = classifier
        self.bluesky = bluesky
        self.nostr = nostr
        self.mastodon = mastodon
        self.health = health
        self._redis_client = redis_client

    async def aggregate(self, tab_index: int, preferred_language: str = "en-US") -> FeedResult:
        """
        Fetch a tab from every source concurrently.

        Args:
            tab_index: Tab to aggregate
            preferred_language: Language tag forwarded to sources that use it

        Returns:
            FeedResult with one list per source

        Raises:
            InvalidTabError: If the tab index is out of range
            AggregationError: If the concurrent fetch fails as a whole
        """
        self.classifier.get_tab(tab_index)
        options = FetchOptions(preferred_language=preferred_language)
        started = time.time()

        with log_context(active_tab=tab_index, preferred_language=preferred_language):
            logger.info(f"Aggregating feed for tab {tab_index}")
            try:
                bluesky, nostr, mastodon = await asyncio.gather(
                    self.bluesky.fetch(tab_index, options),
                    self.nostr.fetch(tab_index, options),
                    self.mastodon.fetch(tab_index, options),
                )
            except Exception as e:
                feed_request_counter.labels(status="error").inc()
                logger.error(f"Feed aggregation failed for tab {tab_index}: {e}", exc_info=True)
                raise AggregationError(str(e)) from e

            result = FeedResult(bluesky=bluesky, nostr=nostr, mastodon=mastodon)
            feed_request_counter.labels(status="success").inc()
            feed_request_duration.observe(time.time() - started)
            logger.info(f"Aggregated feed for tab {tab_index}: {result.counts()}")

        return result

    async def close(self) -> None:
        """Release resources owned by the aggregator."""
        if self._redis_client is not None:
            await self._redis_client.aclose()
            self._redis_client = None


def create_aggregator(
    settings: Optional[FeedSettings] = None,
    session: Optional[aiohttp.ClientSession] = None,
    cache: Optional[ResultCache] = None,
) -> FeedAggregator:
    """
    Build an aggregator and its shared resources from settings.

    Args:
        settings: Settings to use; loaded from the environment if None
        session: Optional HTTP session shared by all fetchers
        cache: Optional Nostr result cache; built from settings if None

    Returns:
        FeedAggregator ready to serve requests
    """
    settings = settings or load_settings()

    classifier = TopicClassifier(load_tabs(settings.tabs_file))
    health = SourceHealthTracker()

    redis_client = None
    if cache is None:
        if settings.redis_url:
            redis_client = aioredis.from_url(settings.redis_url)
            logger.info("Using Redis result cache")
        cache = create_result_cache(
            redis_client=redis_client,
            item_model=NostrEvent,
            default_ttl=settings.nostr_cache_ttl_seconds,
        )

    rate_limiter = create_rate_limiter(
        capacity=settings.bluesky_rate_capacity,
        refill_interval_seconds=settings.bluesky_refill_interval_seconds,
    )

    bluesky = BlueskyFetcher(
        classifier,
        rate_limiter=rate_limiter,
        service_url=settings.bluesky_service,
        identifier=settings.bluesky_identifier,
        password=settings.bluesky_password,
        feed_limit=settings.bluesky_feed_limit,
        profile_base_url=settings.bluesky_profile_base_url,
        health=health,
        session=session,
        timeout_seconds=settings.request_timeout_seconds,
    )
    nostr = NostrFetcher(
        classifier,
        relays=settings.nostr_relays,
        cache=cache,
        lookback_days=settings.nostr_lookback_days,
        collection_window_seconds=settings.nostr_collection_window_seconds,
        cache_ttl_seconds=settings.nostr_cache_ttl_seconds,
        health=health,
        session=session,
    )
    mastodon = MastodonFetcher(
        classifier,
        base_url=settings.mastodon_base_url,
        access_token=settings.mastodon_access_token,
        page_size=settings.mastodon_page_size,
        max_pages=settings.mastodon_max_pages,
        health=health,
        session=session,
        timeout_seconds=settings.request_timeout_seconds,
    )

    logger.info(f"Feed aggregator ready with {classifier.tab_count} tabs")
    return FeedAggregator(
        classifier,
        bluesky=bluesky,
        nostr=nostr,
        mastodon=mastodon,
        health=health,
        redis_client=redis_client,
    )
