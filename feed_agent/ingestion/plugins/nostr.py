"""
Nostr Relay Fetcher Plugin.

Subscribes to recent kind-1 text notes across a pool of public relays,
keeps the ones matching the tab, and stops listening after a fixed
collection window. Relays never signal "done" for a live subscription, so
the window is what bounds the call; results are cached per tab.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import aiohttp

from feed_agent.ingestion.base import SourceFetcher
from feed_agent.ingestion.cache import InMemoryResultCache
from feed_agent.ingestion.classifier import TopicClassifier
from feed_agent.ingestion.health import SourceHealthTracker
from feed_agent.ingestion.interfaces import ResultCache
from feed_agent.ingestion.relay_pool import RelayPool
from feed_agent.observability.metrics import record_cache_lookup
from feed_agent.processing.normalize import nostr_event_from_wire
from feed_agent.types import FetchOptions, NostrEvent, SourceMetadata, SourceType

logger = logging.getLogger(__name__)

TEXT_NOTE_KIND = 1
SECONDS_PER_DAY = 86400


class NostrFetcher(SourceFetcher[NostrEvent]):
    """Fetcher for Nostr relays with a per-tab result cache."""

    metadata = SourceMetadata(
        name="nostr",
        source_type=SourceType.NOSTR,
        description="Recent text notes from public Nostr relays",
        timeout_seconds=30,
    )

    def __init__(
        self,
        classifier: TopicClassifier,
        relays: List[str],
        cache: Optional[ResultCache] = None,
        lookback_days: int = 14,
        collection_window_seconds: float = 10.0,
        cache_ttl_seconds: Optional[int] = None,
        health: Optional[SourceHealthTracker] = None,
        session: Optional[aiohttp.ClientSession] = None,
        pool_factory: Optional[Callable[..., RelayPool]] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize Nostr fetcher.

        Args:
            classifier: Shared topic classifier
            relays: Relay WebSocket URLs
            cache: Result cache keyed by ``("nostr", tab_index)``
            lookback_days: How far back the ``since`` filter reaches
            collection_window_seconds: How long to listen before cancelling
            cache_ttl_seconds: TTL for cached results; cache default if None
            health: Optional shared health tracker
            session: Optional shared HTTP session for the relay sockets
            pool_factory: Builds the relay pool; ``RelayPool`` by default
            clock: Wall clock in unix seconds, used for ``since``
        """
        super().__init__(classifier, health=health, session=session)
        self.relays = list(relays)
        self.cache = cache or InMemoryResultCache()
        self.lookback_days = lookback_days
        self.collection_window_seconds = collection_window_seconds
        self.cache_ttl_seconds = cache_ttl_seconds
        self._pool_factory = pool_factory or RelayPool
        self._clock = clock

    def _cache_key(self, tab_index: int):
        return (self.name, tab_index)

    def build_filter(self) -> Dict[str, Any]:
        """NIP-01 filter for recent text notes."""
        since = int(self._clock()) - self.lookback_days * SECONDS_PER_DAY
        return {"kinds": [TEXT_NOTE_KIND], "since": since}

    async def collect(self, tab_index: int, options: FetchOptions) -> List[NostrEvent]:
        """
        Collect matching notes, from the cache when possible.

        Raises:
            RelayPoolError: If no relay could be reached
        """
        key = self._cache_key(tab_index)
        cached = await self.cache.get(key)
        record_cache_lookup(self.name, cached is not None)
        if cached is not None:
            logger.debug(f"Serving {len(cached)} cached Nostr events for tab {tab_index}")
            return cached

        matched: List[Dict[str, Any]] = []

        def on_event(event: Dict[str, Any]) -> None:
            if self.classifier.matches(tab_index, event["content"]):
                matched.append(event)

        pool = self._pool_factory(self.relays, session=self.session)
        task = asyncio.create_task(pool.subscribe(self.build_filter(), on_event))
        try:
            done, _ = await asyncio.wait({task}, timeout=self.collection_window_seconds)
            if task in done:
                # Every relay closed early, or none could be reached
                task.result()
        finally:
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
            await pool.close()

        events = []
        for event in matched:
            try:
                events.append(nostr_event_from_wire(event))
            except (KeyError, ValueError) as e:
                logger.debug(f"Dropping malformed Nostr event {event.get('id')}: {e}")

        await self.cache.set(key, events, ttl_seconds=self.cache_ttl_seconds)
        return events
