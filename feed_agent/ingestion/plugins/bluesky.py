"""
Bluesky Feed Fetcher Plugin.

Reads a tab's curated feed generator over the AT Protocol XRPC API. Each
call authenticates with an app password, so calls are throttled by a token
bucket shared across the process. The feed generator is trusted to curate,
so posts are not re-classified.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from feed_agent.ingestion.base import FetchError, SourceFetcher
from feed_agent.ingestion.classifier import TopicClassifier
from feed_agent.ingestion.health import SourceHealthTracker
from feed_agent.ingestion.interfaces import RateLimiter
from feed_agent.ingestion.rate_limiter import TokenBucketRateLimiter
from feed_agent.observability.metrics import record_rate_limit_rejection
from feed_agent.processing.normalize import bluesky_post_from_feed_item
from feed_agent.processing.richtext import (
    detect_facets,
    render_markdown,
    resolve_mentions,
    segment_text,
)
from feed_agent.types import BlueskyPost, FetchOptions, SourceMetadata, SourceType

logger = logging.getLogger(__name__)


class BlueskyFetcher(SourceFetcher[BlueskyPost]):
    """
    Fetcher for Bluesky feed generators.

    Per call:
    - one rate limiter token, taken before any network I/O
    - ``com.atproto.server.createSession`` for an access token
    - ``app.bsky.feed.getFeed`` for the tab's feed URI
    - rich text rendered to markdown per post
    """

    metadata = SourceMetadata(
        name="bluesky",
        source_type=SourceType.BLUESKY,
        description="Curated posts from Bluesky feed generators",
        timeout_seconds=30,
    )

    def __init__(
        self,
        classifier: TopicClassifier,
        rate_limiter: Optional[RateLimiter] = None,
        service_url: str = "https://bsky.social",
        identifier: Optional[str] = None,
        password: Optional[str] = None,
        feed_limit: int = 50,
        profile_base_url: str = "https://my-bsky-app.com/user",
        health: Optional[SourceHealthTracker] = None,
        session: Optional[aiohttp.ClientSession] = None,
        timeout_seconds: Optional[float] = None,
    ):
        """
        Initialize Bluesky fetcher.

        Args:
            classifier: Shared topic classifier (provides feed URIs)
            rate_limiter: Token bucket; defaults to 5 tokens per 60 s
            service_url: PDS / entryway base URL
            identifier: Account handle or email
            password: App password
            feed_limit: Posts requested per feed (max 100)
            profile_base_url: Base URL mentions link to, followed by ``/<did>``
            health: Optional shared health tracker
            session: Optional shared HTTP session
            timeout_seconds: Per-call timeout override
        """
        super().__init__(classifier, health=health, session=session, timeout_seconds=timeout_seconds)
        self.rate_limiter = rate_limiter or TokenBucketRateLimiter()
        self._service_url = service_url.rstrip("/")
        self._identifier = identifier
        self._password = password
        self._feed_limit = feed_limit
        self._profile_base_url = profile_base_url

        if not (identifier and password):
            logger.warning("Bluesky credentials not provided, fetches will return no posts")

    async def collect(self, tab_index: int, options: FetchOptions) -> List[BlueskyPost]:
        """
        Collect the tab's feed generator posts.

        Returns:
            Posts in feed order, or an empty list when rate limited
        """
        if not await self.rate_limiter.try_acquire():
            logger.warning(f"Bluesky rate limit reached, skipping fetch for tab {tab_index}")
            record_rate_limit_rejection(self.name)
            return []

        tab = self.classifier.get_tab(tab_index)
        if not tab.feed_uri:
            raise FetchError(f"Tab '{tab.display_name}' has no Bluesky feed configured")
        if not (self._identifier and self._password):
            raise FetchError("Bluesky credentials are not configured")

        async with self.http_session() as session:
            access_jwt = await self._create_session(session)
            headers = {
                "Authorization": f"Bearer {access_jwt}",
                "Accept-Language": options.preferred_language,
            }

            data = await self._xrpc_get(
                session,
                "app.bsky.feed.getFeed",
                params={"feed": tab.feed_uri, "limit": self._feed_limit},
                headers=headers,
            )

            items = data.get("feed", [])
            rendered = await asyncio.gather(
                *(self._render(session, headers, item) for item in items)
            )
            posts = [
                bluesky_post_from_feed_item(item, markdown)
                for item, markdown in zip(items, rendered)
            ]

        return posts

    async def _create_session(self, session: aiohttp.ClientSession) -> str:
        """Log in and return the access JWT."""
        url = f"{self._service_url}/xrpc/com.atproto.server.createSession"
        payload = {"identifier": self._identifier, "password": self._password}

        try:
            async with session.post(url, json=payload) as response:
                if response.status == 401:
                    raise FetchError("Bluesky authentication failed - check identifier/password")
                response.raise_for_status()
                data = await response.json()
        except aiohttp.ClientResponseError as e:
            raise FetchError(f"Bluesky createSession failed: HTTP {e.status}") from e

        access_jwt = data.get("accessJwt")
        if not access_jwt:
            raise FetchError("Bluesky createSession returned no access token")
        return access_jwt

    async def _xrpc_get(
        self,
        session: aiohttp.ClientSession,
        method: str,
        params: Dict[str, Any],
        headers: Dict[str, str],
    ) -> Dict[str, Any]:
        url = f"{self._service_url}/xrpc/{method}"
        try:
            async with session.get(url, params=params, headers=headers) as response:
                response.raise_for_status()
                return await response.json()
        except aiohttp.ClientResponseError as e:
            raise FetchError(f"Bluesky {method} failed: HTTP {e.status}") from e

    async def _render(
        self,
        session: aiohttp.ClientSession,
        headers: Dict[str, str],
        item: Dict[str, Any],
    ) -> str:
        """Render a feed item's text and facets as markdown."""
        record = item.get("post", {}).get("record", {})
        text = record.get("text", "")
        facets = record.get("facets")

        if not facets:

            async def resolve_handle(handle: str) -> Optional[str]:
                return await self._resolve_handle(session, headers, handle)

            facets = await resolve_mentions(detect_facets(text), resolve_handle)

        return render_markdown(segment_text(text, facets), self._profile_base_url)

    async def _resolve_handle(
        self,
        session: aiohttp.ClientSession,
        headers: Dict[str, str],
        handle: str,
    ) -> Optional[str]:
        """Resolve a handle to a DID; unknown handles resolve to None."""
        try:
            data = await self._xrpc_get(
                session,
                "com.atproto.identity.resolveHandle",
                params={"handle": handle},
                headers=headers,
            )
        except FetchError as e:
            logger.debug(f"Could not resolve Bluesky handle @{handle}: {e}")
            return None
        return data.get("did")
