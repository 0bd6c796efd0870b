"""
Mastodon Search Fetcher Plugin.

Runs the tab's pattern as a full-text status search and pages backwards with
``max_id``. Search matches words loosely, so every page is re-checked
against the tab pattern before it is kept.
"""

import logging
from typing import Any, Dict, List, Optional

import aiohttp

from feed_agent.ingestion.base import FetchError, SourceFetcher
from feed_agent.ingestion.classifier import TopicClassifier
from feed_agent.ingestion.health import SourceHealthTracker
from feed_agent.processing.normalize import html_to_text, mastodon_post_from_status
from feed_agent.types import FetchOptions, MastodonPost, SourceMetadata, SourceType

logger = logging.getLogger(__name__)


class MastodonFetcher(SourceFetcher[MastodonPost]):
    """
    Fetcher for Mastodon status search.

    At most ``max_pages`` requests of ``page_size`` statuses per call. An
    HTTP error on any page fails the whole call.
    """

    metadata = SourceMetadata(
        name="mastodon",
        source_type=SourceType.MASTODON,
        description="Statuses from Mastodon full-text search",
        timeout_seconds=30,
    )

    def __init__(
        self,
        classifier: TopicClassifier,
        base_url: str = "https://mastodon.social",
        access_token: Optional[str] = None,
        page_size: int = 40,
        max_pages: int = 10,
        health: Optional[SourceHealthTracker] = None,
        session: Optional[aiohttp.ClientSession] = None,
        timeout_seconds: Optional[float] = None,
    ):
        """
        Initialize Mastodon fetcher.

        Args:
            classifier: Shared topic classifier
            base_url: Instance base URL
            access_token: Bearer token (required by most instances for search)
            page_size: Statuses per page (Mastodon caps this at 40)
            max_pages: Page budget per call
            health: Optional shared health tracker
            session: Optional shared HTTP session
            timeout_seconds: Per-call timeout override
        """
        if max_pages < 1:
            raise ValueError(f"max_pages must be at least 1, got {max_pages}")

        super().__init__(classifier, health=health, session=session, timeout_seconds=timeout_seconds)
        self._base_url = base_url.rstrip("/")
        self._access_token = access_token
        self.page_size = min(page_size, 40)
        self.max_pages = max_pages

        if not access_token:
            logger.warning("Mastodon access token not provided, fetches will return no posts")

    async def collect(self, tab_index: int, options: FetchOptions) -> List[MastodonPost]:
        if not self._access_token:
            raise FetchError("Mastodon access token is not configured")

        query = self.classifier.search_query(tab_index)
        headers = {"Authorization": f"Bearer {self._access_token}"}

        posts: List[MastodonPost] = []
        max_id: Optional[str] = None
        pages = 0

        async with self.http_session() as session:
            while pages < self.max_pages:
                statuses = await self._search_page(session, headers, query, max_id)
                pages += 1
                if not statuses:
                    break

                for status in statuses:
                    if self.classifier.matches(tab_index, html_to_text(status.get("content", ""))):
                        posts.append(mastodon_post_from_status(status))

                if len(statuses) < self.page_size:
                    break
                max_id = str(statuses[-1]["id"])

        logger.debug(f"Mastodon search '{query}' kept {len(posts)} statuses over {pages} pages")
        return posts

    async def _search_page(
        self,
        session: aiohttp.ClientSession,
        headers: Dict[str, str],
        query: str,
        max_id: Optional[str],
    ) -> List[Dict[str, Any]]:
        params = {"q": query, "type": "statuses", "limit": self.page_size}
        if max_id:
            params["max_id"] = max_id

        url = f"{self._base_url}/api/v2/search"
        try:
            async with session.get(url, params=params, headers=headers) as response:
                response.raise_for_status()
                data = await response.json()
        except aiohttp.ClientResponseError as e:
            raise FetchError(f"Mastodon search failed: HTTP {e.status}") from e

        return data.get("statuses", [])
