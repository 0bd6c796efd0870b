"""
Base class for source fetchers.

Every upstream network gets one fetcher implementing ``collect``. The public
``fetch`` wraps it into a total function: whatever goes wrong upstream, the
caller gets a list (possibly empty) and never an exception.
"""

import logging
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Generic, List, Optional, TypeVar

import aiohttp

from feed_agent.ingestion.classifier import TopicClassifier
from feed_agent.ingestion.health import SourceHealthTracker
from feed_agent.observability.logging import log_error
from feed_agent.observability.metrics import record_fetch_outcome, track_fetch_duration
from feed_agent.types import FetchOptions, SourceMetadata

logger = logging.getLogger(__name__)

PostT = TypeVar("PostT")


class FetchError(Exception):
    """Exception raised when an upstream fetch fails."""

    pass


class SourceFetcher(ABC, Generic[PostT]):
    """
    Abstract base class for source fetchers.

    Subclasses define ``metadata`` and implement ``collect``. Callers use
    ``fetch``, which never raises.
    """

    # Fetcher metadata (must be overridden by subclasses)
    metadata: SourceMetadata

    def __init__(
        self,
        classifier: TopicClassifier,
        health: Optional[SourceHealthTracker] = None,
        session: Optional[aiohttp.ClientSession] = None,
        timeout_seconds: Optional[float] = None,
    ):
        """
        Initialize the fetcher.

        Args:
            classifier: Shared topic classifier
            health: Optional health tracker shared by all fetchers
            session: Optional shared HTTP session; without one each call
                     opens and closes its own
            timeout_seconds: Overrides the per-call timeout from metadata
        """
        if not hasattr(self, "metadata"):
            raise NotImplementedError(
                f"{self.__class__.__name__} must define 'metadata' attribute"
            )
        self.classifier = classifier
        self.health = health
        self.session = session
        if timeout_seconds is not None:
            self.metadata = self.metadata.model_copy(update={"timeout_seconds": timeout_seconds})

    @property
    def name(self) -> str:
        return self.metadata.name

    @asynccontextmanager
    async def http_session(self) -> AsyncIterator[aiohttp.ClientSession]:
        """Yield the shared session, or a per-call one bounded by the fetcher timeout."""
        if self.session is not None:
            yield self.session
            return

        timeout = aiohttp.ClientTimeout(total=self.metadata.timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            yield session

    @abstractmethod
    async def collect(self, tab_index: int, options: FetchOptions) -> List[PostT]:
        """
        Collect posts for a tab from the upstream.

        Returns:
            List of normalized posts

        Raises:
            FetchError: If the upstream fails
        """
        pass

    async def fetch(
        self, tab_index: int, options: Optional[FetchOptions] = None
    ) -> List[PostT]:
        """
        Fetch posts for a tab, reducing any failure to an empty list.

        Args:
            tab_index: Tab to fetch
            options: Per-request options

        Returns:
            List of normalized posts, empty on failure
        """
        options = options or FetchOptions()
        started = time.monotonic()

        try:
            self.classifier.get_tab(tab_index)
            with track_fetch_duration(self.name):
                items = await self.collect(tab_index, options)
        except Exception as e:
            log_error(
                logger,
                f"Error fetching {self.name} posts for tab {tab_index}: {e}",
                e,
                source=self.name,
                tab=tab_index,
            )
            record_fetch_outcome(self.name, "failure")
            if self.health:
                await self.health.record_failure(self.name, str(e))
            await self.on_error(e)
            return []

        record_fetch_outcome(self.name, "success", len(items))
        if self.health:
            await self.health.record_success(self.name)
        await self.on_success(items)

        logger.info(
            f"Fetched {len(items)} {self.name} posts for tab {tab_index} "
            f"in {time.monotonic() - started:.2f}s"
        )
        return items

    async def on_success(self, items: List[PostT]) -> None:
        """
        Hook called after a successful fetch.

        Args:
            items: The posts that were fetched
        """
        pass

    async def on_error(self, error: Exception) -> None:
        """
        Hook called when a fetch fails.

        Args:
            error: The exception that occurred
        """
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} ({self.metadata.name})>"
