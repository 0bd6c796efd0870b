"""
Health tracking for source fetchers.

Fetchers never raise to the aggregator, so an upstream that keeps failing
would otherwise only show up as an empty list. This module keeps per-source
success/failure bookkeeping that the API exposes for monitoring.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict

from feed_agent.types import SourceHealth

logger = logging.getLogger(__name__)


class SourceHealthTracker:
    """
    Tracks run outcomes per source.

    A source is reported unhealthy once it reaches ``failure_threshold``
    consecutive failures; one success makes it healthy again.
    """

    def __init__(self, failure_threshold: int = 3):
        """
        Initialize the health tracker.

        Args:
            failure_threshold: Consecutive failures before marking unhealthy
        """
        self.failure_threshold = failure_threshold
        self._health: Dict[str, SourceHealth] = {}
        self._successes: Dict[str, int] = {}
        self._lock = asyncio.Lock()

    def _get_or_create(self, name: str) -> SourceHealth:
        if name not in self._health:
            self._health[name] = SourceHealth(name=name)
            self._successes[name] = 0
        return self._health[name]

    async def record_success(self, name: str) -> None:
        """
        Record a successful fetch.

        Args:
            name: Source name
        """
        async with self._lock:
            health = self._get_or_create(name)
            now = datetime.utcnow()

            self._successes[name] += 1
            health.total_runs += 1
            health.last_run_at = now
            health.last_success_at = now
            health.consecutive_failures = 0
            health.success_rate = self._successes[name] / health.total_runs
            health.is_healthy = True

    async def record_failure(self, name: str, error: str) -> None:
        """
        Record a failed fetch.

        Args:
            name: Source name
            error: Error message
        """
        async with self._lock:
            health = self._get_or_create(name)

            health.total_runs += 1
            health.last_run_at = datetime.utcnow()
            health.last_error = error
            health.consecutive_failures += 1
            health.success_rate = self._successes[name] / health.total_runs
            health.is_healthy = health.consecutive_failures < self.failure_threshold

            if not health.is_healthy:
                logger.warning(
                    f"Source {name} marked unhealthy after "
                    f"{health.consecutive_failures} consecutive failures"
                )

    async def get_health(self, name: str) -> SourceHealth:
        async with self._lock:
            return self._get_or_create(name).model_copy()

    async def get_all_health(self) -> Dict[str, SourceHealth]:
        async with self._lock:
            return {name: h.model_copy() for name, h in self._health.items()}
