"""
Token bucket rate limiting for the Bluesky upstream.

The bucket holds up to ``capacity`` tokens and earns one token per
``refill_interval_seconds``. Refills are applied lazily on each call: the
number of whole intervals elapsed since the last refill is added (capped at
capacity) and the refill baseline then moves to *now*, not to the nearest
interval boundary. Callers that fail to acquire skip the protected call
instead of waiting.
"""

import asyncio
import logging
import time
from typing import Callable

from feed_agent.ingestion.interfaces import BaseRateLimiter
from feed_agent.types import RateLimitState

logger = logging.getLogger(__name__)


class TokenBucketRateLimiter(BaseRateLimiter):
    """
    In-memory token bucket shared by every request in the process.

    All reads and writes of the counter happen under an ``asyncio.Lock`` so
    two overlapping acquires can never both apply the same refill.
    """

    def __init__(
        self,
        capacity: int = 5,
        refill_interval_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the rate limiter.

        Args:
            capacity: Maximum tokens; the bucket starts full
            refill_interval_seconds: Seconds needed to earn one token
            clock: Monotonic time source in seconds
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if refill_interval_seconds <= 0:
            raise ValueError("refill_interval_seconds must be positive")

        self.capacity = capacity
        self.refill_interval_seconds = refill_interval_seconds
        self._clock = clock

        self._tokens = capacity
        self._last_refill = clock()

        # Lock for serialized access to the counter
        self._lock = asyncio.Lock()

        logger.info(
            f"Token bucket initialized: capacity {capacity}, "
            f"one token per {refill_interval_seconds}s"
        )

    def _refill(self) -> None:
        """Apply earned tokens. Caller must hold the lock."""
        now = self._clock()
        earned = int((now - self._last_refill) // self.refill_interval_seconds)
        if earned >= 1:
            self._tokens = min(self.capacity, self._tokens + earned)
            self._last_refill = now

    async def try_acquire(self) -> bool:
        """
        Take one token if available.

        Returns:
            True if a token was taken, False if the bucket is empty
        """
        async with self._lock:
            self._refill()

            if self._tokens > 0:
                self._tokens -= 1
                logger.debug(f"Token acquired, {self._tokens} remaining")
                return True

            return False

    async def get_remaining_tokens(self) -> int:
        async with self._lock:
            self._refill()
            return self._tokens

    async def reset(self) -> None:
        async with self._lock:
            self._tokens = self.capacity
            self._last_refill = self._clock()
            logger.info("Token bucket reset to capacity")

    @property
    def state(self) -> RateLimitState:
        """Snapshot of the bucket without applying pending refills."""
        return RateLimitState(
            tokens=self._tokens,
            capacity=self.capacity,
            last_refill=self._last_refill,
            refill_interval_seconds=self.refill_interval_seconds,
        )


def create_rate_limiter(
    capacity: int = 5,
    refill_interval_seconds: float = 60.0,
) -> TokenBucketRateLimiter:
    """
    Create the process-wide Bluesky rate limiter.

    Args:
        capacity: Maximum tokens
        refill_interval_seconds: Seconds per earned token

    Returns:
        Rate limiter instance
    """
    return TokenBucketRateLimiter(capacity, refill_interval_seconds)
