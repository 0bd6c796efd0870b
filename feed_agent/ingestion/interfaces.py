"""
Ingestion layer interface contracts.

This module defines Protocol classes for the resource controls that guard
the upstream networks: the token bucket in front of Bluesky and the result
cache in front of the Nostr relay pool.
"""

from abc import ABC, abstractmethod
from typing import Any, Hashable, Optional, Protocol


class RateLimiter(Protocol):
    """Interface for limiting calls to a protected upstream."""

    async def try_acquire(self) -> bool:
        """
        Take one token if available.

        Returns:
            True if the call may proceed, False if rate limited
        """
        ...

    async def get_remaining_tokens(self) -> int:
        """
        Get the number of tokens available right now.

        Returns:
            Tokens available after applying any pending refill
        """
        ...

    async def reset(self) -> None:
        """Refill the bucket to capacity."""
        ...


class ResultCache(Protocol):
    """Interface for caching fetch results with a time-to-live."""

    async def get(self, key: Hashable) -> Optional[Any]:
        """
        Get a cached value.

        Args:
            key: Cache key

        Returns:
            Cached value, or None on a miss or after expiry
        """
        ...

    async def set(self, key: Hashable, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """
        Store a value.

        Args:
            key: Cache key
            value: Value to cache
            ttl_seconds: Time to live (backend default if None)
        """
        ...

    async def clear(self) -> None:
        """Drop every cached entry."""
        ...


# ============================================================================
# Abstract Base Classes
# ============================================================================


class BaseRateLimiter(ABC):
    """Abstract base class for rate limiter implementations."""

    @abstractmethod
    async def try_acquire(self) -> bool:
        pass

    @abstractmethod
    async def get_remaining_tokens(self) -> int:
        pass

    @abstractmethod
    async def reset(self) -> None:
        pass


class BaseResultCache(ABC):
    """Abstract base class for result cache implementations."""

    @abstractmethod
    async def get(self, key: Hashable) -> Optional[Any]:
        pass

    @abstractmethod
    async def set(self, key: Hashable, value: Any, ttl_seconds: Optional[int] = None) -> None:
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass
