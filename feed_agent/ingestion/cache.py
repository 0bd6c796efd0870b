"""
Result caching for expensive source fetches.

The Nostr relay fetch opens a multi-relay subscription and waits out a fixed
collection window every time, so its per-tab results are cached with a TTL.
Expiry is passive: an expired entry behaves as a miss and is replaced by the
next ``set``. Supports in-memory storage (default) and Redis for sharing one
cache between worker processes.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple, Type

from pydantic import BaseModel, TypeAdapter, ValidationError

from feed_agent.ingestion.interfaces import BaseResultCache

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 600


class InMemoryResultCache(BaseResultCache):
    """
    Process-local TTL cache.

    Entries are ``key -> (value, expires_at)``; every read and write holds an
    ``asyncio.Lock``.
    """

    def __init__(
        self,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            default_ttl: Time to live in seconds when ``set`` gets none
            clock: Monotonic time source in seconds
        """
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[Any, float]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: Hashable) -> Optional[Any]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            value, expires_at = entry
            if self._clock() >= expires_at:
                logger.debug(f"Cache entry expired: {key}")
                return None

            return value

    async def set(self, key: Hashable, value: Any, ttl_seconds: Optional[int] = None) -> None:
        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        async with self._lock:
            self._entries[key] = (value, self._clock() + ttl)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RedisResultCache(BaseResultCache):
    """
    Redis-backed TTL cache for multi-process deployments.

    Values are lists of pydantic models, stored as JSON and decoded back
    into ``item_model``. Redis errors fail open: a failed read is a miss and
    a failed write is logged and dropped.
    """

    def __init__(
        self,
        redis_client,
        item_model: Type[BaseModel],
        default_ttl: int = DEFAULT_TTL_SECONDS,
        key_prefix: str = "feedcache",
    ):
        """
        Initialize the Redis cache.

        Args:
            redis_client: Redis client instance (from redis.asyncio)
            item_model: Model every cached list element is decoded into
            default_ttl: Time to live in seconds when ``set`` gets none
            key_prefix: Prefix for Redis keys
        """
        self.redis = redis_client
        self.default_ttl = default_ttl
        self.key_prefix = key_prefix
        self._adapter = TypeAdapter(list[item_model])

    def _get_key(self, key: Hashable) -> str:
        """Get Redis key for a cache key such as ``(source, tab_index)``."""
        if isinstance(key, tuple):
            parts = [getattr(part, "value", part) for part in key]
            return ":".join([self.key_prefix, *map(str, parts)])
        return f"{self.key_prefix}:{key}"

    async def get(self, key: Hashable) -> Optional[Any]:
        redis_key = self._get_key(key)
        try:
            raw = await self.redis.get(redis_key)
        except Exception as e:
            logger.warning(f"Cache read error for {redis_key}: {e}")
            return None

        if raw is None:
            return None

        try:
            return self._adapter.validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding undecodable cache entry {redis_key}: {e}")
            return None

    async def set(self, key: Hashable, value: Any, ttl_seconds: Optional[int] = None) -> None:
        redis_key = self._get_key(key)
        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        try:
            payload = self._adapter.dump_json(value)
            await self.redis.set(redis_key, payload, ex=ttl)
        except Exception as e:
            logger.warning(f"Cache write error for {redis_key}: {e}")

    async def clear(self) -> None:
        try:
            keys = [k async for k in self.redis.scan_iter(match=f"{self.key_prefix}:*")]
            if keys:
                await self.redis.delete(*keys)
        except Exception as e:
            logger.warning(f"Cache clear error: {e}")


def create_result_cache(
    redis_client=None,
    item_model: Optional[Type[BaseModel]] = None,
    default_ttl: int = DEFAULT_TTL_SECONDS,
) -> BaseResultCache:
    """
    Create a result cache instance.

    If a Redis client is provided, creates a RedisResultCache shared between
    processes. Otherwise, creates an InMemoryResultCache.

    Args:
        redis_client: Optional Redis client instance
        item_model: Element model for decoding Redis entries
        default_ttl: Default time to live in seconds

    Returns:
        Result cache instance
    """
    if redis_client is not None:
        if item_model is None:
            raise ValueError("item_model is required for the Redis cache")
        return RedisResultCache(redis_client, item_model, default_ttl)
    return InMemoryResultCache(default_ttl)
