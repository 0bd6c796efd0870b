"""
Shared type definitions for the community feed aggregator.

This module contains the models passed between the classifier, the source
fetchers, the aggregator and the API layer. Field aliases match the JSON
shapes the presentation layer consumes, so models are dumped with
``by_alias=True`` when they leave the process.
"""

import re
from datetime import datetime
from enum import Enum
from re import Pattern
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


# ============================================================================
# Enums
# ============================================================================


class SourceType(str, Enum):
    """Upstream network a post was fetched from."""

    BLUESKY = "bluesky"  # AT Protocol
    NOSTR = "nostr"  # relay pub/sub
    MASTODON = "mastodon"  # federated REST


# ============================================================================
# Taxonomy
# ============================================================================


class TabDefinition(BaseModel):
    """A topic tab: a case-insensitive match pattern plus its Bluesky feed."""

    index: int = Field(..., ge=0)
    display_name: str
    match_pattern: Pattern[str]
    feed_uri: Optional[str] = None  # at:// feed generator reference

    class Config:
        frozen = True

    @field_validator("match_pattern", mode="before")
    @classmethod
    def _compile_pattern(cls, value: Any) -> Any:
        if isinstance(value, str):
            return re.compile(value, re.IGNORECASE)
        if isinstance(value, re.Pattern) and not value.flags & re.IGNORECASE:
            return re.compile(value.pattern, value.flags | re.IGNORECASE)
        return value


# ============================================================================
# Normalized posts
# ============================================================================


class BlueskyAuthor(BaseModel):
    """Author summary of a Bluesky post."""

    did: str
    handle: Optional[str] = None
    display_name: Optional[str] = Field(None, alias="displayName")
    avatar: Optional[str] = None

    class Config:
        frozen = True
        populate_by_name = True


class BlueskyPost(BaseModel):
    """A post from a Bluesky feed generator with its rendered markdown."""

    uri: str
    cid: Optional[str] = None
    author: BlueskyAuthor
    indexed_at: datetime = Field(..., alias="indexedAt")
    text: str = ""
    facets: List[Dict[str, Any]] = Field(default_factory=list)
    embed: Optional[Dict[str, Any]] = None
    langs: List[str] = Field(default_factory=list)
    markdown: str = ""

    class Config:
        frozen = True
        populate_by_name = True


class NostrEvent(BaseModel):
    """A kind-1 text note collected from the relay pool."""

    id: str
    pubkey: str
    content: str
    created_at: int
    tags: List[List[str]] = Field(default_factory=list)
    npub: str

    class Config:
        frozen = True


class MastodonAccount(BaseModel):
    """Account summary of a Mastodon status."""

    username: str
    display_name: Optional[str] = Field(None, alias="displayName")

    class Config:
        frozen = True
        populate_by_name = True


class MastodonPost(BaseModel):
    """A status returned by Mastodon search. ``content`` is HTML."""

    id: str
    content: str
    created_at: datetime = Field(..., alias="createdAt")
    account: MastodonAccount
    url: Optional[str] = None

    class Config:
        frozen = True
        populate_by_name = True


class FetchOptions(BaseModel):
    """Per-request options passed through to every fetcher."""

    preferred_language: str = "en-US"

    class Config:
        frozen = True


class FeedResult(BaseModel):
    """One aggregation: three independent per-source lists."""

    bluesky: List[BlueskyPost] = Field(default_factory=list, alias="blueskyFeed")
    nostr: List[NostrEvent] = Field(default_factory=list, alias="nostrFeed")
    mastodon: List[MastodonPost] = Field(default_factory=list, alias="mastodonFeed")

    class Config:
        frozen = True
        populate_by_name = True

    def counts(self) -> Dict[str, int]:
        return {
            SourceType.BLUESKY.value: len(self.bluesky),
            SourceType.NOSTR.value: len(self.nostr),
            SourceType.MASTODON.value: len(self.mastodon),
        }


# ============================================================================
# Fetcher bookkeeping
# ============================================================================


class SourceMetadata(BaseModel):
    """Static description of a source fetcher."""

    name: str
    source_type: SourceType
    description: str
    timeout_seconds: float = 30.0

    class Config:
        frozen = True


class SourceHealth(BaseModel):
    """Health status of a source fetcher."""

    name: str
    is_healthy: bool = True
    last_run_at: Optional[datetime] = None
    last_success_at: Optional[datetime] = None
    last_error: Optional[str] = None
    consecutive_failures: int = 0
    total_runs: int = 0
    success_rate: float = 1.0


class RateLimitState(BaseModel):
    """Point-in-time snapshot of a token bucket."""

    tokens: int
    capacity: int
    last_refill: float  # monotonic seconds
    refill_interval_seconds: float

    class Config:
        frozen = True
