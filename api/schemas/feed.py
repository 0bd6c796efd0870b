"""
Feed API schemas.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from feed_agent.types import BlueskyPost, MastodonPost, NostrEvent


class FeedResponse(BaseModel):
    """Posts for one tab, one list per source."""

    blueskyFeed: List[BlueskyPost] = Field(default_factory=list)
    nostrFeed: List[NostrEvent] = Field(default_factory=list)
    mastodonFeed: List[MastodonPost] = Field(default_factory=list)


class TabResponse(BaseModel):
    """A topic tab as shown to the presentation layer."""

    index: int = Field(..., ge=0, description="Value for the activeTab parameter")
    displayName: str = Field(..., description="Tab label")


class SourceHealthResponse(BaseModel):
    """Health of one upstream source."""

    name: str
    is_healthy: bool
    last_run_at: Optional[datetime] = None
    last_success_at: Optional[datetime] = None
    last_error: Optional[str] = None
    consecutive_failures: int = 0
    total_runs: int = 0
    success_rate: float = Field(1.0, ge=0.0, le=1.0)
