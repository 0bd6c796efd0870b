"""
Feed endpoints: the aggregated per-source feed and the tab taxonomy.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from api.dependencies import get_aggregator, get_classifier
from api.schemas.common import ErrorResponse, FeedErrorResponse
from api.schemas.feed import FeedResponse, TabResponse
from feed_agent.aggregator import AggregationError, FeedAggregator
from feed_agent.ingestion.classifier import TopicClassifier

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Feed"])


@router.get(
    "/feed",
    response_model=FeedResponse,
    status_code=status.HTTP_200_OK,
    summary="Get the feed for a tab",
    description="Aggregate Bluesky, Nostr and Mastodon posts for one topic tab.",
    responses={
        422: {"model": ErrorResponse, "description": "Unknown tab"},
        500: {"model": FeedErrorResponse, "description": "Aggregation failed"},
    },
)
async def get_feed(
    active_tab: int = Query(0, alias="activeTab", description="Tab index"),
    preferred_languages: str = Query(
        "en-US", alias="preferredLanguages", description="Preferred language tag"
    ),
    aggregator: FeedAggregator = Depends(get_aggregator),
):
    """
    Get posts for a tab from every source.

    Each source list is independent; a source that fails contributes an
    empty list. An unknown tab is rejected with 422 by the app's
    ``InvalidTabError`` handler.

    Args:
        active_tab: Tab index
        preferred_languages: Language tag forwarded to Bluesky
        aggregator: Feed aggregator

    Returns:
        FeedResponse with blueskyFeed, nostrFeed and mastodonFeed
    """
    try:
        result = await aggregator.aggregate(active_tab, preferred_languages or "en-US")
    except AggregationError as e:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=FeedErrorResponse(details=e.detail).model_dump(),
        )

    return FeedResponse(
        blueskyFeed=result.bluesky,
        nostrFeed=result.nostr,
        mastodonFeed=result.mastodon,
    )


@router.get(
    "/tabs",
    response_model=List[TabResponse],
    summary="List topic tabs",
)
async def list_tabs(classifier: TopicClassifier = Depends(get_classifier)) -> List[TabResponse]:
    """List the topic tabs in index order."""
    return [
        TabResponse(index=tab.index, displayName=tab.display_name)
        for tab in classifier.tabs
    ]
