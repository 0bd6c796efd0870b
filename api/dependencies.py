"""
FastAPI dependency injection providers.

This module exposes the process-wide aggregator and its shared components
held in the application state.
"""

from fastapi import Depends, HTTPException, status

from feed_agent.aggregator import FeedAggregator
from feed_agent.ingestion.classifier import TopicClassifier
from feed_agent.ingestion.health import SourceHealthTracker


async def get_aggregator() -> FeedAggregator:
    """
    Get the feed aggregator from application state.

    Raises:
        HTTPException: If the aggregator is not initialized
    """
    from api.main import app_state

    if app_state.aggregator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Feed aggregator not initialized",
        )

    return app_state.aggregator


async def get_classifier(
    aggregator: FeedAggregator = Depends(get_aggregator),
) -> TopicClassifier:
    """Get the topic classifier shared by all fetchers."""
    return aggregator.classifier


async def get_health_tracker(
    aggregator: FeedAggregator = Depends(get_aggregator),
) -> SourceHealthTracker:
    """
    Get the source health tracker.

    Raises:
        HTTPException: If the aggregator runs without health tracking
    """
    if aggregator.health is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Source health tracking not enabled",
        )
    return aggregator.health
