"""
API schemas for request and response models.

This module defines Pydantic models used for API serialization.
"""

from api.schemas.common import ErrorResponse, FeedErrorResponse, HealthCheckResponse
from api.schemas.feed import FeedResponse, SourceHealthResponse, TabResponse

__all__ = [
    # Common
    "ErrorResponse",
    "FeedErrorResponse",
    "HealthCheckResponse",
    # Feed
    "FeedResponse",
    "SourceHealthResponse",
    "TabResponse",
]
