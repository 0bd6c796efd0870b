"""
Common API schemas used across endpoints.
"""

from typing import Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Detailed error information")
    code: str = Field(..., description="Error code")
    timestamp: str = Field(..., description="ISO 8601 timestamp")

    class Config:
        json_schema_extra = {
            "example": {
                "error": "Validation Error",
                "detail": "Tab index 9 out of range [0, 7)",
                "code": "VALIDATION_ERROR",
                "timestamp": "2024-01-15T10:30:00Z",
            }
        }


class FeedErrorResponse(BaseModel):
    """Error body returned when a feed aggregation fails as a whole."""

    error: str = Field("Error fetching feed", description="Error message")
    details: str = Field(..., description="Underlying failure")

    class Config:
        json_schema_extra = {
            "example": {
                "error": "Error fetching feed",
                "details": "Event loop is closed",
            }
        }


class HealthCheckResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="API version")
    timestamp: str = Field(..., description="ISO 8601 timestamp")
    uptime_seconds: float = Field(..., ge=0, description="Seconds since startup")
    sources: Dict[str, bool] = Field(..., description="Health of each upstream source")

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "version": "1.0.0",
                "timestamp": "2024-01-15T10:30:00Z",
                "uptime_seconds": 3600.0,
                "sources": {"bluesky": True, "nostr": True, "mastodon": False},
            }
        }
