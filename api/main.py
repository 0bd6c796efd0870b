"""
FastAPI main application for the community feed API.

This module initializes the FastAPI app, configures middleware, error handlers,
and includes all API routers.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api import __version__
from api.routers import feed, health, metrics
from api.schemas.common import ErrorResponse
from feed_agent.aggregator import FeedAggregator, create_aggregator
from feed_agent.config import load_settings
from feed_agent.ingestion.classifier import InvalidTabError
from feed_agent.observability.logging import setup_logging

logger = logging.getLogger(__name__)


# Application state
class AppState:
    """Application state container."""

    def __init__(self):
        self.aggregator: Optional[FeedAggregator] = None
        self.started_at: Optional[datetime] = None


app_state = AppState()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager for startup and shutdown events.

    Builds the aggregator and the resources it shares across requests
    (rate limiter, result cache, health tracker) and releases them on exit.
    An aggregator already placed in ``app_state`` is kept as is.
    """
    settings = load_settings()
    setup_logging(
        level=settings.log_level,
        log_file=settings.log_file,
        json_format=settings.log_json,
    )

    # Startup
    logger.info("🚀 Starting community feed API...")
    app_state.started_at = datetime.utcnow()

    owns_aggregator = app_state.aggregator is None
    if owns_aggregator:
        app_state.aggregator = create_aggregator(settings)
    logger.info(f"✅ Feed aggregator ready ({app_state.aggregator.classifier.tab_count} tabs)")

    yield

    # Shutdown
    logger.info("🛑 Shutting down community feed API...")
    if owns_aggregator and app_state.aggregator is not None:
        try:
            await app_state.aggregator.close()
        except Exception as e:
            logger.error(f"Error closing feed aggregator: {e}")
        app_state.aggregator = None

    logger.info("✅ API shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Community Feed API",
    description="""
    ## Community Feed Aggregator

    Collects topic-filtered posts from Bluesky, Nostr relays and Mastodon and
    returns them as one feed with a list per source.

    ### Features

    - **Topic tabs**: Government, economics, science, film, podcast and music sources
    - **Bluesky**: Curated feed generators, rate limited per process
    - **Nostr**: Recent notes across public relays, cached per tab
    - **Mastodon**: Paginated full-text status search
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)


# CORS middleware configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=load_settings().frontend_url.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers

def _error_response(status_code: int, error: str, detail: str, code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            detail=detail,
            code=code,
            timestamp=datetime.utcnow().isoformat() + "Z",
        ).model_dump(),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions with consistent error response format."""
    return _error_response(
        exc.status_code, str(exc.detail), str(exc.detail), f"HTTP_{exc.status_code}"
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    return _error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation Error", str(exc), "VALIDATION_ERROR"
    )


@app.exception_handler(InvalidTabError)
async def invalid_tab_handler(request: Request, exc: InvalidTabError):
    """Handle requests for a tab that does not exist."""
    return _error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY, "Invalid tab", str(exc), "VALIDATION_ERROR"
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        "An unexpected error occurred",
        "INTERNAL_ERROR",
    )


# Root endpoint
@app.get("/", tags=["Root"])
async def root() -> Dict[str, Any]:
    """
    API root endpoint providing basic information.

    Returns information about the API including version, status, and available endpoints.
    """
    return {
        "name": "Community Feed API",
        "version": __version__,
        "status": "operational",
        "docs": "/docs",
        "endpoints": {
            "feed": "/api/feed",
            "tabs": "/api/tabs",
            "health": "/api/health",
            "metrics": "/metrics",
        },
    }


# Include routers
app.include_router(feed.router, prefix="/api")
app.include_router(health.router, prefix="/api")
app.include_router(metrics.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=load_settings().port,
        log_level="info",
    )
