"""
Health endpoints for the service and its upstream sources.
"""

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends

from api import __version__
from api.dependencies import get_health_tracker
from api.schemas.common import HealthCheckResponse
from api.schemas.feed import SourceHealthResponse
from feed_agent.ingestion.health import SourceHealthTracker

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("", response_model=HealthCheckResponse, summary="Service health")
async def health_check(
    health: SourceHealthTracker = Depends(get_health_tracker),
) -> HealthCheckResponse:
    """
    Report overall status.

    The service is ``degraded`` while any source is unhealthy; it keeps
    serving because every source fails independently.
    """
    from api.main import app_state

    sources = {name: h.is_healthy for name, h in (await health.get_all_health()).items()}
    now = datetime.utcnow()
    uptime = (now - app_state.started_at).total_seconds() if app_state.started_at else 0.0

    return HealthCheckResponse(
        status="healthy" if all(sources.values()) else "degraded",
        version=__version__,
        timestamp=now.isoformat() + "Z",
        uptime_seconds=max(uptime, 0.0),
        sources=sources,
    )


@router.get(
    "/sources",
    response_model=List[SourceHealthResponse],
    summary="Per-source health",
)
async def source_health(
    health: SourceHealthTracker = Depends(get_health_tracker),
) -> List[SourceHealthResponse]:
    """Run statistics for every source that has been fetched at least once."""
    all_health = await health.get_all_health()
    return [
        SourceHealthResponse(**h.model_dump())
        for _, h in sorted(all_health.items())
    ]
