"""
Prometheus metrics endpoint.
"""

from fastapi import APIRouter, Response

from feed_agent.observability.metrics import get_content_type, get_metrics

router = APIRouter(tags=["Metrics"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Expose metrics in Prometheus text format."""
    return Response(content=get_metrics(), media_type=get_content_type())
