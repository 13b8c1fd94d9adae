"""
LogoForge Backend — Health Check Route
========================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Checks the database and the media host and returns an aggregate status.
Who:   Called by Docker health checks, load balancers and monitoring.

Status levels:
    - healthy:   database and media host operational (HTTP 200)
    - degraded:  media host down or its circuit open (HTTP 200); editing
                 works, uploads and PNG exports do not
    - unhealthy: database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Response, status
from sqlalchemy import text

from logoforge import __version__
from logoforge.database import engine
from logoforge.schemas.common import HealthResponse
from logoforge.services import media

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

# Track when the service started for uptime reporting
_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(response: Response) -> HealthResponse:
    """
    Check details:
        Database:   SELECT 1 over a pooled connection
        Media host: circuit breaker state first, then the backend's own probe
    """
    db_status = "connected"
    media_status = "available"
    overall = "healthy"

    # ── Check Database ────────────────────────────────────────────────────
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    # ── Check Media Host ──────────────────────────────────────────────────
    service = media.media_service
    breaker = getattr(service, "circuit_breaker", None)
    if breaker is not None and breaker.state == "open":
        media_status = "circuit_open"
    elif not await service.health_check():
        media_status = "unavailable"
    if media_status != "available" and overall == "healthy":
        overall = "degraded"

    if overall == "unhealthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        media=media_status,
        media_backend=service.backend_name,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
