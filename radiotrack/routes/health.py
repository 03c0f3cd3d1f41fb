"""
RadioTrack Backend — Health Check Route
=========================================

What:  Health check endpoint for monitoring and load balancer probes.
Why:   A container orchestrator or load balancer needs a cheap way to tell
       whether this instance can serve patient data.
How:   Runs SELECT 1 against the application's database and reports which
       notification transport is active.
Who:   Docker health checks, load balancers, uptime monitors.
When:  Periodically; never written to the access log.

The notification transport is reported but not probed: SMS and email
failures never block a request, so they do not make the service unhealthy.

Status levels:
    - healthy:   database reachable (HTTP 200)
    - unhealthy: database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from radiotrack import __version__
from radiotrack.schemas.patient import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(request: Request):
    db_status = "connected"
    overall = "healthy"

    try:
        async with request.app.state.db.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    body = HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        notifications=request.app.state.settings.notification_transport,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    return JSONResponse(
        status_code=200 if overall == "healthy" else 503,
        content=body.model_dump(),
    )
