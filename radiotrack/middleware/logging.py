"""
RadioTrack Backend — Request Logging Middleware
=================================================

What:  One access-log line per HTTP request on the "radiotrack.access" logger.
Why:   Status codes and latency per route are the first thing to check when
       a clinic reports that a status change "did nothing".
How:   Measures the time spent in the rest of the stack and logs method,
       path, status, duration, request id and client address. The same
       values are attached as `extra` fields for log handlers that index them.
Who:   Applied to every request via Starlette middleware.
When:  Inside RequestIDMiddleware, so the request id is already set.

Log Format (text):
    PUT /api/pacientes/P1/radiografias/R1 200 12.4ms [a1b2c3d4] from 10.0.0.7

Rules:
    - Log level follows the status code: 5xx → ERROR, 4xx → WARNING, else INFO
    - /health is not logged (probes would drown the real traffic)
    - Request bodies are never logged; they hold patient contact data
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from radiotrack.middleware.request_id import request_id_var

logger = logging.getLogger("radiotrack.access")

SKIPPED_PATHS = {"/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs status and duration of each request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in SKIPPED_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        client_ip = request.client.host if request.client else "unknown"
        rid = request_id_var.get("")
        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
