"""
RadioTrack Backend — Request ID Middleware
============================================

What:  Gives every request a short correlation id and returns it in the
       X-Request-ID response header.
Why:   Lets one request be followed through the access log, the service
       logs and the error body the client receives.
How:   Reuses the client's X-Request-ID when present, otherwise generates one;
       stores it in a ContextVar (read by error handlers and the access log)
       and in request.state.
Who:   Applied to every request via Starlette middleware.
When:  Outermost middleware, so every later log line can read the id.

Where the id shows up:
    - "request_id" in every JSON error body (see main.py handlers)
    - the [rid] field of the radiotrack.access log line
    - the X-Request-ID response header, also exposed through CORS
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Assigns and echoes the X-Request-ID header.

    Flow:
        1. Take X-Request-ID from the request, or generate 8 hex chars
        2. Set request_id_var (reset once the response is produced)
        3. Call the rest of the stack
        4. Copy the id onto the response headers
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = rid
        return response
