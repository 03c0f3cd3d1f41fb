"""
RadioTrack Backend — Middleware Package
=========================================

Cross-cutting concerns applied to every request.

Middleware Chain:
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    - RequestIDMiddleware assigns the correlation id that the error handlers
      and the access log include.
    - RequestLoggingMiddleware writes one access-log line per request with
      status and duration.
"""
