"""
LogoForge Backend — Request Logging Middleware
================================================

What:  One access log line per request on the `logoforge.access` logger.
How:   Measures wall time around the handler and picks the level from the
       status code (5xx ERROR, 4xx WARNING, else INFO). Structured fields go
       into `extra` for JSON log shippers.

Typical durations:
    - GET /api/logos/{id}:            5-30ms (one query + selectin payloads)
    - POST /api/layers/{id}/reorder:  10-50ms (locked, two flushes, commit)
    - GET /api/logos/{id}/export.png: 0.5-3s (media host upload dominates)

Not logged: request bodies (logo text, uploads) and headers.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from logoforge.middleware.request_id import request_id_var

logger = logging.getLogger("logoforge.access")

# Probes and locally served media would drown the access log
QUIET_PREFIXES = ("/health", "/media/")


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path.startswith(QUIET_PREFIXES):
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        rid = request_id_var.get("")
        logger.log(
            log_level,
            "%s %s %d %.1fms from %s",
            request.method,
            path,
            status,
            duration_ms,
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
