"""
LogoForge Backend — Rate Limiting Middleware
==============================================

What:  Per-IP sliding window limiter (RATE_LIMIT_REQUESTS per
       RATE_LIMIT_WINDOW seconds).
How:   Keeps the timestamps of each client's recent requests in memory and
       drops those older than the window on every request.

Limitations:
    State is per process. With several workers each one enforces the limit
    on its own share of the traffic.

Editor traffic note:
    A drag in the editor can emit a PATCH per frame, so the default limit is
    generous; exports and uploads are the expensive calls.
"""

import logging
import time
from collections import defaultdict, deque
from typing import Deque, Dict

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from logoforge.config import settings
from logoforge.exceptions import RateLimitExceededError
from logoforge.middleware.request_id import request_id_var
from logoforge.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)

# Sweep idle clients after this many tracked requests
CLEANUP_EVERY = 1000


class RateLimitMiddleware(BaseHTTPMiddleware):

    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

    def __init__(self, app, requests: int = None, window: int = None, **kwargs):
        super().__init__(app, **kwargs)
        self.limit = requests or settings.rate_limit_requests
        self.window = window or settings.rate_limit_window
        self._requests: Dict[str, Deque[float]] = defaultdict(deque)
        self._seen = 0

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in self.EXCLUDED_PATHS or path.startswith("/media/"):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.time()
        window_start = now - self.window

        history = self._requests[client_ip]
        while history and history[0] <= window_start:
            history.popleft()

        if len(history) >= self.limit:
            retry_after = int(history[0] + self.window - now) + 1
            logger.warning(
                "Rate limit exceeded for IP %s: %d requests in %ds window",
                client_ip, len(history), self.window,
            )
            # Raised errors bypass the app's handlers inside BaseHTTPMiddleware
            error = RateLimitExceededError(retry_after=retry_after)
            body = ErrorResponse(
                error="rate_limit_exceeded",
                message=error.message,
                details=error.context,
                request_id=request_id_var.get("") or None,
            )
            return JSONResponse(
                status_code=429,
                content=body.model_dump(),
                headers={"Retry-After": str(retry_after)},
            )

        history.append(now)
        self._seen += 1
        if self._seen % CLEANUP_EVERY == 0:
            self._cleanup_inactive_ips(window_start)

        return await call_next(request)

    def _cleanup_inactive_ips(self, window_start: float) -> None:
        inactive = [ip for ip, stamps in self._requests.items() if not stamps or stamps[-1] <= window_start]
        for ip in inactive:
            del self._requests[ip]
        if inactive:
            logger.debug("Cleaned up %d inactive IP entries", len(inactive))
