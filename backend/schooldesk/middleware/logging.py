"""
SchoolDesk Backend — Request Logging Middleware
=================================================

What:  One access-log line per HTTP request: method, path, status, duration.
Why:   Uvicorn's access log has no request ID and no duration; this one has
       both and picks its severity from the status code.
Who:   Applied to every request except the health probe.

Log line:
    POST /api/schools 201 42.7ms [1a2b3c4d] from 10.0.0.7

What we log vs what we DON'T log:
    ✅ method, path, status, duration, client IP, request ID
    ❌ form fields (contact numbers and emails are personal data), image bytes
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from schooldesk.middleware.request_id import request_id_var

logger = logging.getLogger("schooldesk.access")

# Probed every few seconds by orchestrators; not worth a log line each
SKIP_PATHS = {"/api/health"}


def level_for_status(status: int) -> int:
    """5xx → ERROR, 4xx → WARNING, everything else → INFO."""
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request after the response is produced."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in SKIP_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        rid = request_id_var.get("")
        status = response.status_code

        logger.log(
            level_for_status(status),
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
