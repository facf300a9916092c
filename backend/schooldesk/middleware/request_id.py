"""
SchoolDesk Backend — Request ID Middleware
============================================

What:  Assigns a short correlation ID to each request and echoes it back.
Why:   Every log line of a request, and its error body, share the same ID,
       so a failed school upload can be traced from the client's error
       message to the server log.
How:   Reuses the client's X-Request-ID header when sent, otherwise generates
       one; stores it in a ContextVar and on request.state.
When:  Outermost application middleware (runs before logging and routes).
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

REQUEST_ID_HEADER = "X-Request-ID"


def generate_request_id() -> str:
    """First 8 hex chars of a UUID4; short enough to read in logs."""
    return uuid.uuid4().hex[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Behavior:
        1. Use the client's X-Request-ID if present and non-blank
        2. Otherwise generate a new one
        3. Store it in `request_id_var` and `request.state.request_id`
        4. Return it in the X-Request-ID response header
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get(REQUEST_ID_HEADER, "").strip() or generate_request_id()

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
