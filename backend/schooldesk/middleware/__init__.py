"""
SchoolDesk Backend — Middleware Package
========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (request direction):
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    1. Request ID first: every later log line can read it from the ContextVar
    2. Logging: measures the full handling time and logs with the request ID
    3. GZip / CORS: FastAPI-provided

    Responses travel the chain in reverse, so the X-Request-ID header is set
    on every response, error responses included.
"""
