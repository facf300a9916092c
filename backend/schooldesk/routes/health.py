"""
SchoolDesk Backend — Health Check Route
=========================================

What:  Liveness endpoint for monitoring and load balancer probes.
How:   Answers without touching the database or image store, so a slow
       dependency never makes the probe itself time out.
"""

from datetime import datetime, timezone

from fastapi import APIRouter

from schooldesk.schemas.school import HealthResponse

router = APIRouter(prefix="/api", tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="OK",
        message="School Management API is running",
        timestamp=datetime.now(timezone.utc),
    )
