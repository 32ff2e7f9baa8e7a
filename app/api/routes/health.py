from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.core.auth import is_auth_configured

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check used by load balancers.

    Queue and rate-limiter statistics are deliberately not exposed here; they
    are written to the logs by the maintenance scheduler.
    """

    return {"status": "ok"}


@router.get("/health/ready")
def readiness_check() -> JSONResponse:
    """Readiness check: mobile authentication must be able to succeed."""

    if not is_auth_configured():
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "reason": "auth_not_configured"},
        )
    return JSONResponse(status_code=200, content={"status": "ready"})
