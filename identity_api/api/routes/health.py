"""
Health check endpoints.
"""

import logging

from fastapi import APIRouter, Request
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "message": "Identity API is running"}


@router.get("/ready")
async def readiness_check(request: Request):
    """
    Readiness check - verify all critical services are available.
    Used by orchestration systems (K8s, Docker, etc.)
    """
    checks = {"api": "ready"}

    try:
        await request.app.state.database.ping()
        checks["database"] = "ready"
    except (SQLAlchemyError, OSError, RuntimeError) as e:
        logger.error(f"Database readiness check failed: {e}")
        checks["database"] = "unavailable"

    all_ready = all(v == "ready" for v in checks.values())

    return {
        "status": "ready" if all_ready else "not_ready",
        "checks": checks,
    }
