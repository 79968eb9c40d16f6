"""
API router aggregating all route modules.
"""

from fastapi import APIRouter

from identity_api.api.routes import admin, auth, health
from identity_api.models.schemas import ErrorResponse

router = APIRouter()

# Error bodies share one shape; see api/errors.py
AUTH_ERRORS = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}
ADMIN_ERRORS = {
    code: AUTH_ERRORS[code] for code in (400, 401, 403, 404)
}

# Include all route modules
router.include_router(health.router, prefix="/health", tags=["Health"])
router.include_router(auth.router, prefix="/auth", tags=["Authentication"], responses=AUTH_ERRORS)
router.include_router(admin.router, prefix="/admin", tags=["Admin"], responses=ADMIN_ERRORS)
