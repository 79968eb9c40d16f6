"""
Translate domain errors into HTTP responses.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from identity_api.api.cookies import clear_session_cookies
from identity_api.config import settings
from identity_api.core.exceptions import (
    AuthenticationError,
    ConflictError,
    EmailDeliveryError,
    ForbiddenError,
    IdentityError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific class first
STATUS_BY_ERROR: list[tuple[type[IdentityError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (EmailDeliveryError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_for(error: IdentityError) -> int:
    for error_type, code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_body(kind: str, message: str) -> dict:
    return {"success": False, "kind": kind, "message": message}


async def identity_error_handler(request: Request, exc: IdentityError) -> JSONResponse:
    code = status_for(exc)
    logger.warning(f"{request.method} {request.url.path} -> {code} {exc.kind}: {exc}")

    headers = {"WWW-Authenticate": "Bearer"} if code == status.HTTP_401_UNAUTHORIZED else None
    response = JSONResponse(
        status_code=code,
        content=error_body(exc.kind, exc.user_message),
        headers=headers,
    )
    if exc.clear_session_cookies:
        clear_session_cookies(response)
    return response


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    message = str(exc) if settings.debug else "Internal server error"
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("internal_error", message),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(IdentityError, identity_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
