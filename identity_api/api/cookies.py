"""
Session cookie helpers.

Both tokens travel as httpOnly cookies with samesite=lax. They are marked
secure in production only, and their max_age matches the token TTLs.
"""

from fastapi import Response

from identity_api.config import settings
from identity_api.core.tokens import TokenPair

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"


def set_session_cookies(response: Response, tokens: TokenPair) -> None:
    """Write the access and refresh tokens as cookies."""
    response.set_cookie(
        ACCESS_COOKIE,
        tokens.access_token,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        max_age=settings.jwt_access_expire_minutes * 60,
        path="/",
    )
    response.set_cookie(
        REFRESH_COOKIE,
        tokens.refresh_token,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        max_age=settings.jwt_refresh_expire_days * 24 * 60 * 60,
        path="/",
    )


def clear_session_cookies(response: Response) -> None:
    """Expire both session cookies on the client."""
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(
            name,
            path="/",
            httponly=True,
            secure=settings.cookie_secure,
            samesite="lax",
        )
