"""
API route dependencies, including the per-request authentication gate.
"""

from functools import lru_cache
from typing import Annotated, Iterable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from identity_api.api.cookies import ACCESS_COOKIE
from identity_api.core.email import EmailDispatcher
from identity_api.core.exceptions import (
    AccountBlockedError,
    AuthenticationError,
    ForbiddenError,
    InvalidTokenError,
    SessionRevokedError,
)
from identity_api.core.otp import OtpEngine
from identity_api.core.tokens import TokenIssuer, TokenKind
from identity_api.db.database import get_db_session
from identity_api.db.models import AccountModel, AccountRole
from identity_api.db.repository import AccountRepository
from identity_api.services.identity_service import IdentityService


# HTTP Bearer scheme for JWT. Cookies are accepted as well, so it never auto-errors.
bearer_security = HTTPBearer(auto_error=False)


@lru_cache()
def get_token_issuer() -> TokenIssuer:
    return TokenIssuer.from_settings()


@lru_cache()
def get_email_dispatcher() -> EmailDispatcher:
    return EmailDispatcher.from_settings()


def get_otp_engine(
    mailer: EmailDispatcher = Depends(get_email_dispatcher),
) -> OtpEngine:
    return OtpEngine.from_settings(mailer)


def get_identity_service(
    session: AsyncSession = Depends(get_db_session),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
    otp_engine: OtpEngine = Depends(get_otp_engine),
    mailer: EmailDispatcher = Depends(get_email_dispatcher),
) -> IdentityService:
    return IdentityService(session, token_issuer, otp_engine, mailer)


def extract_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
    cookie_name: str,
) -> Optional[str]:
    """An explicit bearer header wins over the cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(cookie_name)


async def get_current_account(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_security),
    session: AsyncSession = Depends(get_db_session),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
) -> AccountModel:
    """
    Dependency to get the current authenticated account.

    Requires a valid access token whose session version is still current.
    Blocked accounts are rejected and their session cookies cleared.
    """
    token = extract_token(request, credentials, ACCESS_COOKIE)
    if not token:
        raise AuthenticationError(
            "No access token on request",
            user_message="No access token provided.",
        )

    token_data = token_issuer.verify(token, TokenKind.ACCESS)

    account = await AccountRepository(session).get_by_id(token_data.account_id)
    if account is None:
        raise InvalidTokenError(
            f"Access token for missing account {token_data.account_id}",
            user_message="User not found.",
        )

    if not account.is_active:
        raise AccountBlockedError(
            f"Blocked account {account.id} presented an access token",
            clear_session_cookies=True,
        )

    if token_data.session_version != account.session_version:
        raise SessionRevokedError(
            f"Stale access token version {token_data.session_version} "
            f"for account {account.id} (current {account.session_version})"
        )

    request.state.account = account
    request.state.role = account.role
    return account


def is_authorized(role: str, allowed_roles: Iterable[str]) -> bool:
    """Flat set membership; roles are not ordered."""
    return role in set(allowed_roles)


def require_roles(*allowed_roles: AccountRole):
    """Build a dependency admitting only accounts whose role is in the set."""

    async def dependency(account: AccountModel = Depends(get_current_account)) -> AccountModel:
        if not is_authorized(account.role, allowed_roles):
            raise ForbiddenError(
                f"Role {account.role} not in {[r.value for r in allowed_roles]}",
                user_message="Insufficient permissions for this action.",
            )
        return account

    return dependency


# Dependency annotations
IdentityServiceDep = Annotated[IdentityService, Depends(get_identity_service)]
CurrentAccountDep = Annotated[AccountModel, Depends(get_current_account)]
AdminDep = Annotated[AccountModel, Depends(require_roles(AccountRole.ADMIN))]
BearerDep = Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_security)]
