"""
Identity service: registration, verification, login, sessions, password
recovery and account administration.

All writes of one operation go through the request's session, so they commit
or roll back together.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from identity_api.config import Settings, settings as default_settings
from identity_api.core.email import EmailDispatcher, send_welcome_email
from identity_api.core.exceptions import (
    AccountBlockedError,
    EmailDeliveryError,
    EmailNotVerifiedError,
    ForbiddenError,
    InvalidCredentialsError,
    InvalidTokenError,
    NoPendingOtpError,
    NotFoundError,
    SessionRevokedError,
    ValidationError,
    WrongCurrentPasswordError,
)
from identity_api.core.otp import OtpEngine, OtpPurpose
from identity_api.core.security import (
    dummy_verify,
    hash_password,
    normalize_email,
    verify_password,
)
from identity_api.core.tokens import TokenClaims, TokenIssuer, TokenKind, TokenPair
from identity_api.db.models import AccountModel, AuditAction, ProfileModel
from identity_api.db.repository import AccountRepository
from identity_api.services.audit import AuditTrail
from identity_api.services.session_store import SessionStore

logger = logging.getLogger(__name__)

ENTITY_ACCOUNT = "Account"


@dataclass
class AuthResult:
    """An authenticated account and its freshly issued tokens."""

    account: AccountModel
    tokens: TokenPair


@dataclass
class AccountPage:
    items: Sequence[AccountModel]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


class IdentityService:
    """Orchestrates the account and session lifecycle."""

    def __init__(
        self,
        session: AsyncSession,
        token_issuer: TokenIssuer,
        otp_engine: OtpEngine,
        mailer: EmailDispatcher,
        config: Optional[Settings] = None,
    ):
        self.session = session
        self.accounts = AccountRepository(session)
        self.sessions = SessionStore(self.accounts)
        self.audit = AuditTrail(session)
        self.tokens = token_issuer
        self.otp = otp_engine
        self.mailer = mailer
        self.config = config or default_settings

    # ========== Helpers ==========

    async def _hash(self, password: str) -> str:
        return await asyncio.to_thread(hash_password, password)

    async def _verify(self, password: str, password_hash: str) -> bool:
        return await asyncio.to_thread(verify_password, password, password_hash)

    async def _get_account(self, account_id: str) -> AccountModel:
        account = await self.accounts.get_by_id(account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found", user_message="User not found.")
        return account

    async def _record(self, action: AuditAction, account_id: str, detail: str) -> None:
        await self.audit.append(action, ENTITY_ACCOUNT, account_id, detail)

    async def _start_session(self, account: AccountModel) -> TokenPair:
        """Issue a token pair at the current version and store the refresh session."""
        claims = TokenClaims(
            account_id=account.id,
            role=account.role,
            session_version=account.session_version,
        )
        pair = self.tokens.issue_pair(claims)
        await self.sessions.save(account.id, pair.refresh_token)
        return pair

    @staticmethod
    def _require_admin(actor: AccountModel) -> None:
        if not actor.is_admin:
            raise ForbiddenError(f"Account {actor.id} is not an admin", user_message="Admin access required.")

    # ========== Registration ==========

    async def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
    ) -> AccountModel:
        """
        Create (or refresh) an unverified account and send a verification code.

        Re-registering an unverified email overwrites its password, names and
        pending code instead of failing.

        Raises:
            ValidationError: If the email belongs to a verified account
            ConflictError: If a concurrent registration claimed the email
            EmailDeliveryError: If the code could not be sent
        """
        email = normalize_email(email)
        existing = await self.accounts.get_by_email(email)
        if existing is not None and existing.is_verified:
            raise ValidationError(
                f"Registration attempted for verified email {email}",
                user_message="Email already registered and verified.",
            )

        account = await self.accounts.upsert_by_email(
            email,
            password_hash=await self._hash(password),
            first_name=first_name,
            last_name=last_name,
        )
        await self.otp.issue(account, OtpPurpose.EMAIL_VERIFY)
        await self.accounts.flush()

        await self._record(
            AuditAction.REGISTER,
            account.id,
            "User registered and awaiting email verification.",
        )
        logger.info(f"Account registered: {account.id}")
        return account

    async def verify_email(self, email: str, otp: str) -> AuthResult:
        """
        Verify an email with its code, provision the profile and sign in.

        Raises:
            NotFoundError: If no account has this email
            ValidationError: If the account is already verified
            NoPendingOtpError, OtpExpiredError, InvalidOtpError: On a bad code
        """
        email = normalize_email(email)
        account = await self.accounts.get_by_email(email)
        if account is None:
            raise NotFoundError(f"No account for {email}", user_message="User not found.")
        if account.is_verified:
            raise ValidationError(
                f"Account {account.id} is already verified",
                user_message="Email is already verified.",
            )

        self.otp.consume(account, otp)
        account.is_verified = True
        account.is_active = True
        if account.profile is None:
            account.profile = ProfileModel()
        await self.accounts.flush()

        tokens = await self._start_session(account)
        await self._record(
            AuditAction.VERIFY_EMAIL,
            account.id,
            "User successfully verified email via OTP.",
        )
        logger.info(f"Email verified for account {account.id}")

        try:
            await send_welcome_email(self.mailer, account.email, account.first_name)
        except EmailDeliveryError:
            logger.warning(f"Welcome email to account {account.id} was not delivered")

        return AuthResult(account=account, tokens=tokens)

    # ========== Authentication ==========

    async def authenticate(self, email: str, password: str) -> AccountModel:
        """
        Check credentials only.

        Raises:
            InvalidCredentialsError: For an unknown email or a wrong password,
                indistinguishable to the caller
        """
        email = normalize_email(email)
        account = await self.accounts.get_by_email(email)
        if account is None:
            await asyncio.to_thread(dummy_verify)
            raise InvalidCredentialsError("Login attempt for unknown email")

        if not await self._verify(password, account.password_hash):
            raise InvalidCredentialsError(f"Wrong password for account {account.id}")

        return account

    async def login(self, email: str, password: str) -> AuthResult:
        """
        Authenticate and open a new session, replacing any previous one.

        Raises:
            InvalidCredentialsError: On bad credentials
            EmailNotVerifiedError: If the email is not verified yet
            AccountBlockedError: If an admin blocked the account
        """
        account = await self.authenticate(email, password)

        if not account.is_verified:
            raise EmailNotVerifiedError(f"Login before verification: {account.id}")
        if not account.is_active:
            raise AccountBlockedError(f"Login by blocked account {account.id}")

        tokens = await self._start_session(account)
        await self._record(AuditAction.LOGIN, account.id, "User successfully logged in.")
        logger.info(f"Account logged in: {account.id}")
        return AuthResult(account=account, tokens=tokens)

    async def refresh(self, refresh_token: str) -> AuthResult:
        """
        Exchange the live refresh token for a new token pair.

        Raises:
            InvalidTokenError: Bad signature, unknown account, or not the live session
            TokenExpiredError: If the refresh token expired
            SessionRevokedError: If sessions were revoked after issuance
            AccountBlockedError: If the account is blocked
        """
        data = self.tokens.verify(refresh_token, TokenKind.REFRESH)

        account = await self.accounts.get_by_id(data.account_id)
        if account is None:
            raise InvalidTokenError(f"Refresh token for missing account {data.account_id}")
        if not account.is_active:
            raise AccountBlockedError(
                f"Refresh by blocked account {account.id}",
                clear_session_cookies=True,
            )
        if data.session_version != account.session_version:
            raise SessionRevokedError(
                f"Refresh token version {data.session_version} != "
                f"{account.session_version} for account {account.id}"
            )
        if not await self.sessions.matches(account.id, refresh_token):
            raise InvalidTokenError(
                f"Refresh token is not the live session of account {account.id}",
                user_message="Invalid refresh token.",
            )

        tokens = await self._start_session(account)
        await self._record(AuditAction.REFRESH_TOKEN, account.id, "Session tokens refreshed.")
        logger.info(f"Tokens refreshed for account {account.id}")
        return AuthResult(account=account, tokens=tokens)

    async def logout(self, account_id: str) -> None:
        """End the live refresh session. Access tokens expire on their own."""
        await self.sessions.clear(account_id)
        await self._record(AuditAction.LOGOUT, account_id, "User logged out.")
        logger.info(f"Account logged out: {account_id}")

    async def revoke_all_sessions(self, account_id: str) -> None:
        """Invalidate every token issued to this account so far."""
        await self.sessions.revoke(account_id)
        await self._record(AuditAction.REVOKE_SESSIONS, account_id, "All user sessions revoked.")

    # ========== OTP management ==========

    async def resend_otp(self, email: str, purpose: OtpPurpose = OtpPurpose.EMAIL_VERIFY) -> None:
        """
        Issue a new code, replacing any pending one.

        Raises:
            NotFoundError: If no account has this email
            ValidationError: If asking to verify an already verified email
            EmailDeliveryError: If the code could not be sent
        """
        email = normalize_email(email)
        account = await self.accounts.get_by_email(email)
        if account is None:
            raise NotFoundError("OTP requested for unknown email", user_message="User not found.")
        if purpose is OtpPurpose.EMAIL_VERIFY and account.is_verified:
            raise ValidationError(
                f"Verification OTP requested for verified account {account.id}",
                user_message="Email is already verified.",
            )

        await self.otp.issue(account, purpose)
        await self.accounts.flush()
        await self._record(AuditAction.RESEND_OTP, account.id, f"OTP resent for {purpose.value}")

    async def request_password_reset(self, email: str) -> None:
        """
        Send a password reset code.

        Raises:
            NotFoundError: If no account has this email. The API hides this.
            EmailDeliveryError: If the code could not be sent
        """
        email = normalize_email(email)
        account = await self.accounts.get_by_email(email)
        if account is None:
            raise NotFoundError("Password reset requested for unknown email", user_message="User not found.")

        await self.otp.issue(account, OtpPurpose.PASSWORD_RESET)
        await self.accounts.flush()
        await self._record(
            AuditAction.REQUEST_PASSWORD_RESET,
            account.id,
            "Password reset code sent.",
        )

    async def reset_password(self, email: str, otp: str, new_password: str) -> None:
        """
        Set a new password with a reset code and sign out everywhere.

        Raises:
            NoPendingOtpError, OtpExpiredError, InvalidOtpError: On a bad code
        """
        email = normalize_email(email)
        account = await self.accounts.get_by_email(email)
        if account is None:
            raise NoPendingOtpError("Password reset for unknown email")

        self.otp.consume(account, otp)
        account.password_hash = await self._hash(new_password)
        await self.sessions.revoke(account.id)

        await self._record(
            AuditAction.RESET_PASSWORD,
            account.id,
            "User successfully reset their password.",
        )
        logger.info(f"Password reset for account {account.id}")

    async def change_password(
        self,
        account_id: str,
        current_password: str,
        new_password: str,
    ) -> None:
        """
        Replace the password and sign out everywhere.

        Raises:
            WrongCurrentPasswordError: If the current password does not match
        """
        account = await self._get_account(account_id)
        if not await self._verify(current_password, account.password_hash):
            raise WrongCurrentPasswordError(f"Wrong current password for account {account.id}")

        account.password_hash = await self._hash(new_password)
        await self.sessions.revoke(account.id)

        await self._record(AuditAction.CHANGE_PASSWORD, account.id, "User changed their password.")
        logger.info(f"Password changed for account {account.id}")

    # ========== Identity ==========

    async def get_current_identity(self, account_id: str) -> AccountModel:
        """Raises NotFoundError if the account is gone."""
        return await self._get_account(account_id)

    async def update_profile(
        self,
        account_id: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        bio: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> AccountModel:
        """
        Change the names and public profile of an account.

        None leaves a field unchanged; an empty bio or avatar URL clears it.

        Raises:
            NotFoundError: If the account is gone
        """
        account = await self._get_account(account_id)
        if first_name is not None:
            account.first_name = first_name
        if last_name is not None:
            account.last_name = last_name

        if account.profile is None:
            account.profile = ProfileModel()
        if bio is not None:
            account.profile.bio = bio or None
        if avatar_url is not None:
            account.profile.avatar_url = avatar_url or None
        await self.accounts.flush()

        await self._record(AuditAction.UPDATE_PROFILE, account.id, "User profile updated.")
        logger.info(f"Profile updated for account {account.id}")
        return account

    async def delete_account(self, account_id: str, password: str) -> None:
        """
        Delete one's own account after re-checking the password.

        Raises:
            WrongCurrentPasswordError: If the password does not match
        """
        account = await self._get_account(account_id)
        if not await self._verify(password, account.password_hash):
            raise WrongCurrentPasswordError(f"Wrong password on self-deletion of {account.id}")

        await self.accounts.delete(account)
        await self._record(AuditAction.DELETE_ACCOUNT, account_id, "User deleted their account.")
        logger.info(f"Account deleted by owner: {account_id}")

    # ========== Administration ==========

    async def list_accounts(self, page: int = 1, limit: Optional[int] = None) -> AccountPage:
        """Newest accounts first. Page is 1-based; limit is clamped."""
        page = max(page, 1)
        limit = limit or self.config.default_page_size
        limit = min(max(limit, 1), self.config.max_page_size)

        items = await self.accounts.list(skip=(page - 1) * limit, take=limit)
        total = await self.accounts.count()
        return AccountPage(items=items, total=total, page=page, limit=limit)

    async def get_account(self, account_id: str) -> AccountModel:
        return await self._get_account(account_id)

    async def account_stats(self) -> dict:
        return await self.accounts.stats()

    async def block_account(self, actor: AccountModel, target_id: str) -> AccountModel:
        """
        Block an account. Its existing tokens stop working at the Request Gate.

        Raises:
            ForbiddenError: If the actor is not an admin
            ValidationError: If the actor targets themself
            NotFoundError: If the target does not exist
        """
        self._require_admin(actor)
        if target_id == actor.id:
            raise ValidationError(
                f"Admin {actor.id} tried to block themself",
                user_message="You cannot block your own account.",
            )

        target = await self._get_account(target_id)
        target.is_active = False
        await self.accounts.flush()

        await self._record(AuditAction.BLOCK_USER, target.id, f"User account blocked by admin {actor.id}.")
        logger.info(f"Account {target.id} blocked by {actor.id}")
        return target

    async def unblock_account(self, actor: AccountModel, target_id: str) -> AccountModel:
        """
        Raises:
            ForbiddenError: If the actor is not an admin
            NotFoundError: If the target does not exist
        """
        self._require_admin(actor)
        target = await self._get_account(target_id)
        target.is_active = True
        await self.accounts.flush()

        await self._record(AuditAction.UNBLOCK_USER, target.id, f"User account unblocked by admin {actor.id}.")
        logger.info(f"Account {target.id} unblocked by {actor.id}")
        return target

    async def admin_delete_account(self, actor: AccountModel, target_id: str) -> None:
        """
        Raises:
            ForbiddenError: If the actor is not an admin
            ValidationError: If the actor targets themself
            NotFoundError: If the target does not exist
        """
        self._require_admin(actor)
        if target_id == actor.id:
            raise ValidationError(
                f"Admin {actor.id} tried to delete themself",
                user_message="You cannot delete your own account.",
            )

        target = await self._get_account(target_id)
        await self.accounts.delete(target)
        await self._record(AuditAction.DELETE_ACCOUNT, target_id, f"User account deleted by admin {actor.id}.")
        logger.info(f"Account {target_id} deleted by {actor.id}")
