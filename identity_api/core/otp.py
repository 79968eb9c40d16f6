"""
One-time password issuing and verification.

An account holds at most one pending OTP, stored as a fingerprint plus an
expiry. Issuing overwrites any previous code. Consuming clears both fields on
the account object; the caller persists that together with the change the
code was gating, in the same transaction.
"""

import logging
import secrets
import string
from datetime import timedelta
from enum import Enum
from typing import Optional

from identity_api.config import Settings, settings as default_settings
from identity_api.core.clock import Clock, as_utc, utcnow
from identity_api.core.email import (
    EmailDispatcher,
    send_password_reset_email,
    send_verification_email,
)
from identity_api.core.exceptions import (
    InvalidOtpError,
    NoPendingOtpError,
    OtpExpiredError,
)
from identity_api.core.security import fingerprint
from identity_api.db.models import AccountModel

logger = logging.getLogger(__name__)


class OtpPurpose(str, Enum):
    EMAIL_VERIFY = "EMAIL_VERIFY"
    PASSWORD_RESET = "PASSWORD_RESET"


def generate_otp(length: int = 6) -> str:
    """Uniformly random digit string from the OS CSPRNG."""
    return "".join(secrets.choice(string.digits) for _ in range(length))


class OtpEngine:
    """Issues and checks short-lived numeric codes."""

    def __init__(
        self,
        mailer: EmailDispatcher,
        length: int = 6,
        ttl_minutes: Optional[dict[OtpPurpose, int]] = None,
        clock: Clock = utcnow,
    ):
        self.mailer = mailer
        self.length = length
        self.ttl_minutes = {
            OtpPurpose.EMAIL_VERIFY: 15,
            OtpPurpose.PASSWORD_RESET: 30,
        }
        if ttl_minutes:
            self.ttl_minutes.update(ttl_minutes)
        self._clock = clock

    @classmethod
    def from_settings(
        cls, mailer: EmailDispatcher, config: Optional[Settings] = None
    ) -> "OtpEngine":
        config = config or default_settings
        return cls(
            mailer,
            length=config.otp_length,
            ttl_minutes={
                OtpPurpose.EMAIL_VERIFY: config.otp_expire_minutes,
                OtpPurpose.PASSWORD_RESET: config.password_reset_otp_expire_minutes,
            },
        )

    async def issue(self, account: AccountModel, purpose: OtpPurpose) -> str:
        """
        Store a fresh code on the account and email it.

        Args:
            account: Target account; its OTP fields are overwritten in place
            purpose: Selects the expiry and the email template

        Returns:
            The plain code (never persisted)

        Raises:
            EmailDeliveryError: If the code could not be sent
        """
        code = generate_otp(self.length)
        ttl = self.ttl_minutes[purpose]
        account.otp_hash = fingerprint(code)
        account.otp_expires_at = self._clock() + timedelta(minutes=ttl)

        if purpose is OtpPurpose.PASSWORD_RESET:
            await send_password_reset_email(self.mailer, account.email, code, ttl)
        else:
            await send_verification_email(self.mailer, account.email, code, ttl)

        logger.info(f"Issued {purpose.value} OTP for account {account.id}")
        return code

    def consume(self, account: AccountModel, supplied_code: str) -> None:
        """
        Check a supplied code and clear the pending OTP on success.

        Raises:
            NoPendingOtpError: If the account has no pending code
            OtpExpiredError: If the pending code is past its expiry
            InvalidOtpError: If the code does not match
        """
        if not account.has_pending_otp:
            raise NoPendingOtpError(f"No pending OTP for account {account.id}")

        if self._clock() > as_utc(account.otp_expires_at):
            raise OtpExpiredError(f"OTP expired for account {account.id}")

        if fingerprint(supplied_code.strip()) != account.otp_hash:
            raise InvalidOtpError(f"OTP mismatch for account {account.id}")

        account.otp_hash = None
        account.otp_expires_at = None
