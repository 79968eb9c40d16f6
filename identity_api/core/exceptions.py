"""Custom exceptions for the identity domain.

Every error carries:
- ``kind``: a stable machine-readable identifier
- ``user_message``: a safe message that can be shown to callers
- the internal message (``str(error)``) for logs only

HTTP status mapping lives in the API layer, not here.
"""


class IdentityError(Exception):
    """Base exception for identity errors."""

    kind = "error"
    default_user_message = "An error occurred while processing your request."

    def __init__(
        self,
        message: str | None = None,
        user_message: str | None = None,
        clear_session_cookies: bool = False,
    ):
        """
        Initialize identity error.

        Args:
            message: Internal error message for logging/debugging
            user_message: Safe message to show to users (defaults per class)
            clear_session_cookies: Ask the transport to drop session cookies
        """
        self.user_message = user_message or self.default_user_message
        super().__init__(message or self.user_message)
        self.clear_session_cookies = clear_session_cookies


class ValidationError(IdentityError):
    """Malformed or duplicate input."""

    kind = "validation_error"
    default_user_message = "Validation failed."


class NotFoundError(IdentityError):
    """A requested entity does not exist."""

    kind = "not_found"
    default_user_message = "Resource not found."


class AuthenticationError(IdentityError):
    """Bad credentials or a bad, expired or revoked token."""

    kind = "authentication_error"
    default_user_message = "Authentication failed."


class ForbiddenError(IdentityError):
    """Authenticated but not allowed."""

    kind = "forbidden"
    default_user_message = "You do not have permission to perform this action."


class ConflictError(IdentityError):
    """Unique-constraint collision surfaced from the repository."""

    kind = "conflict"
    default_user_message = "Resource already exists."


class EmailDeliveryError(IdentityError):
    """The email dispatcher could not deliver a message."""

    kind = "email_delivery_failed"
    default_user_message = "Unable to send email right now. Please try again later."


# ============ Authentication ============

class InvalidCredentialsError(AuthenticationError):
    """Unknown email or wrong password. Both causes share one user message."""

    kind = "invalid_credentials"
    default_user_message = "Invalid email or password."


class EmailNotVerifiedError(AuthenticationError):
    kind = "email_not_verified"
    default_user_message = "Email not verified. Please verify your email first."


class InvalidTokenError(AuthenticationError):
    kind = "invalid_token"
    default_user_message = "Invalid token."


class TokenExpiredError(AuthenticationError):
    kind = "token_expired"
    default_user_message = "Token has expired. Please login again."


class SessionRevokedError(AuthenticationError):
    kind = "session_revoked"
    default_user_message = "Your session has been revoked. Please login again."


class WrongCurrentPasswordError(AuthenticationError):
    kind = "wrong_current_password"
    default_user_message = "Current password is incorrect."


# ============ Authorization ============

class AccountBlockedError(ForbiddenError):
    kind = "account_blocked"
    default_user_message = "Your account is blocked. Please contact support."


# ============ One-time passwords ============

class OtpError(ValidationError):
    """Base class for OTP verification failures."""

    kind = "otp_error"
    default_user_message = "Invalid or expired code."


class OtpExpiredError(OtpError):
    kind = "otp_expired"
    default_user_message = "OTP has expired. Please request a new one."


class InvalidOtpError(OtpError):
    kind = "invalid_otp"
    default_user_message = "Invalid OTP. Please try again."


class NoPendingOtpError(OtpError):
    kind = "no_pending_otp"
    default_user_message = "No OTP request found. Please request a new one."
