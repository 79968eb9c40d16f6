"""
Unit tests for custom exception classes.
Tests exception hierarchy, user messages, and HTTP status mapping.
"""

import pytest

from identity_api.api.errors import error_body, status_for
from identity_api.core.exceptions import (
    AccountBlockedError,
    AuthenticationError,
    ConflictError,
    EmailDeliveryError,
    EmailNotVerifiedError,
    ForbiddenError,
    IdentityError,
    InvalidCredentialsError,
    InvalidOtpError,
    InvalidTokenError,
    NoPendingOtpError,
    NotFoundError,
    OtpError,
    OtpExpiredError,
    SessionRevokedError,
    TokenExpiredError,
    ValidationError,
    WrongCurrentPasswordError,
)


class TestIdentityError:
    """Tests for base IdentityError class."""

    def test_default_user_message(self):
        """Test IdentityError uses default user message when not provided."""
        error = IdentityError("Internal error details")

        assert str(error) == "Internal error details"
        assert error.user_message == "An error occurred while processing your request."

    def test_custom_user_message(self):
        error = IdentityError("Internal details", user_message="Custom user message")

        assert str(error) == "Internal details"
        assert error.user_message == "Custom user message"

    def test_message_defaults_to_user_message(self):
        error = NotFoundError()
        assert str(error) == "Resource not found."

    def test_does_not_clear_cookies_by_default(self):
        assert IdentityError("x").clear_session_cookies is False

    def test_can_be_raised_and_caught(self):
        with pytest.raises(IdentityError) as exc_info:
            raise InvalidTokenError("internal", user_message="user facing")

        assert exc_info.value.user_message == "user facing"


class TestHierarchy:
    @pytest.mark.parametrize(
        "error_type,parent",
        [
            (InvalidCredentialsError, AuthenticationError),
            (EmailNotVerifiedError, AuthenticationError),
            (InvalidTokenError, AuthenticationError),
            (TokenExpiredError, AuthenticationError),
            (SessionRevokedError, AuthenticationError),
            (WrongCurrentPasswordError, AuthenticationError),
            (AccountBlockedError, ForbiddenError),
            (OtpError, ValidationError),
            (OtpExpiredError, OtpError),
            (InvalidOtpError, OtpError),
            (NoPendingOtpError, OtpError),
        ],
    )
    def test_subclass(self, error_type, parent):
        assert issubclass(error_type, parent)
        assert issubclass(error_type, IdentityError)

    def test_kinds_are_unique(self):
        types = [
            ValidationError, NotFoundError, AuthenticationError, ForbiddenError,
            ConflictError, EmailDeliveryError, InvalidCredentialsError,
            EmailNotVerifiedError, InvalidTokenError, TokenExpiredError,
            SessionRevokedError, WrongCurrentPasswordError, AccountBlockedError,
            OtpError, OtpExpiredError, InvalidOtpError, NoPendingOtpError,
        ]
        kinds = [t.kind for t in types]
        assert len(kinds) == len(set(kinds))


class TestInvalidCredentials:
    def test_unknown_email_and_wrong_password_look_alike(self):
        """Test both login failure causes expose the same message."""
        unknown = InvalidCredentialsError("Login attempt for unknown email")
        wrong = InvalidCredentialsError("Wrong password for account 1")

        assert unknown.user_message == wrong.user_message == "Invalid email or password."
        assert unknown.kind == wrong.kind


class TestStatusMapping:
    @pytest.mark.parametrize(
        "error,code",
        [
            (ValidationError(), 400),
            (InvalidOtpError(), 400),
            (InvalidCredentialsError(), 401),
            (SessionRevokedError(), 401),
            (TokenExpiredError(), 401),
            (ForbiddenError(), 403),
            (AccountBlockedError(), 403),
            (NotFoundError(), 404),
            (ConflictError(), 409),
            (EmailDeliveryError(), 503),
            (IdentityError(), 500),
        ],
    )
    def test_status_for(self, error, code):
        assert status_for(error) == code

    def test_error_body(self):
        assert error_body("invalid_otp", "Invalid OTP.") == {
            "success": False,
            "kind": "invalid_otp",
            "message": "Invalid OTP.",
        }
