"""
Authentication endpoints: registration, verification, login, sessions and
password recovery.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Request, Response, status

from identity_api.api.cookies import (
    REFRESH_COOKIE,
    clear_session_cookies,
    set_session_cookies,
)
from identity_api.api.deps import (
    BearerDep,
    CurrentAccountDep,
    IdentityServiceDep,
)
from identity_api.core.exceptions import AuthenticationError, EmailDeliveryError, NotFoundError
from identity_api.models.schemas import (
    AccountActionResponse,
    AccountEnvelope,
    AccountResponse,
    AuthResponse,
    ChangePasswordRequest,
    DeleteAccountRequest,
    LoginRequest,
    MessageResponse,
    PasswordResetRequest,
    RefreshRequest,
    RegisterRequest,
    ResendOtpRequest,
    ResetPasswordRequest,
    TokenResponse,
    UpdateProfileRequest,
    VerifyEmailRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()

PASSWORD_RESET_SENT = "If an account exists for this email, a reset code has been sent."
OTP_RESENT = "If an account exists for this email, a new code has been sent."


# ============ Public ============

@router.post(
    "/register",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register(request: RegisterRequest, identity: IdentityServiceDep):
    """
    Register a new account, or restart registration of an unverified one.

    Sends a verification code by email; no tokens are issued yet.
    """
    await identity.register(
        email=request.email,
        password=request.password,
        first_name=request.firstName,
        last_name=request.lastName,
    )
    return MessageResponse(message="Registration successful. OTP sent to your email.")


@router.post("/verify-email", response_model=AuthResponse)
async def verify_email(
    request: VerifyEmailRequest,
    response: Response,
    identity: IdentityServiceDep,
):
    """
    Verify the email with its code.

    Signs the user in: sets session cookies and returns the access token.
    """
    result = await identity.verify_email(request.email, request.otp)
    set_session_cookies(response, result.tokens)
    return AuthResponse(
        message="Email verified successfully.",
        user=AccountResponse.from_model(result.account),
        accessToken=result.tokens.access_token,
    )


@router.post("/login", response_model=AuthResponse)
async def login(request: LoginRequest, response: Response, identity: IdentityServiceDep):
    """
    Login with email and password.

    Replaces any previous session of this account.
    """
    result = await identity.login(request.email, request.password)
    set_session_cookies(response, result.tokens)
    return AuthResponse(
        message="Login successful.",
        user=AccountResponse.from_model(result.account),
        accessToken=result.tokens.access_token,
    )


@router.post("/refresh", response_model=TokenResponse)
async def refresh_tokens(
    http_request: Request,
    response: Response,
    identity: IdentityServiceDep,
    credentials: BearerDep,
    request: Optional[RefreshRequest] = None,
):
    """
    Rotate the session using the refresh token.

    The token is read from the refresh cookie, then the request body, then the
    Authorization header. Any failure clears the session cookies.
    """
    token = http_request.cookies.get(REFRESH_COOKIE)
    if not token and request is not None:
        token = request.refreshToken
    if not token and credentials is not None:
        token = credentials.credentials
    if not token:
        raise AuthenticationError(
            "No refresh token on request",
            user_message="No refresh token provided.",
            clear_session_cookies=True,
        )

    try:
        result = await identity.refresh(token)
    except AuthenticationError as e:
        e.clear_session_cookies = True
        raise

    set_session_cookies(response, result.tokens)
    return TokenResponse(
        message="Token refreshed successfully.",
        accessToken=result.tokens.access_token,
    )


@router.post("/request-password-reset", response_model=MessageResponse)
async def request_password_reset(request: PasswordResetRequest, identity: IdentityServiceDep):
    """
    Send a password reset code.

    Replies the same way whether or not the email is registered.
    """
    try:
        await identity.request_password_reset(request.email)
    except NotFoundError:
        logger.info("Password reset requested for an unknown email")
    except EmailDeliveryError:
        logger.error("Password reset code was not delivered")
    return MessageResponse(message=PASSWORD_RESET_SENT)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(request: ResetPasswordRequest, identity: IdentityServiceDep):
    """Set a new password with a reset code. Signs out every session."""
    await identity.reset_password(request.email, request.otp, request.newPassword)
    return MessageResponse(message="Password reset successful.")


@router.post("/resend-otp", response_model=MessageResponse)
async def resend_otp(request: ResendOtpRequest, identity: IdentityServiceDep):
    """Issue a fresh code for email verification or password reset."""
    try:
        await identity.resend_otp(request.email, request.type)
    except NotFoundError:
        logger.info("OTP resend requested for an unknown email")
    return MessageResponse(message=OTP_RESENT)


# ============ Authenticated ============

@router.get("/me", response_model=AccountEnvelope)
async def get_current_identity(current_account: CurrentAccountDep, identity: IdentityServiceDep):
    """Get the current account."""
    account = await identity.get_current_identity(current_account.id)
    return AccountEnvelope(user=AccountResponse.from_model(account))


@router.patch("/me", response_model=AccountActionResponse)
async def update_profile(
    request: UpdateProfileRequest,
    current_account: CurrentAccountDep,
    identity: IdentityServiceDep,
):
    """Update names, bio or avatar URL of the current account."""
    account = await identity.update_profile(
        current_account.id,
        first_name=request.firstName,
        last_name=request.lastName,
        bio=request.bio,
        avatar_url=request.avatarUrl,
    )
    return AccountActionResponse(
        message="Profile updated successfully.",
        user=AccountResponse.from_model(account),
    )


@router.delete("/me", response_model=MessageResponse)
async def delete_own_account(
    request: DeleteAccountRequest,
    response: Response,
    current_account: CurrentAccountDep,
    identity: IdentityServiceDep,
):
    """Delete the current account after re-entering the password."""
    await identity.delete_account(current_account.id, request.password)
    clear_session_cookies(response)
    return MessageResponse(message="Account deleted successfully.")


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response, current_account: CurrentAccountDep, identity: IdentityServiceDep):
    """End the current refresh session and clear cookies."""
    await identity.logout(current_account.id)
    clear_session_cookies(response)
    return MessageResponse(message="Logged out successfully.")


@router.post("/revoke-sessions", response_model=MessageResponse)
async def revoke_all_sessions(
    response: Response,
    current_account: CurrentAccountDep,
    identity: IdentityServiceDep,
):
    """Invalidate every token issued to this account."""
    await identity.revoke_all_sessions(current_account.id)
    clear_session_cookies(response)
    return MessageResponse(message="All sessions have been revoked. Please login again.")


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    request: ChangePasswordRequest,
    response: Response,
    current_account: CurrentAccountDep,
    identity: IdentityServiceDep,
):
    """Change the password. Signs out every session, including this one."""
    await identity.change_password(
        current_account.id,
        request.currentPassword,
        request.newPassword,
    )
    clear_session_cookies(response)
    return MessageResponse(message="Password changed successfully. Please login again.")
