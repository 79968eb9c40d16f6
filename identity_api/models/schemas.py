"""
Pydantic schemas for API request/response validation.
"""

import re
from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, EmailStr, Field

from identity_api.config import settings
from identity_api.core.otp import OtpPurpose
from identity_api.db.models import AccountModel


SPECIAL_CHARACTERS = "@$!%*?&#^()_-+=."


def check_password_strength(value: str) -> str:
    """At least 8 characters with upper, lower, digit and special character."""
    if len(value) < 8:
        raise ValueError("Password must be at least 8 characters long")
    if not re.search(r"[a-z]", value):
        raise ValueError("Password must contain a lowercase letter")
    if not re.search(r"[A-Z]", value):
        raise ValueError("Password must contain an uppercase letter")
    if not re.search(r"\d", value):
        raise ValueError("Password must contain a number")
    if not any(ch in SPECIAL_CHARACTERS for ch in value):
        raise ValueError("Password must contain a special character")
    return value


StrongPassword = Annotated[str, Field(max_length=128), AfterValidator(check_password_strength)]
OtpCode = Annotated[
    str,
    Field(pattern=rf"^\d{{{settings.otp_length}}}$", description="Numeric one-time code"),
]
Name = Annotated[str, Field(min_length=1, max_length=100)]


# ============ Auth Requests ============

class RegisterRequest(BaseModel):
    """Registration request."""

    email: EmailStr
    password: StrongPassword
    firstName: Name
    lastName: Name


class VerifyEmailRequest(BaseModel):
    email: EmailStr
    otp: OtpCode


class LoginRequest(BaseModel):
    """Login request."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class RefreshRequest(BaseModel):
    """Token refresh request, for clients that cannot send cookies."""

    refreshToken: Optional[str] = None


class PasswordResetRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    otp: OtpCode
    newPassword: StrongPassword


class ResendOtpRequest(BaseModel):
    email: EmailStr
    type: OtpPurpose = OtpPurpose.EMAIL_VERIFY


class ChangePasswordRequest(BaseModel):
    currentPassword: str = Field(..., min_length=1, max_length=128)
    newPassword: StrongPassword


class DeleteAccountRequest(BaseModel):
    password: str = Field(..., min_length=1, max_length=128)


class UpdateProfileRequest(BaseModel):
    """Partial profile update. Omitted fields stay unchanged."""

    firstName: Optional[Name] = None
    lastName: Optional[Name] = None
    bio: Optional[str] = Field(None, max_length=500)
    avatarUrl: Optional[str] = Field(None, max_length=500, pattern=r"^(https?://\S+)?$")


# ============ Responses ============

class ProfileResponse(BaseModel):
    bio: Optional[str] = None
    avatarUrl: Optional[str] = None


class AccountResponse(BaseModel):
    """Account information without any secret material."""

    id: str
    email: str
    firstName: str
    lastName: str
    role: str
    isVerified: bool
    isActive: bool
    createdAt: datetime
    profile: Optional[ProfileResponse] = None

    @classmethod
    def from_model(cls, account: AccountModel) -> "AccountResponse":
        profile = None
        if account.profile is not None:
            profile = ProfileResponse(
                bio=account.profile.bio,
                avatarUrl=account.profile.avatar_url,
            )
        return cls(
            id=account.id,
            email=account.email,
            firstName=account.first_name,
            lastName=account.last_name,
            role=account.role,
            isVerified=account.is_verified,
            isActive=account.is_active,
            createdAt=account.created_at,
            profile=profile,
        )


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class AuthResponse(BaseModel):
    """Login/verification result. The refresh token travels only as a cookie."""

    success: bool = True
    message: str
    user: AccountResponse
    accessToken: str
    tokenType: str = "bearer"


class TokenResponse(BaseModel):
    success: bool = True
    message: str
    accessToken: str
    tokenType: str = "bearer"


class AccountEnvelope(BaseModel):
    success: bool = True
    user: AccountResponse


class AccountActionResponse(BaseModel):
    success: bool = True
    message: str
    user: AccountResponse


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


class AccountListResponse(BaseModel):
    success: bool = True
    data: List[AccountResponse]
    pagination: Pagination


class AccountStats(BaseModel):
    totalUsers: int
    adminCount: int
    userCount: int
    verifiedCount: int
    blockedCount: int


class StatsResponse(BaseModel):
    success: bool = True
    stats: AccountStats


class ErrorResponse(BaseModel):
    success: bool = False
    kind: str
    message: str
