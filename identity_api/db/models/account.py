"""
Account model: credentials, verification state and session epoch.
"""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from identity_api.db.database import Base
from identity_api.db.models.base import TimestampMixin

if TYPE_CHECKING:
    from identity_api.db.models.profile import ProfileModel


class AccountRole(str, Enum):
    """Closed set of roles. Flat membership, no hierarchy."""

    ADMIN = "ADMIN"
    USER = "USER"


class AccountModel(TimestampMixin, Base):
    """User account for authentication and session tracking."""

    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    email: Mapped[str] = mapped_column(
        String(320),
        unique=True,
        nullable=False,
        index=True,
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20),
        default=AccountRole.USER.value,
        nullable=False,
    )

    # Verification
    is_verified: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    otp_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    otp_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # False means blocked by an administrator
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    # Sessions
    session_version: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    refresh_token_hash: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
    )

    # Relationships
    profile: Mapped[Optional["ProfileModel"]] = relationship(
        "ProfileModel",
        back_populates="account",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == AccountRole.ADMIN.value

    @property
    def has_pending_otp(self) -> bool:
        return self.otp_hash is not None and self.otp_expires_at is not None
