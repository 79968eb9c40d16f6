"""
Append-only audit trail of account mutations.

Rows reference the entity by id only, without a foreign key, so history
outlives deleted accounts.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from identity_api.core.clock import utcnow
from identity_api.db.database import Base


class AuditAction(str, Enum):
    REGISTER = "REGISTER"
    VERIFY_EMAIL = "VERIFY_EMAIL"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    REFRESH_TOKEN = "REFRESH_TOKEN"
    REQUEST_PASSWORD_RESET = "REQUEST_PASSWORD_RESET"
    RESET_PASSWORD = "RESET_PASSWORD"
    RESEND_OTP = "RESEND_OTP"
    REVOKE_SESSIONS = "REVOKE_SESSIONS"
    CHANGE_PASSWORD = "CHANGE_PASSWORD"
    BLOCK_USER = "BLOCK_USER"
    UNBLOCK_USER = "UNBLOCK_USER"
    DELETE_ACCOUNT = "DELETE_ACCOUNT"
    UPDATE_PROFILE = "UPDATE_PROFILE"


class AuditLogModel(Base):
    """One recorded action against an entity."""

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    detail: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
