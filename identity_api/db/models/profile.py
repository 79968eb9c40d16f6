"""
Profile model, provisioned when an account verifies its email.
"""

from typing import TYPE_CHECKING, Optional

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from identity_api.db.database import Base
from identity_api.db.models.base import TimestampMixin

if TYPE_CHECKING:
    from identity_api.db.models.account import AccountModel


class ProfileModel(TimestampMixin, Base):
    """Optional public details of an account."""

    __tablename__ = "profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    account: Mapped["AccountModel"] = relationship(
        "AccountModel",
        back_populates="profile",
    )
