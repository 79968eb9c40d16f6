"""
SQLAlchemy ORM models package.

Re-exports all models for convenient imports.
"""

from identity_api.db.models.account import AccountModel, AccountRole
from identity_api.db.models.profile import ProfileModel
from identity_api.db.models.audit import AuditAction, AuditLogModel

__all__ = [
    # Account
    "AccountModel",
    "AccountRole",
    # Profile
    "ProfileModel",
    # Audit
    "AuditAction",
    "AuditLogModel",
]
