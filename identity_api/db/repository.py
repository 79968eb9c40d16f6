"""
Account persistence.
"""

import logging
from typing import Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from identity_api.core.exceptions import ConflictError
from identity_api.db.models import AccountModel, AccountRole

logger = logging.getLogger(__name__)


class AccountRepository:
    """Data access for accounts. Callers own the transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, account_id: str) -> Optional[AccountModel]:
        """Get account by ID."""
        return await self.session.get(AccountModel, account_id)

    async def get_by_email(self, email: str) -> Optional[AccountModel]:
        """Get account by normalized email."""
        result = await self.session.execute(
            select(AccountModel).where(AccountModel.email == email)
        )
        return result.scalar_one_or_none()

    async def create(self, account: AccountModel) -> AccountModel:
        """
        Insert a new account.

        Raises:
            ConflictError: If the email is already taken
        """
        self.session.add(account)
        await self.flush()
        return account

    async def upsert_by_email(
        self,
        email: str,
        *,
        password_hash: str,
        first_name: str,
        last_name: str,
    ) -> AccountModel:
        """
        Create an unverified account, or overwrite the pending one for this email.

        Raises:
            ConflictError: If a concurrent insert claimed the email first
        """
        account = await self.get_by_email(email)
        if account is None:
            account = AccountModel(
                email=email,
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
                role=AccountRole.USER.value,
                is_verified=False,
                is_active=True,
                session_version=0,
                profile=None,
            )
            return await self.create(account)

        account.password_hash = password_hash
        account.first_name = first_name
        account.last_name = last_name
        account.is_verified = False
        await self.flush()
        return account

    async def delete(self, account: AccountModel) -> None:
        await self.session.delete(account)
        await self.session.flush()

    async def increment_session_version(self, account: AccountModel) -> int:
        """Atomically bump the session version in the database."""
        # Pending attribute changes go out first so the refresh below keeps them
        await self.flush()
        await self.session.execute(
            update(AccountModel)
            .where(AccountModel.id == account.id)
            .values(session_version=AccountModel.session_version + 1)
            .execution_options(synchronize_session=False)
        )
        await self.session.refresh(account, attribute_names=["session_version"])
        return account.session_version

    async def count(self) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(AccountModel)
        )
        return result.scalar_one()

    async def list(self, skip: int = 0, take: int = 10) -> Sequence[AccountModel]:
        """Accounts ordered newest first."""
        result = await self.session.execute(
            select(AccountModel)
            .order_by(AccountModel.created_at.desc(), AccountModel.id)
            .offset(skip)
            .limit(take)
        )
        return result.scalars().all()

    async def stats(self) -> dict:
        """Account counts by role and state."""
        result = await self.session.execute(
            select(
                func.count(),
                func.count().filter(AccountModel.role == AccountRole.ADMIN.value),
                func.count().filter(AccountModel.role == AccountRole.USER.value),
                func.count().filter(AccountModel.is_verified.is_(True)),
                func.count().filter(AccountModel.is_active.is_(False)),
            ).select_from(AccountModel)
        )
        total, admins, users, verified, blocked = result.one()
        return {
            "total": total,
            "admins": admins,
            "users": users,
            "verified": verified,
            "blocked": blocked,
        }

    async def flush(self) -> None:
        """
        Flush pending changes, surfacing unique violations as conflicts.

        Raises:
            ConflictError: On a unique-constraint violation
        """
        try:
            await self.session.flush()
        except IntegrityError as e:
            logger.warning(f"Integrity error while saving account: {e.orig}")
            raise ConflictError(
                f"Unique constraint violated: {e.orig}",
                user_message="An account with this email already exists.",
            ) from e
