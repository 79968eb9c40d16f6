"""
Refresh-session persistence.

Each account has at most one live refresh session, stored as the fingerprint
of its refresh token, plus a session version that every issued token embeds.
Saving a new refresh token silently orphans the previous one. Concurrent
saves are last-write-wins: the losing caller's token no longer matches and
fails on its next use.
"""

import logging

from identity_api.core.exceptions import NotFoundError
from identity_api.core.security import fingerprint
from identity_api.db.models import AccountModel
from identity_api.db.repository import AccountRepository

logger = logging.getLogger(__name__)


class SessionStore:
    """Source of truth for whether a session is still valid."""

    def __init__(self, repository: AccountRepository):
        self.repository = repository

    async def _load(self, account_id: str) -> AccountModel:
        account = await self.repository.get_by_id(account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found")
        return account

    async def save(self, account_id: str, refresh_token: str) -> None:
        """Make this refresh token the account's only live session."""
        account = await self._load(account_id)
        account.refresh_token_hash = fingerprint(refresh_token)
        await self.repository.flush()

    async def matches(self, account_id: str, refresh_token: str) -> bool:
        """Whether the supplied refresh token is the stored live session."""
        account = await self.repository.get_by_id(account_id)
        if account is None or account.refresh_token_hash is None:
            return False
        return fingerprint(refresh_token) == account.refresh_token_hash

    async def clear(self, account_id: str) -> None:
        """Drop the live refresh session, if any."""
        account = await self._load(account_id)
        account.refresh_token_hash = None
        await self.repository.flush()

    async def bump_version(self, account_id: str) -> int:
        """Invalidate every token issued before now. Returns the new version."""
        account = await self._load(account_id)
        return await self.repository.increment_session_version(account)

    async def revoke(self, account_id: str) -> int:
        """Clear the refresh session and bump the version together."""
        account = await self._load(account_id)
        account.refresh_token_hash = None
        version = await self.repository.increment_session_version(account)
        logger.info(f"Revoked sessions for account {account_id} (version {version})")
        return version
