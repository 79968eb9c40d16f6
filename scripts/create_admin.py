#!/usr/bin/env python3
"""
Create or promote an administrator account.

The account is created verified and active, with a profile. An existing
account with the same email is promoted to ADMIN and its password replaced,
which also revokes its sessions.

Usage:
    python scripts/create_admin.py admin@example.com --first-name Site --last-name Admin
    ADMIN_PASSWORD='S3cure!pass' python scripts/create_admin.py admin@example.com
"""

import argparse
import asyncio
import getpass
import logging
import os
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from identity_api.config import get_settings
from identity_api.core.security import hash_password, normalize_email
from identity_api.db.database import Database
from identity_api.db.models import AccountModel, AccountRole, ProfileModel
from identity_api.db.repository import AccountRepository
from identity_api.models.schemas import check_password_strength

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def create_admin(
    database: Database,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
) -> AccountModel:
    """Insert a verified ADMIN account, or promote the existing one."""
    async with database.session_maker() as session:
        accounts = AccountRepository(session)
        account = await accounts.get_by_email(email)

        if account is None:
            account = await accounts.create(
                AccountModel(
                    email=email,
                    password_hash=hash_password(password),
                    first_name=first_name,
                    last_name=last_name,
                    role=AccountRole.ADMIN.value,
                    is_verified=True,
                    is_active=True,
                    session_version=0,
                    profile=ProfileModel(),
                )
            )
            logger.info(f"Created admin account {account.id} ({email})")
        else:
            account.role = AccountRole.ADMIN.value
            account.password_hash = hash_password(password)
            account.is_verified = True
            account.is_active = True
            account.otp_hash = None
            account.otp_expires_at = None
            account.refresh_token_hash = None
            if account.profile is None:
                account.profile = ProfileModel()
            await accounts.increment_session_version(account)
            logger.info(f"Promoted existing account {account.id} ({email}) to admin")

        await session.commit()
        return account


async def main_async(email: str, password: str, first_name: str, last_name: str) -> None:
    """Main async function."""
    settings = get_settings()
    database = Database(settings.database_url)
    await database.init(create_tables=settings.database_auto_create)
    try:
        await create_admin(database, email, password, first_name, last_name)
    finally:
        await database.shutdown()


def main():
    parser = argparse.ArgumentParser(description="Create or promote an admin account")
    parser.add_argument("email", help="Admin email address")
    parser.add_argument("--first-name", default="Admin")
    parser.add_argument("--last-name", default="User")
    args = parser.parse_args()

    password = os.environ.get("ADMIN_PASSWORD") or getpass.getpass("Admin password: ")
    try:
        check_password_strength(password)
    except ValueError as e:
        parser.error(str(e))

    asyncio.run(
        main_async(normalize_email(args.email), password, args.first_name, args.last_name)
    )


if __name__ == "__main__":
    main()
