"""
Tests for the admin bootstrap script.
"""

import importlib.util
from pathlib import Path

import pytest

from identity_api.core.security import verify_password
from identity_api.db.models import AccountRole
from identity_api.db.repository import AccountRepository

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "create_admin.py"


def load_script():
    script_spec = importlib.util.spec_from_file_location("create_admin", SCRIPT)
    module = importlib.util.module_from_spec(script_spec)
    script_spec.loader.exec_module(module)
    return module


class TestCreateAdmin:
    @pytest.mark.asyncio
    async def test_creates_verified_admin(self, test_database):
        script = load_script()

        await script.create_admin(test_database, "root@example.com", "Adm1n!pass", "Site", "Admin")

        async with test_database.session_maker() as session:
            account = await AccountRepository(session).get_by_email("root@example.com")
            assert account.role == AccountRole.ADMIN.value
            assert account.is_verified is True
            assert account.is_active is True
            assert account.profile is not None
            assert verify_password("Adm1n!pass", account.password_hash)

    @pytest.mark.asyncio
    async def test_promotes_existing_account(self, test_database):
        script = load_script()
        await script.create_admin(test_database, "root@example.com", "Adm1n!pass", "Site", "Admin")

        await script.create_admin(test_database, "root@example.com", "N3w!password", "Site", "Admin")

        async with test_database.session_maker() as session:
            repository = AccountRepository(session)
            account = await repository.get_by_email("root@example.com")
            assert await repository.count() == 1
            assert account.session_version == 1
            assert verify_password("N3w!password", account.password_hash)
