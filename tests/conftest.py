"""
Shared test fixtures and configuration for pytest.
"""

import os
import re
from datetime import datetime, timezone
from typing import AsyncGenerator, Callable, Optional

import pytest

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_ACCESS_SECRET_KEY"] = "test-access-secret-for-testing-only"
os.environ["JWT_REFRESH_SECRET_KEY"] = "test-refresh-secret-for-testing-only"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SMTP_HOST"] = ""

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

from identity_api.api.deps import get_email_dispatcher
from identity_api.core.email import EmailDispatcher
from identity_api.core.otp import OtpEngine
from identity_api.core.security import hash_password
from identity_api.core.tokens import TokenClaims, TokenIssuer, TokenPair
from identity_api.db.database import Database, get_db_session
from identity_api.db.models import AccountModel, AccountRole, ProfileModel
from identity_api.main import app
from identity_api.services.identity_service import IdentityService


# Test database URL (in-memory SQLite for unit tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_PASSWORD = "Passw0rd!"


class RecordingMailer(EmailDispatcher):
    """Email dispatcher that keeps messages instead of sending them."""

    def __init__(self):
        super().__init__()
        self.sent: list[dict] = []

    async def send(self, to: str, subject: str, html_body: str, text_body: str) -> None:
        self.sent.append(
            {"to": to, "subject": subject, "html": html_body, "text": text_body}
        )

    def last_code(self, to: Optional[str] = None) -> str:
        """The most recent OTP mailed (to the given address)."""
        for message in reversed(self.sent):
            if to is not None and message["to"] != to:
                continue
            match = re.search(r"code is: (\d+)", message["text"])
            if match:
                return match.group(1)
        raise AssertionError(f"No OTP mail found for {to!r}")


# ============ Database Fixtures ============

@pytest.fixture
async def test_database() -> AsyncGenerator[Database, None]:
    """Initialized in-memory database shared by one connection."""
    database = Database(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await database.init(create_tables=True)
    yield database
    await database.shutdown()


@pytest.fixture
async def db_session(test_database) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with test_database.session_maker() as session:
        yield session
        await session.rollback()


# ============ Service Fixtures ============

@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def token_issuer() -> TokenIssuer:
    return TokenIssuer.from_settings()


@pytest.fixture
def otp_engine(mailer) -> OtpEngine:
    return OtpEngine.from_settings(mailer)


@pytest.fixture
def identity_service(db_session, token_issuer, otp_engine, mailer) -> IdentityService:
    return IdentityService(db_session, token_issuer, otp_engine, mailer)


# ============ Client Fixtures ============

@pytest.fixture
async def test_client(db_session, test_database, mailer) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database and mailer overrides."""

    async def override_get_db_session():
        yield db_session

    app.state.database = test_database
    app.dependency_overrides[get_db_session] = override_get_db_session
    app.dependency_overrides[get_email_dispatcher] = lambda: mailer

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()


# ============ Account Fixtures ============

@pytest.fixture
def make_account(db_session) -> Callable:
    """Factory inserting an account directly into the database."""

    async def _make(
        email: str = "user@example.com",
        password: str = TEST_PASSWORD,
        role: AccountRole = AccountRole.USER,
        is_verified: bool = True,
        is_active: bool = True,
    ) -> AccountModel:
        account = AccountModel(
            email=email,
            password_hash=hash_password(password),
            first_name="Test",
            last_name="User",
            role=role.value,
            is_verified=is_verified,
            is_active=is_active,
            session_version=0,
            profile=ProfileModel() if is_verified else None,
            created_at=datetime.now(timezone.utc),
        )
        db_session.add(account)
        await db_session.flush()
        return account

    return _make


@pytest.fixture
async def test_user(make_account) -> AccountModel:
    """A verified, active standard user."""
    return await make_account(email="test@example.com")


@pytest.fixture
async def admin_user(make_account) -> AccountModel:
    """A verified, active administrator."""
    return await make_account(email="admin@example.com", role=AccountRole.ADMIN)


def tokens_for(issuer: TokenIssuer, account: AccountModel) -> TokenPair:
    """Tokens at the account's current session version (not stored as a session)."""
    return issuer.issue_pair(
        TokenClaims(
            account_id=account.id,
            role=account.role,
            session_version=account.session_version,
        )
    )


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(token_issuer, test_user) -> dict:
    """Authorization headers with a test user access token."""
    return bearer(tokens_for(token_issuer, test_user).access_token)


@pytest.fixture
def admin_headers(token_issuer, admin_user) -> dict:
    return bearer(tokens_for(token_issuer, admin_user).access_token)
