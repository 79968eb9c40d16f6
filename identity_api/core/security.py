"""
Credential hashing utilities.

Passwords use bcrypt through passlib. OTPs and refresh tokens are stored as
SHA-256 fingerprints so raw secrets never sit in the database.
"""

import hashlib

from passlib.context import CryptContext

from identity_api.config import settings


# Password hashing context
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)


def hash_password(password: str) -> str:
    """Hash a password for storage."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def dummy_verify() -> None:
    """Spend the time of a real verification when there is no hash to check."""
    pwd_context.dummy_verify()


def fingerprint(secret: str) -> str:
    """
    Keyless SHA-256 digest of a secret, hex encoded.

    Only for high-entropy or short-lived secrets (OTPs, refresh tokens).
    Never use it for passwords.
    """
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def normalize_email(email: str) -> str:
    """Canonical form used for lookups and uniqueness."""
    return email.strip().lower()
