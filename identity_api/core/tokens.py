"""
JWT access/refresh token issuing and verification.

Access and refresh tokens are signed with different secrets, so one kind can
never be replayed as the other. Verification checks signature, expiry and
token kind only; session revocation is checked by the caller against the
account's stored state.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel

from identity_api.config import Settings, settings as default_settings
from identity_api.core.clock import Clock, utcnow
from identity_api.core.exceptions import InvalidTokenError, TokenExpiredError


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class TokenClaims(BaseModel):
    """Identity claims embedded in every token."""

    account_id: str
    role: str
    session_version: int


class TokenData(TokenClaims):
    """Claims extracted from a verified token."""

    token_type: TokenKind
    token_id: str
    exp: datetime


class TokenPair(BaseModel):
    """Access and refresh token pair."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class TokenIssuer:
    """Mints and verifies signed access and refresh tokens."""

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        access_expire_minutes: int = 15,
        refresh_expire_days: int = 7,
        clock: Clock = utcnow,
    ):
        if access_secret == refresh_secret:
            raise ValueError("Access and refresh tokens need distinct secrets")
        self._secrets = {
            TokenKind.ACCESS: access_secret,
            TokenKind.REFRESH: refresh_secret,
        }
        self._algorithm = algorithm
        self.access_ttl = timedelta(minutes=access_expire_minutes)
        self.refresh_ttl = timedelta(days=refresh_expire_days)
        self._clock = clock

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "TokenIssuer":
        config = config or default_settings
        return cls(
            access_secret=config.jwt_access_secret_key,
            refresh_secret=config.jwt_refresh_secret_key,
            algorithm=config.jwt_algorithm,
            access_expire_minutes=config.jwt_access_expire_minutes,
            refresh_expire_days=config.jwt_refresh_expire_days,
        )

    def _encode(self, claims: TokenClaims, kind: TokenKind, ttl: timedelta) -> str:
        now = self._clock()
        payload = {
            "sub": claims.account_id,
            "role": claims.role,
            "session_version": claims.session_version,
            "type": kind.value,
            "jti": uuid4().hex,
            "iat": now,
            "exp": now + ttl,
        }
        return jwt.encode(payload, self._secrets[kind], algorithm=self._algorithm)

    def issue_access_token(self, claims: TokenClaims) -> str:
        """Create a short-lived access token."""
        return self._encode(claims, TokenKind.ACCESS, self.access_ttl)

    def issue_refresh_token(self, claims: TokenClaims) -> str:
        """Create a long-lived refresh token."""
        return self._encode(claims, TokenKind.REFRESH, self.refresh_ttl)

    def issue_pair(self, claims: TokenClaims) -> TokenPair:
        """Create both access and refresh tokens for the same claims."""
        return TokenPair(
            access_token=self.issue_access_token(claims),
            refresh_token=self.issue_refresh_token(claims),
        )

    def verify(self, token: str, kind: TokenKind) -> TokenData:
        """
        Decode and validate a token of the given kind.

        Args:
            token: Encoded JWT
            kind: Expected token kind, selects the verification secret

        Returns:
            TokenData with the embedded claims

        Raises:
            TokenExpiredError: If the signature is valid but the token expired
            InvalidTokenError: On a bad signature, malformed token or wrong kind
        """
        try:
            payload = jwt.decode(
                token,
                self._secrets[kind],
                algorithms=[self._algorithm],
            )
        except ExpiredSignatureError as e:
            raise TokenExpiredError(f"{kind.value} token expired") from e
        except JWTError as e:
            raise InvalidTokenError(f"{kind.value} token rejected: {e}") from e

        if payload.get("type") != kind.value:
            raise InvalidTokenError(
                f"Expected {kind.value} token, got {payload.get('type')!r}",
                user_message="Invalid token type.",
            )

        try:
            return TokenData(
                account_id=payload["sub"],
                role=payload["role"],
                session_version=payload["session_version"],
                token_type=kind,
                token_id=payload["jti"],
                exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidTokenError(f"Malformed {kind.value} token claims") from e
