"""One-time codes, JWT issuance/verification and password hashing."""
from __future__ import annotations

import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from passlib.context import CryptContext

from .errors import ConfigurationError, TokenExpiredError, TokenInvalidError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

CODE_DIGITS = 6
_CODE_RANGE = 10**CODE_DIGITS
_DRAW_RANGE = 2**32
# Largest multiple of the code range below 2**32; draws at or above it are rejected
_DRAW_LIMIT = (_DRAW_RANGE // _CODE_RANGE) * _CODE_RANGE


def generate_numeric_code() -> str:
    """Return a uniformly distributed 6-digit code from a CSPRNG."""

    while True:
        draw = secrets.randbits(32)
        if draw < _DRAW_LIMIT:
            return f"{draw % _CODE_RANGE:0{CODE_DIGITS}d}"


def codes_match(expected: str | None, submitted: str | None) -> bool:
    """Constant-time comparison of two one-time codes."""

    if not expected or not submitted:
        return False
    return hmac.compare_digest(expected.encode(), submitted.encode())


@dataclass(frozen=True)
class TokenClaims:
    """Decoded, validated JWT claims."""

    account_id: str
    role: str
    token_type: str
    expires_at: datetime


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class TokenCodec:
    """Signs and verifies access and refresh JWTs with separate secrets."""

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl: timedelta = timedelta(minutes=20),
        refresh_ttl: timedelta = timedelta(days=7),
    ) -> None:
        if not access_secret:
            raise ConfigurationError("JWT_SECRET is not configured")
        if not refresh_secret:
            raise ConfigurationError("JWT_REFRESH_SECRET is not configured")
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    def _encode(self, account_id: str, role: str, token_type: str, secret: str, ttl: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload: dict[str, Any] = {
            "sub": str(account_id),
            "role": role,
            "type": token_type,
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
        }
        if token_type == REFRESH_TOKEN_TYPE:
            # Two refresh tokens minted in the same second must still differ
            payload["jti"] = secrets.token_hex(16)
        return jwt.encode(payload, secret, algorithm=ALGORITHM)

    def issue_access_token(self, account_id: str, role: str) -> str:
        return self._encode(account_id, role, ACCESS_TOKEN_TYPE, self._access_secret, self.access_ttl)

    def issue_refresh_token(self, account_id: str, role: str) -> str:
        return self._encode(account_id, role, REFRESH_TOKEN_TYPE, self._refresh_secret, self.refresh_ttl)

    def issue_pair(self, account_id: str, role: str) -> TokenPair:
        return TokenPair(
            access_token=self.issue_access_token(account_id, role),
            refresh_token=self.issue_refresh_token(account_id, role),
        )

    @staticmethod
    def verify_token(token: str, secret: str, expected_type: str) -> TokenClaims:
        """Decode ``token`` and check its type.

        Raises ``TokenExpiredError`` when past expiry and ``TokenInvalidError``
        for every other failure.
        """

        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                secret,
                algorithms=[ALGORITHM],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpiredError() from exc
        except jwt.PyJWTError as exc:
            logger.debug(f"Rejected {expected_type} token: {exc}")
            raise TokenInvalidError() from exc

        if payload.get("type") != expected_type or not payload.get("sub"):
            raise TokenInvalidError()
        return TokenClaims(
            account_id=payload["sub"],
            role=payload.get("role", "user"),
            token_type=payload["type"],
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )

    def verify_access_token(self, token: str) -> TokenClaims:
        return self.verify_token(token, self._access_secret, ACCESS_TOKEN_TYPE)

    def verify_refresh_token(self, token: str) -> TokenClaims:
        return self.verify_token(token, self._refresh_secret, REFRESH_TOKEN_TYPE)


class PasswordHasher:
    """PBKDF2-SHA256 password hashing with a configurable work factor."""

    def __init__(self, rounds: int = 29000) -> None:
        # PBKDF2 instead of bcrypt to avoid bcrypt backend issues
        self._context = CryptContext(
            schemes=["pbkdf2_sha256"],
            deprecated="auto",
            pbkdf2_sha256__rounds=rounds,
        )

    def hash(self, password: str) -> str:
        """Hash a password for storage."""
        return self._context.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        """Check a plain password against the stored hash."""
        return self._context.verify(password, password_hash)

    def dummy_verify(self) -> None:
        """Spend the cost of one verification when there is no hash to check."""
        self._context.dummy_verify()
