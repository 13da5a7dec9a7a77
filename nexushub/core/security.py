"""
Credential handling for NexusHub accounts.

Access and refresh JWTs are signed with separate secrets (python-jose).
Passwords go through bcrypt (passlib). Email verification and password
reset links carry a random token; only its SHA-256 digest is stored.
"""
from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from nexushub.core.config import settings

# ── Passwords ─────────────────────────────────────────────────────────────────

_bcrypt = CryptContext(schemes=["bcrypt"], deprecated="auto")

_PASSWORD_RULES: tuple[tuple[str, Any], ...] = (
    ("Password must be at least 8 characters long", lambda p: len(p) >= 8),
    ("Password must contain at least one uppercase letter", lambda p: any(c.isupper() for c in p)),
    ("Password must contain at least one digit", lambda p: any(c.isdigit() for c in p)),
)


def hash_password(plain: str) -> str:
    return _bcrypt.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    return _bcrypt.verify(plain, hashed)


def random_password_hash() -> str:
    """OAuth accounts get a hash of a throwaway secret so password login never matches."""
    return hash_password(secrets.token_urlsafe(32))


def validate_password_strength(password: str) -> str:
    """Pydantic-friendly check: returns the password or raises ValueError on the first broken rule."""
    for message, rule in _PASSWORD_RULES:
        if not rule(password):
            raise ValueError(message)
    return password


# ── Session tokens (JWT) ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class _TokenKind:
    name: str
    secret: str
    lifetime: timedelta


def _access_kind() -> _TokenKind:
    return _TokenKind(
        "access", settings.SECRET_KEY, timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )


def _refresh_kind() -> _TokenKind:
    return _TokenKind(
        "refresh", settings.REFRESH_SECRET_KEY, timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    )


def _oauth_state_kind() -> _TokenKind:
    return _TokenKind(
        "oauth_state",
        settings.SECRET_KEY,
        timedelta(minutes=settings.OAUTH_STATE_EXPIRE_MINUTES),
    )


def _issue(kind: _TokenKind, user_id: str) -> str:
    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": user_id,
        "type": kind.name,
        "iat": issued_at,
        "exp": issued_at + kind.lifetime,
        # two tokens minted in the same second must still differ
        "jti": secrets.token_hex(16),
    }
    return jwt.encode(claims, kind.secret, algorithm=settings.ALGORITHM)


def _read(kind: _TokenKind, token: str) -> dict[str, Any]:
    claims = jwt.decode(token, kind.secret, algorithms=[settings.ALGORITHM])
    if claims.get("type") != kind.name:
        raise JWTError(f"Expected a {kind.name} token")
    return claims


def create_access_token(user_id: str) -> str:
    return _issue(_access_kind(), user_id)


def create_refresh_token(user_id: str) -> str:
    return _issue(_refresh_kind(), user_id)


def decode_access_token(token: str) -> dict[str, Any]:
    """Claims of a valid access token. Raises JWTError otherwise."""
    return _read(_access_kind(), token)


def decode_refresh_token(token: str) -> dict[str, Any]:
    """Claims of a valid refresh token. Raises JWTError otherwise."""
    return _read(_refresh_kind(), token)


def create_oauth_state(provider: str) -> str:
    """Signed ``state`` for an OAuth round trip; the subject is the provider name."""
    return _issue(_oauth_state_kind(), provider)


def decode_oauth_state(token: str) -> dict[str, Any]:
    return _read(_oauth_state_kind(), token)


# ── One-time link tokens ──────────────────────────────────────────────────────

def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def generate_one_time_token() -> tuple[str, str]:
    """(raw, digest): the raw value is mailed, the digest is persisted."""
    raw = secrets.token_urlsafe(32)
    return raw, hash_token(raw)
