"""Password hashing and token helpers.

Access tokens are short-lived JWTs that name only the user. Store scope is
never carried in a token: it comes from the store header on every request and
is authorized against memberships there. Refresh tokens are opaque random
strings; only their SHA-256 digest is stored.
"""
import hashlib
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from app.settings import get_settings

settings = get_settings()

ACCESS_TOKEN_TYPE = "access"


@dataclass(frozen=True)
class AccessClaims:
    user_id: uuid.UUID
    expires_at: datetime


def hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode(), bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)).decode()


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode(), hashed.encode())
    except ValueError:
        # stored value is not a bcrypt hash
        return False


def create_access_token(user_id: uuid.UUID, now: datetime | None = None) -> str:
    issued = now or datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": ACCESS_TOKEN_TYPE,
        "iat": issued,
        "exp": issued + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> AccessClaims:
    """Raises ``JWTError`` for anything that is not a valid, unexpired access token naming a user."""
    payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise JWTError("Wrong token type")
    try:
        user_id = uuid.UUID(payload["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise JWTError("Token subject is not a user id") from exc
    return AccessClaims(user_id=user_id, expires_at=datetime.fromtimestamp(payload["exp"], timezone.utc))


def hash_refresh_token(raw: str) -> str:
    return hashlib.sha256(raw.encode()).hexdigest()


def generate_refresh_token() -> tuple[str, str]:
    raw = secrets.token_urlsafe(48)
    return raw, hash_refresh_token(raw)


def refresh_token_expiry(now: datetime) -> datetime:
    return now + timedelta(days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS)
