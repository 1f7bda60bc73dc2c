import logging
import uuid
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth.models import RefreshToken, User
from app.core.auth.schemas import SignupRequest
from app.core.auth.security import (
    create_access_token,
    generate_refresh_token,
    hash_password,
    hash_refresh_token,
    refresh_token_expiry,
    verify_password,
)

logger = logging.getLogger(__name__)


class AuthResult:
    def __init__(self, access_token: str, refresh_token: str):
        self.access_token = access_token
        self.refresh_token = refresh_token


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id, User.deleted_at.is_(None)))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email.lower(), User.deleted_at.is_(None)))
    return result.scalar_one_or_none()


async def create_user(db: AsyncSession, data: SignupRequest) -> User:
    user = User(email=data.email.lower(), hashed_password=hash_password(data.password), full_name=data.full_name)
    db.add(user)
    await db.flush()
    await db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


async def _issue_tokens(db: AsyncSession, user_id: uuid.UUID, now: datetime) -> AuthResult:
    raw_refresh, refresh_hash = generate_refresh_token()
    db.add(RefreshToken(
        user_id=user_id,
        token_hash=refresh_hash,
        expires_at=refresh_token_expiry(now),
    ))
    await db.flush()
    return AuthResult(access_token=create_access_token(user_id, now), refresh_token=raw_refresh)


class LocalAuthProvider:
    async def login(self, db: AsyncSession, email: str, password: str) -> AuthResult:
        user = await get_user_by_email(db, email)

        if not user or not user.hashed_password or not verify_password(password, user.hashed_password):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
        if user.status != "active":
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account suspended")

        return await _issue_tokens(db, user.id, datetime.now(timezone.utc))


_provider = LocalAuthProvider()


def get_auth_provider() -> LocalAuthProvider:
    return _provider


async def refresh_tokens(db: AsyncSession, raw_token: str) -> AuthResult:
    token_hash = hash_refresh_token(raw_token)
    result = await db.execute(select(RefreshToken).where(RefreshToken.token_hash == token_hash))
    db_token: RefreshToken | None = result.scalar_one_or_none()

    now = datetime.now(timezone.utc)
    if not db_token or db_token.revoked_at is not None or db_token.expires_at.replace(tzinfo=timezone.utc) < now:
        raise HTTPException(status_code=401, detail="Invalid or expired refresh token")

    user = await get_user(db, db_token.user_id)
    if not user or user.status != "active":
        logger.warning("Refused token refresh for inactive user %s", db_token.user_id)
        raise HTTPException(status_code=401, detail="User not found or inactive")

    db_token.revoked_at = now
    return await _issue_tokens(db, user.id, now)


async def logout(db: AsyncSession, raw_token: str) -> None:
    token_hash = hash_refresh_token(raw_token)
    result = await db.execute(select(RefreshToken).where(RefreshToken.token_hash == token_hash))
    db_token: RefreshToken | None = result.scalar_one_or_none()
    if db_token and db_token.revoked_at is None:
        db_token.revoked_at = datetime.now(timezone.utc)
        await db.flush()
