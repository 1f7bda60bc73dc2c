import uuid
from dataclasses import dataclass
from typing import Annotated, AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth.models import User
from app.core.auth.security import decode_access_token
from app.core.auth.service import get_user
from app.core.memberships.models import StoreRole
from app.core.memberships.service import get_member_role
from app.core.storeids.errors import InsufficientRole, MissingStoreId
from app.core.storeids.identifiers import accepted_formats_message
from app.core.storeids.translator import get_translator
from app.db.session import AsyncSessionLocal, set_rls_context
from app.settings import get_settings

settings = get_settings()
bearer = HTTPBearer(auto_error=False)


@dataclass
class CurrentUser:
    user: User
    user_id: uuid.UUID


@dataclass
class StoreContext:
    user: User
    user_id: uuid.UUID
    store_id: uuid.UUID
    external_store_id: str | None
    role: StoreRole | None = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        async with session.begin():
            yield session


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer)],
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    if not credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        user_id = decode_access_token(credentials.credentials).user_id
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    await set_rls_context(db, None, user_id)

    user = await get_user(db, user_id)
    if not user or user.status != "active":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")

    return CurrentUser(user=user, user_id=user_id)


async def require_store(
    request: Request,
    current: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> StoreContext:
    """Resolve the store header (either id format) and authorize the caller against it."""
    raw = request.headers.get(settings.STORE_ID_HEADER)
    if not raw:
        raise MissingStoreId(
            f"Missing {settings.STORE_ID_HEADER} header. All store-scoped requests must include it.\n"
            + accepted_formats_message()
        )

    ids = await get_translator().normalize_and_authorize(db, raw.strip(), current.user_id)
    await set_rls_context(db, ids.store_id, current.user_id)
    role = await get_member_role(db, current.user_id, ids.store_id)

    return StoreContext(
        user=current.user,
        user_id=current.user_id,
        store_id=ids.store_id,
        external_store_id=ids.external_store_id,
        role=role,
    )


def require_store_role(minimum: StoreRole):
    async def checker(store: StoreContext = Depends(require_store)) -> StoreContext:
        if store.role is None or not store.role.at_least(minimum):
            raise InsufficientRole(f"Insufficient permissions. Required role: {minimum.value} or higher", required=minimum.value)
        return store

    return checker


async def require_superadmin(
    current: CurrentUser = Depends(get_current_user),
) -> None:
    if not current.user.is_superadmin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Superadmin required")
