"""Store membership queries and mutations.

``has_store_access`` is the authorization check used when resolving a store
id for a request; the role helpers back the per-route role requirements.
"""
import logging
import uuid

from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.memberships.models import StoreMember, StoreRole
from app.core.tenants.models import Tenant
from app.db.base import utcnow

logger = logging.getLogger(__name__)


def _active_membership(user_id: uuid.UUID, store_id: uuid.UUID, column=StoreMember.id):
    return (
        select(column)
        .join(Tenant, Tenant.id == StoreMember.store_id)
        .where(
            StoreMember.user_id == user_id,
            StoreMember.store_id == store_id,
            StoreMember.is_active.is_(True),
            Tenant.deleted_at.is_(None),
        )
    )


async def has_store_access(db: AsyncSession, user_id: uuid.UUID, store_id: uuid.UUID) -> bool:
    result = await db.execute(select(_active_membership(user_id, store_id).exists()))
    return bool(result.scalar())


async def get_member_role(db: AsyncSession, user_id: uuid.UUID, store_id: uuid.UUID) -> StoreRole | None:
    result = await db.execute(_active_membership(user_id, store_id, StoreMember.role))
    role = result.scalar_one_or_none()
    return StoreRole(role) if role else None


async def has_store_role(db: AsyncSession, user_id: uuid.UUID, store_id: uuid.UUID, required: StoreRole) -> bool:
    role = await get_member_role(db, user_id, store_id)
    return role is not None and role.at_least(required)


async def get_member(db: AsyncSession, store_id: uuid.UUID, member_id: uuid.UUID) -> StoreMember | None:
    result = await db.execute(select(StoreMember).where(StoreMember.id == member_id, StoreMember.store_id == store_id))
    return result.scalar_one_or_none()


async def list_members(db: AsyncSession, store_id: uuid.UUID, include_inactive: bool = False) -> list[StoreMember]:
    stmt = select(StoreMember).where(StoreMember.store_id == store_id).order_by(StoreMember.created_at)
    if not include_inactive:
        stmt = stmt.where(StoreMember.is_active.is_(True))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_user_stores(db: AsyncSession, user_id: uuid.UUID) -> list[tuple[Tenant, StoreRole]]:
    result = await db.execute(
        select(Tenant, StoreMember.role)
        .join(StoreMember, StoreMember.store_id == Tenant.id)
        .where(StoreMember.user_id == user_id, StoreMember.is_active.is_(True), Tenant.deleted_at.is_(None))
        .order_by(Tenant.name)
    )
    return [(tenant, StoreRole(role)) for tenant, role in result.all()]


async def add_member(
    db: AsyncSession,
    store_id: uuid.UUID,
    user_id: uuid.UUID,
    role: StoreRole,
    invited_by: uuid.UUID | None = None,
) -> StoreMember:
    """Add a member, reactivating a previously deactivated row for the same user."""
    result = await db.execute(select(StoreMember).where(StoreMember.store_id == store_id, StoreMember.user_id == user_id))
    member = result.scalar_one_or_none()

    if member is not None and member.is_active:
        raise HTTPException(409, "User is already a member of this store")

    if member is None:
        member = StoreMember(store_id=store_id, user_id=user_id)
        db.add(member)

    member.role = role.value
    member.is_active = True
    member.invited_by = invited_by
    member.invited_at = utcnow()
    await db.flush()
    await db.refresh(member)
    logger.info("Added user %s to store %s as %s", user_id, store_id, role.value)
    return member


async def _count_active_owners(db: AsyncSession, store_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(StoreMember)
        .where(StoreMember.store_id == store_id, StoreMember.role == StoreRole.OWNER.value, StoreMember.is_active.is_(True))
    )
    return result.scalar_one()


async def update_member_role(db: AsyncSession, member: StoreMember, role: StoreRole, actor_role: StoreRole) -> StoreMember:
    # Only owners may hand out or take away ownership
    if (role is StoreRole.OWNER or member.role == StoreRole.OWNER.value) and actor_role is not StoreRole.OWNER:
        raise HTTPException(403, "Only owners can grant or change the owner role")
    if member.role == StoreRole.OWNER.value and role is not StoreRole.OWNER:
        if await _count_active_owners(db, member.store_id) <= 1:
            raise HTTPException(409, "Store must keep at least one owner")

    member.role = role.value
    await db.flush()
    await db.refresh(member)
    return member


async def deactivate_member(db: AsyncSession, member: StoreMember) -> None:
    if not member.is_active:
        return
    if member.role == StoreRole.OWNER.value and await _count_active_owners(db, member.store_id) <= 1:
        raise HTTPException(409, "Store must keep at least one owner")
    member.is_active = False
    await db.flush()
    logger.info("Deactivated membership %s in store %s", member.id, member.store_id)
