import logging
import re
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.memberships.models import StoreMember, StoreRole
from app.core.tenants.models import Tenant, TenantStatus
from app.core.tenants.schemas import TenantAdminUpdate, TenantCreate, TenantUpdate
from app.db.base import utcnow

logger = logging.getLogger(__name__)


def slugify(name: str) -> str:
    cleaned = re.sub(r"[^a-zA-Z0-9\s-]", "", name)
    return re.sub(r"\s+", "-", cleaned.strip()).lower() or "store"


async def _unique_slug(db: AsyncSession, name: str) -> str:
    slug = slugify(name)
    taken = await db.execute(select(Tenant.id).where(Tenant.slug == slug))
    if taken.first() is None:
        return slug
    return f"{slug}-{uuid.uuid4().hex[:6]}"


async def create_tenant(db: AsyncSession, data: TenantCreate, owner_user_id: uuid.UUID | None = None) -> Tenant:
    """Provision a store; the creating user, when given, becomes its owner."""
    tenant = Tenant(
        name=data.name,
        subdomain=data.subdomain,
        slug=await _unique_slug(db, data.name),
        owner_email=data.owner_email,
        plan=data.plan,
        extra={},
    )
    db.add(tenant)
    await db.flush()

    if owner_user_id is not None:
        db.add(StoreMember(store_id=tenant.id, user_id=owner_user_id, role=StoreRole.OWNER.value, is_active=True))
        await db.flush()

    await db.refresh(tenant)
    logger.info("Provisioned store %s (subdomain=%s)", tenant.id, tenant.subdomain)
    return tenant


async def get_tenant(db: AsyncSession, tenant_id: uuid.UUID, include_deleted: bool = False) -> Tenant | None:
    stmt = select(Tenant).where(Tenant.id == tenant_id)
    if not include_deleted:
        stmt = stmt.where(Tenant.deleted_at.is_(None))
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_tenant_by_subdomain(db: AsyncSession, subdomain: str) -> Tenant | None:
    result = await db.execute(select(Tenant).where(Tenant.subdomain == subdomain))
    return result.scalar_one_or_none()


async def find_tenant_ids_by_external_store_id(db: AsyncSession, external_store_id: str, limit: int = 2) -> list[uuid.UUID]:
    """Ids of live tenants linked to ``external_store_id``; more than one means the data is corrupt."""
    result = await db.execute(
        select(Tenant.id)
        .where(Tenant.external_store_id == external_store_id, Tenant.deleted_at.is_(None))
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_tenants(db: AsyncSession, include_deleted: bool = False) -> list[Tenant]:
    stmt = select(Tenant).order_by(Tenant.created_at)
    if not include_deleted:
        stmt = stmt.where(Tenant.deleted_at.is_(None))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def update_tenant(db: AsyncSession, tenant: Tenant, data: TenantUpdate | TenantAdminUpdate) -> Tenant:
    changes = data.model_dump(exclude_none=True)
    new_status = changes.pop("status", None)

    for field, value in changes.items():
        if field == "extra":
            tenant.extra = {**(tenant.extra or {}), **value}
        else:
            setattr(tenant, field, value)

    # archived status and deleted_at always move together
    if new_status == TenantStatus.ARCHIVED.value:
        _mark_archived(tenant)
    elif new_status is not None:
        if tenant.deleted_at is not None:
            logger.info("Restored store %s as %s", tenant.id, new_status)
        tenant.status = new_status
        tenant.deleted_at = None

    await db.flush()
    await db.refresh(tenant)
    return tenant


def _mark_archived(tenant: Tenant) -> None:
    tenant.status = TenantStatus.ARCHIVED.value
    if tenant.deleted_at is None:
        tenant.deleted_at = utcnow()
        logger.info("Archived store %s", tenant.id)


async def archive_tenant(db: AsyncSession, tenant: Tenant) -> None:
    _mark_archived(tenant)
    await db.flush()
