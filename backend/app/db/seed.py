import asyncio
import logging
import os

from sqlalchemy import select

from app.core.auth.models import User
from app.core.auth.security import hash_password
from app.core.memberships.models import StoreMember, StoreRole
from app.core.storeids.translator import get_translator
from app.core.tenants.models import Tenant, TenantStatus
from app.db.session import get_session
from app.log import configure_logging

logger = logging.getLogger(__name__)


async def seed() -> None:
    store_name = os.getenv("SEED_STORE_NAME", "Demo Store")
    store_subdomain = os.getenv("SEED_STORE_SUBDOMAIN", "demo-store")
    external_store_id = os.getenv("SEED_EXTERNAL_STORE_ID")
    admin_email = os.getenv("SEED_ADMIN_EMAIL", "admin@storefront.local")
    admin_password = os.getenv("SEED_ADMIN_PASSWORD", "changeme123!")

    async with get_session() as db:
        existing_user = await db.execute(select(User).where(User.email == admin_email.lower()))
        user = existing_user.scalar_one_or_none()

        if not user:
            user = User(
                email=admin_email.lower(),
                hashed_password=hash_password(admin_password),
                full_name="Platform Superadmin",
                is_superadmin=True,
            )
            db.add(user)
            await db.flush()
            logger.info("Superadmin: %s", user.email)
        else:
            logger.info("Superadmin exists: %s", user.email)

        existing = await db.execute(select(Tenant).where(Tenant.subdomain == store_subdomain))
        tenant = existing.scalar_one_or_none()

        if not tenant:
            tenant = Tenant(
                name=store_name,
                subdomain=store_subdomain,
                slug=store_subdomain,
                status=TenantStatus.ACTIVE.value,
                owner_email=user.email,
                extra={},
            )
            db.add(tenant)
            await db.flush()
            db.add(StoreMember(store_id=tenant.id, user_id=user.id, role=StoreRole.OWNER.value, is_active=True))
            await db.flush()
            logger.info("Store: %s (%s)", tenant.subdomain, tenant.id)
        else:
            logger.info("Store exists: %s", tenant.subdomain)

        if external_store_id:
            await get_translator().create_mapping(db, tenant.id, external_store_id)
            logger.info("Linked %s to %s", tenant.id, external_store_id)


if __name__ == "__main__":
    configure_logging()
    asyncio.run(seed())
