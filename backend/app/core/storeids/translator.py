"""Translation between canonical store ids and external commerce store ids.

The tenant row is the single source of truth for the association: a tenant
carries at most one ``external_store_id`` and a unique index guarantees no two
tenants carry the same one. Forward lookups read that column; reverse lookups
query it.

``normalize_and_authorize`` is what request handling calls: it accepts either
id format, resolves the canonical id, and checks that the caller is an active
member of the store before anything tenant-scoped runs.
"""
import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.memberships import service as memberships
from app.core.storeids.errors import (
    AmbiguousMapping,
    Forbidden,
    InvalidStoreIdFormat,
    MappingConflict,
    NoCanonicalMapping,
    NoExternalMapping,
    NotFound,
    TenantNotFound,
)
from app.core.storeids.identifiers import (
    CanonicalId,
    ExternalId,
    IdFormat,
    accepted_formats_message,
    classify,
    parse_canonical,
    parse_external,
)
from app.core.tenants import service as tenants
from app.core.tenants.models import Tenant
from app.db.base import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizedStoreIds:
    store_id: uuid.UUID
    external_store_id: str | None = None


class StoreIdTranslator:
    def get_format(self, raw: str) -> IdFormat:
        return classify(raw)

    async def to_external(self, db: AsyncSession, store_id: str | uuid.UUID | CanonicalId) -> str:
        """Canonical -> external.

        Raises ``TenantNotFound`` when no live tenant has the id and
        ``NoExternalMapping`` when the tenant exists but was never linked.
        """
        canonical = parse_canonical(store_id)
        tenant = await tenants.get_tenant(db, canonical.value)
        if tenant is None:
            raise TenantNotFound(f"No store found with id {canonical}", store_id=str(canonical))
        if not tenant.external_store_id:
            raise NoExternalMapping(f"Store {canonical} has no linked external store", store_id=str(canonical))
        return tenant.external_store_id

    async def to_canonical(self, db: AsyncSession, external_store_id: str | ExternalId) -> uuid.UUID:
        """External -> canonical. Raises ``NoCanonicalMapping`` when nothing is linked to the id."""
        external = parse_external(external_store_id)
        matches = await tenants.find_tenant_ids_by_external_store_id(db, external.value)
        if not matches:
            raise NoCanonicalMapping(f"No store linked to external store {external}", external_store_id=external.value)
        if len(matches) > 1:
            logger.error("External store %s is linked to several stores: %s", external, matches)
            raise AmbiguousMapping(f"External store {external} is linked to more than one store", external_store_id=external.value)
        return matches[0]

    async def normalize_and_authorize(self, db: AsyncSession, raw_store_id: str, user_id: uuid.UUID) -> NormalizedStoreIds:
        fmt = classify(raw_store_id)

        if fmt is IdFormat.INVALID:
            raise InvalidStoreIdFormat(accepted_formats_message())

        external_store_id: str | None
        if fmt is IdFormat.CANONICAL:
            store_id = uuid.UUID(raw_store_id)
            # The external link is optional; only "not found" is downgraded,
            # infrastructure errors still propagate.
            try:
                external_store_id = await self.to_external(db, CanonicalId(store_id))
            except NotFound:
                external_store_id = None
        else:
            external_store_id = raw_store_id
            store_id = await self.to_canonical(db, ExternalId(raw_store_id))

        if not await memberships.has_store_access(db, user_id, store_id):
            # Same answer whether the store is missing or the user is not a member
            logger.warning("User %s denied access to store %s", user_id, store_id)
            raise Forbidden("User does not have access to store")

        logger.debug("Resolved %s store id to %s (external=%s)", fmt.value, store_id, external_store_id)
        return NormalizedStoreIds(store_id=store_id, external_store_id=external_store_id)

    async def create_mapping(
        self,
        db: AsyncSession,
        store_id: str | uuid.UUID | CanonicalId,
        external_store_id: str | ExternalId,
    ) -> Tenant:
        canonical = parse_canonical(store_id)
        external = parse_external(external_store_id)

        tenant = await tenants.get_tenant(db, canonical.value)
        if tenant is None:
            raise TenantNotFound(f"No store found with id {canonical}", store_id=str(canonical))
        if tenant.external_store_id == external.value:
            return tenant

        holders = await tenants.find_tenant_ids_by_external_store_id(db, external.value)
        if any(holder != tenant.id for holder in holders):
            raise MappingConflict(f"External store {external} is already linked to another store", external_store_id=external.value)

        previous = tenant.external_store_id
        tenant.external_store_id = external.value
        tenant.external_linked_at = utcnow()
        try:
            await db.flush()
        except IntegrityError as exc:
            # Lost the race against a concurrent link, or the id belongs to an archived store
            raise MappingConflict(f"External store {external} is already linked to another store", external_store_id=external.value) from exc

        if previous:
            logger.info("Relinked store %s from %s to %s", canonical, previous, external)
        else:
            logger.info("Linked store %s to external store %s", canonical, external)
        return tenant

    async def remove_mapping(self, db: AsyncSession, store_id: str | uuid.UUID | CanonicalId) -> bool:
        """Unlink a store. Returns False (and changes nothing) when there was no link."""
        canonical = parse_canonical(store_id)
        tenant = await tenants.get_tenant(db, canonical.value)
        if tenant is None or tenant.external_store_id is None:
            return False

        previous = tenant.external_store_id
        tenant.external_store_id = None
        tenant.external_unlinked_at = utcnow()
        await db.flush()
        logger.info("Unlinked store %s from external store %s", canonical, previous)
        return True


_translator = StoreIdTranslator()


def get_translator() -> StoreIdTranslator:
    return _translator


async def normalize_and_authorize(db: AsyncSession, raw_store_id: str, user_id: uuid.UUID) -> NormalizedStoreIds:
    return await _translator.normalize_and_authorize(db, raw_store_id, user_id)
