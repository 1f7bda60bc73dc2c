import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from app.core.storeids import translator as translator_module
from app.core.tenants.models import Tenant


def make_tenant(external_store_id: str | None = None, **kwargs) -> Tenant:
    now = datetime.now(timezone.utc)
    values = {
        "id": uuid.uuid4(),
        "name": "Acme Outfitters",
        "subdomain": "acme",
        "slug": "acme-outfitters",
        "status": "active",
        "subscription_status": "trial",
        "plan": None,
        "external_store_id": external_store_id,
        "external_linked_at": None,
        "external_unlinked_at": None,
        "deleted_at": None,
        "extra": {},
        "created_at": now,
        "updated_at": now,
    }
    values.update(kwargs)
    return Tenant(**values)


class FakeTenantDirectory:
    """Stands in for ``app.core.tenants.service`` with tenants held in memory."""

    def __init__(self):
        self.tenants: dict[uuid.UUID, Tenant] = {}
        self.calls = 0
        self.error: Exception | None = None

    def add(self, tenant: Tenant) -> Tenant:
        self.tenants[tenant.id] = tenant
        return tenant

    async def get_tenant(self, db, tenant_id):
        self.calls += 1
        if self.error:
            raise self.error
        tenant = self.tenants.get(tenant_id)
        if tenant is None or tenant.deleted_at is not None:
            return None
        return tenant

    async def find_tenant_ids_by_external_store_id(self, db, external_store_id, limit=2):
        self.calls += 1
        if self.error:
            raise self.error
        return [
            t.id for t in self.tenants.values()
            if t.external_store_id == external_store_id and t.deleted_at is None
        ][:limit]


class FakeMemberships:
    def __init__(self):
        self.grants: set[tuple[uuid.UUID, uuid.UUID]] = set()
        self.calls = 0

    def grant(self, user_id, store_id) -> None:
        self.grants.add((user_id, store_id))

    async def has_store_access(self, db, user_id, store_id) -> bool:
        self.calls += 1
        return (user_id, store_id) in self.grants


@pytest.fixture
def directory(monkeypatch) -> FakeTenantDirectory:
    fake = FakeTenantDirectory()
    monkeypatch.setattr(translator_module, "tenants", fake)
    return fake


@pytest.fixture
def memberships(monkeypatch) -> FakeMemberships:
    fake = FakeMemberships()
    monkeypatch.setattr(translator_module, "memberships", fake)
    return fake


@pytest.fixture
def db():
    return AsyncMock()


@pytest.fixture
def translator():
    return translator_module.StoreIdTranslator()
