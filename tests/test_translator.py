import uuid

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from app.core.storeids.errors import (
    AmbiguousMapping,
    BadRequest,
    Forbidden,
    InvalidFormat,
    InvalidStoreIdFormat,
    MappingConflict,
    NoCanonicalMapping,
    NoExternalMapping,
    NotFound,
    TenantNotFound,
)
from app.core.storeids.identifiers import IdFormat
from conftest import make_tenant

USER = uuid.uuid4()


@pytest.mark.parametrize("raw", [
    "",
    "not-an-id",
    "store_",
    "store-abc",
    "ffffffff",
    "123e4567e89b12d3a456426614174000",
    "123e4567-e89b-12d3-a456-426614174000\n",
])
async def test_malformed_id_rejected_before_any_lookup(translator, directory, memberships, db, raw):
    with pytest.raises(InvalidStoreIdFormat) as exc:
        await translator.normalize_and_authorize(db, raw, USER)
    assert isinstance(exc.value, BadRequest)
    assert exc.value.status_code == 400
    assert "123e4567-e89b-12d3-a456-426614174000" in exc.value.detail["message"]
    assert "store_01HQWE1234567890" in exc.value.detail["message"]
    assert directory.calls == 0
    assert memberships.calls == 0
    db.execute.assert_not_called()


async def test_canonical_without_link_resolves_with_no_external(translator, directory, memberships, db):
    tenant = directory.add(make_tenant())
    memberships.grant(USER, tenant.id)

    ids = await translator.normalize_and_authorize(db, str(tenant.id), USER)

    assert ids.store_id == tenant.id
    assert ids.external_store_id is None


async def test_canonical_with_link_resolves_external(translator, directory, memberships, db):
    tenant = directory.add(make_tenant("store_abc123"))
    memberships.grant(USER, tenant.id)

    ids = await translator.normalize_and_authorize(db, str(tenant.id), USER)

    assert ids.store_id == tenant.id
    assert ids.external_store_id == "store_abc123"


async def test_uppercase_canonical_is_accepted(translator, directory, memberships, db):
    tenant = directory.add(make_tenant())
    memberships.grant(USER, tenant.id)

    ids = await translator.normalize_and_authorize(db, str(tenant.id).upper(), USER)

    assert ids.store_id == tenant.id


async def test_external_resolves_to_canonical(translator, directory, memberships, db):
    tenant = directory.add(make_tenant("store_abc123"))
    memberships.grant(USER, tenant.id)

    ids = await translator.normalize_and_authorize(db, "store_abc123", USER)

    assert ids.store_id == tenant.id
    assert ids.external_store_id == "store_abc123"


async def test_external_for_non_member_is_forbidden(translator, directory, memberships, db):
    tenant = directory.add(make_tenant("store_abc123"))
    memberships.grant(uuid.uuid4(), tenant.id)

    with pytest.raises(Forbidden) as exc:
        await translator.normalize_and_authorize(db, "store_abc123", USER)
    assert exc.value.status_code == 403
    assert exc.value.detail["code"] == "STORE_ACCESS_DENIED"


async def test_unknown_canonical_store_is_forbidden_not_missing(translator, directory, memberships, db):
    with pytest.raises(Forbidden):
        await translator.normalize_and_authorize(db, str(uuid.uuid4()), USER)
    assert memberships.calls == 1


async def test_unmapped_external_is_not_found(translator, directory, memberships, db):
    directory.add(make_tenant("store_other"))

    with pytest.raises(NoCanonicalMapping) as exc:
        await translator.normalize_and_authorize(db, "store_missing", USER)
    assert isinstance(exc.value, NotFound)
    assert exc.value.status_code == 404
    assert memberships.calls == 0


async def test_infrastructure_error_on_forward_lookup_propagates(translator, directory, memberships, db):
    tenant = directory.add(make_tenant())
    memberships.grant(USER, tenant.id)
    directory.error = OperationalError("SELECT", {}, Exception("connection refused"))

    with pytest.raises(OperationalError):
        await translator.normalize_and_authorize(db, str(tenant.id), USER)
    assert memberships.calls == 0


async def test_archived_store_does_not_resolve_external(translator, directory, memberships, db):
    from datetime import datetime, timezone

    tenant = directory.add(make_tenant("store_gone", deleted_at=datetime.now(timezone.utc)))
    memberships.grant(USER, tenant.id)

    with pytest.raises(NoCanonicalMapping):
        await translator.normalize_and_authorize(db, "store_gone", USER)


async def test_to_external_distinguishes_missing_tenant_from_missing_link(translator, directory, db):
    tenant = directory.add(make_tenant())

    with pytest.raises(NoExternalMapping):
        await translator.to_external(db, tenant.id)
    with pytest.raises(TenantNotFound):
        await translator.to_external(db, uuid.uuid4())


async def test_to_canonical_with_two_holders_is_ambiguous(translator, directory, db):
    directory.add(make_tenant("store_dup"))
    directory.add(make_tenant("store_dup", subdomain="acme-2", slug="acme-2"))

    with pytest.raises(AmbiguousMapping) as exc:
        await translator.to_canonical(db, "store_dup")
    assert exc.value.status_code == 500


async def test_lookups_reject_the_wrong_grammar(translator, directory, db):
    with pytest.raises(InvalidFormat):
        await translator.to_external(db, "store_abc")
    with pytest.raises(InvalidFormat):
        await translator.to_canonical(db, str(uuid.uuid4()))
    assert directory.calls == 0


def test_get_format(translator):
    assert translator.get_format("store_abc") is IdFormat.EXTERNAL
    assert translator.get_format(str(uuid.uuid4())) is IdFormat.CANONICAL
    assert translator.get_format("abc") is IdFormat.INVALID


async def test_create_mapping_round_trips(translator, directory, db):
    tenant = directory.add(make_tenant())

    linked = await translator.create_mapping(db, tenant.id, "store_new1")

    assert linked is tenant
    assert tenant.external_linked_at is not None
    assert await translator.to_external(db, tenant.id) == "store_new1"
    assert await translator.to_canonical(db, "store_new1") == tenant.id
    db.flush.assert_awaited_once()


async def test_create_mapping_same_pair_is_a_no_op(translator, directory, db):
    tenant = directory.add(make_tenant("store_same"))

    await translator.create_mapping(db, str(tenant.id), "store_same")

    assert tenant.external_store_id == "store_same"
    db.flush.assert_not_called()


async def test_create_mapping_relink_replaces_previous(translator, directory, db):
    tenant = directory.add(make_tenant("store_old"))

    await translator.create_mapping(db, tenant.id, "store_fresh")

    assert await translator.to_external(db, tenant.id) == "store_fresh"
    with pytest.raises(NoCanonicalMapping):
        await translator.to_canonical(db, "store_old")


async def test_create_mapping_held_by_other_store_conflicts(translator, directory, db):
    directory.add(make_tenant("store_taken"))
    tenant = directory.add(make_tenant(subdomain="other", slug="other"))

    with pytest.raises(MappingConflict) as exc:
        await translator.create_mapping(db, tenant.id, "store_taken")
    assert exc.value.status_code == 409
    assert tenant.external_store_id is None
    db.flush.assert_not_called()


async def test_create_mapping_unique_violation_becomes_conflict(translator, directory, db):
    tenant = directory.add(make_tenant())
    db.flush.side_effect = IntegrityError("UPDATE tenants", {}, Exception("duplicate key"))

    with pytest.raises(MappingConflict):
        await translator.create_mapping(db, tenant.id, "store_raced")


async def test_create_mapping_validates_before_lookup(translator, directory, db):
    tenant = directory.add(make_tenant())

    with pytest.raises(InvalidFormat):
        await translator.create_mapping(db, tenant.id, "shop_123")
    with pytest.raises(InvalidFormat):
        await translator.create_mapping(db, "store_123", "store_123")
    assert directory.calls == 0


async def test_create_mapping_for_unknown_store(translator, directory, db):
    with pytest.raises(TenantNotFound):
        await translator.create_mapping(db, uuid.uuid4(), "store_abc")


async def test_remove_mapping_is_idempotent(translator, directory, db):
    tenant = directory.add(make_tenant("store_bye"))

    assert await translator.remove_mapping(db, tenant.id) is True
    unlinked_at = tenant.external_unlinked_at
    assert unlinked_at is not None

    assert await translator.remove_mapping(db, tenant.id) is False
    assert tenant.external_unlinked_at == unlinked_at

    with pytest.raises(NoExternalMapping):
        await translator.to_external(db, tenant.id)
    with pytest.raises(NoCanonicalMapping):
        await translator.to_canonical(db, "store_bye")


async def test_remove_mapping_for_unknown_store_changes_nothing(translator, directory, db):
    assert await translator.remove_mapping(db, uuid.uuid4()) is False
    db.flush.assert_not_called()
