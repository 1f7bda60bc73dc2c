import uuid
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit.service import audit, request_ip
from app.core.memberships.models import StoreRole
from app.core.memberships.service import list_user_stores
from app.core.storeids.translator import get_translator
from app.core.tenants import service
from app.core.tenants.schemas import (
    ExternalLinkRequest,
    StoreContextRead,
    StoreSummary,
    TenantAdminUpdate,
    TenantCreate,
    TenantRead,
    TenantUpdate,
)
from app.dependencies import (
    CurrentUser,
    StoreContext,
    get_current_user,
    get_db,
    require_store,
    require_store_role,
    require_superadmin,
)

router = APIRouter(prefix="/stores", tags=["stores"])
admin_router = APIRouter(prefix="/admin/stores", tags=["admin"])


@router.post("", response_model=TenantRead, status_code=status.HTTP_201_CREATED)
async def create_store(request: Request, data: TenantCreate, db: AsyncSession = Depends(get_db), current: CurrentUser = Depends(get_current_user)):
    if await service.get_tenant_by_subdomain(db, data.subdomain):
        raise HTTPException(status_code=409, detail="Subdomain already in use")
    tenant = await service.create_tenant(db, data, owner_user_id=current.user_id)
    await audit(db, store_id=tenant.id, user_id=current.user_id, action="create", resource_type="store",
                resource_id=str(tenant.id), ip_address=request_ip(request))
    return tenant


@router.get("", response_model=list[StoreSummary])
async def list_my_stores(db: AsyncSession = Depends(get_db), current: CurrentUser = Depends(get_current_user)):
    return [
        StoreSummary(
            id=tenant.id,
            name=tenant.name,
            subdomain=tenant.subdomain,
            status=tenant.status,
            external_store_id=tenant.external_store_id,
            role=role,
        )
        for tenant, role in await list_user_stores(db, current.user_id)
    ]


@router.get("/current", response_model=StoreContextRead)
async def current_store(store: StoreContext = Depends(require_store)):
    return StoreContextRead(store_id=store.store_id, external_store_id=store.external_store_id, role=store.role)


@router.get("/current/details", response_model=TenantRead)
async def current_store_details(db: AsyncSession = Depends(get_db), store: StoreContext = Depends(require_store)):
    tenant = await service.get_tenant(db, store.store_id)
    if not tenant:
        raise HTTPException(status_code=404, detail="Store not found")
    return tenant


@router.patch("/current", response_model=TenantRead)
async def update_current_store(data: TenantUpdate, db: AsyncSession = Depends(get_db), store: StoreContext = Depends(require_store_role(StoreRole.ADMIN))):
    tenant = await service.get_tenant(db, store.store_id)
    if not tenant:
        raise HTTPException(status_code=404, detail="Store not found")
    return await service.update_tenant(db, tenant, data)


@router.delete("/current", status_code=status.HTTP_204_NO_CONTENT)
async def archive_current_store(request: Request, db: AsyncSession = Depends(get_db), store: StoreContext = Depends(require_store_role(StoreRole.OWNER))):
    tenant = await service.get_tenant(db, store.store_id)
    if not tenant:
        raise HTTPException(status_code=404, detail="Store not found")
    await service.archive_tenant(db, tenant)
    await audit(db, store_id=tenant.id, user_id=store.user_id, action="archive", resource_type="store",
                resource_id=str(tenant.id), ip_address=request_ip(request))


@router.put("/current/external-link", response_model=TenantRead)
async def link_external_store(request: Request, body: ExternalLinkRequest, db: AsyncSession = Depends(get_db), store: StoreContext = Depends(require_store_role(StoreRole.ADMIN))):
    tenant = await get_translator().create_mapping(db, store.store_id, body.external_store_id)
    await audit(db, store_id=store.store_id, user_id=store.user_id, action="link", resource_type="external_store",
                resource_id=tenant.external_store_id, ip_address=request_ip(request))
    return tenant


@router.delete("/current/external-link", status_code=status.HTTP_204_NO_CONTENT)
async def unlink_external_store(request: Request, db: AsyncSession = Depends(get_db), store: StoreContext = Depends(require_store_role(StoreRole.ADMIN))):
    if await get_translator().remove_mapping(db, store.store_id):
        await audit(db, store_id=store.store_id, user_id=store.user_id, action="unlink", resource_type="external_store",
                    resource_id=store.external_store_id, ip_address=request_ip(request))


@admin_router.get("", response_model=list[TenantRead])
async def admin_list_stores(include_archived: bool = False, db: AsyncSession = Depends(get_db), _: None = Depends(require_superadmin)):
    return await service.list_tenants(db, include_deleted=include_archived)


@admin_router.get("/{store_id}", response_model=TenantRead)
async def admin_get_store(store_id: uuid.UUID, db: AsyncSession = Depends(get_db), _: None = Depends(require_superadmin)):
    tenant = await service.get_tenant(db, store_id, include_deleted=True)
    if not tenant:
        raise HTTPException(status_code=404, detail="Store not found")
    return tenant


@admin_router.patch("/{store_id}", response_model=TenantRead)
async def admin_update_store(store_id: uuid.UUID, data: TenantAdminUpdate, db: AsyncSession = Depends(get_db), _: None = Depends(require_superadmin)):
    tenant = await service.get_tenant(db, store_id, include_deleted=True)
    if not tenant:
        raise HTTPException(status_code=404, detail="Store not found")
    return await service.update_tenant(db, tenant, data)
