import uuid
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit.service import audit, request_ip
from app.core.auth.service import get_user
from app.core.memberships import service
from app.core.memberships.models import StoreRole
from app.core.memberships.schemas import MemberAdd, MemberRead, MemberRoleUpdate
from app.dependencies import StoreContext, get_db, require_store_role

router = APIRouter(prefix="/stores/current/members", tags=["members"])


@router.get("", response_model=list[MemberRead])
async def list_members(include_inactive: bool = False, db: AsyncSession = Depends(get_db), store: StoreContext = Depends(require_store_role(StoreRole.ADMIN))):
    return await service.list_members(db, store.store_id, include_inactive=include_inactive)


@router.post("", response_model=MemberRead, status_code=status.HTTP_201_CREATED)
async def add_member(request: Request, body: MemberAdd, db: AsyncSession = Depends(get_db), store: StoreContext = Depends(require_store_role(StoreRole.OWNER))):
    if not await get_user(db, body.user_id):
        raise HTTPException(404, "User not found")
    member = await service.add_member(db, store.store_id, body.user_id, body.role, invited_by=store.user_id)
    await audit(db, store_id=store.store_id, user_id=store.user_id, action="add", resource_type="store_member",
                resource_id=str(member.id), detail={"user_id": str(body.user_id), "role": body.role.value},
                ip_address=request_ip(request))
    return member


@router.patch("/{member_id}", response_model=MemberRead)
async def update_member_role(request: Request, member_id: uuid.UUID, body: MemberRoleUpdate, db: AsyncSession = Depends(get_db), store: StoreContext = Depends(require_store_role(StoreRole.ADMIN))):
    member = await service.get_member(db, store.store_id, member_id)
    if not member or not member.is_active:
        raise HTTPException(404, "Member not found")
    previous = member.role
    member = await service.update_member_role(db, member, body.role, actor_role=store.role)
    await audit(db, store_id=store.store_id, user_id=store.user_id, action="update_role", resource_type="store_member",
                resource_id=str(member.id), detail={"from": previous, "to": body.role.value},
                ip_address=request_ip(request))
    return member


@router.delete("/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_member(request: Request, member_id: uuid.UUID, db: AsyncSession = Depends(get_db), store: StoreContext = Depends(require_store_role(StoreRole.OWNER))):
    member = await service.get_member(db, store.store_id, member_id)
    if not member:
        raise HTTPException(404, "Member not found")
    await service.deactivate_member(db, member)
    await audit(db, store_id=store.store_id, user_id=store.user_id, action="deactivate", resource_type="store_member",
                resource_id=str(member.id), ip_address=request_ip(request))
