import uuid
from datetime import datetime
from pydantic import BaseModel

from app.core.memberships.models import StoreRole


class MemberAdd(BaseModel):
    user_id: uuid.UUID
    role: StoreRole = StoreRole.VIEWER


class MemberRoleUpdate(BaseModel):
    role: StoreRole


class MemberRead(BaseModel):
    model_config = {"from_attributes": True}
    id: uuid.UUID
    store_id: uuid.UUID
    user_id: uuid.UUID
    role: StoreRole
    is_active: bool
    invited_by: uuid.UUID | None
    invited_at: datetime | None
    created_at: datetime
