import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.core.memberships.models import StoreRole
from app.core.tenants.models import SubscriptionStatus, TenantStatus


class TenantCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    subdomain: str = Field(..., min_length=3, max_length=63, pattern=r"^[a-z0-9-]+$")
    owner_email: EmailStr | None = None
    plan: str | None = None

    @field_validator("subdomain")
    @classmethod
    def no_edge_hyphen(cls, v: str) -> str:
        if v.startswith("-") or v.endswith("-"):
            raise ValueError("Subdomain cannot start or end with a hyphen")
        return v


class TenantUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    plan: str | None = None
    extra: dict[str, Any] | None = Field(None, alias="metadata")

    model_config = {"populate_by_name": True}


class TenantAdminUpdate(BaseModel):
    model_config = {"use_enum_values": True}

    status: TenantStatus | None = None
    subscription_status: SubscriptionStatus | None = None
    trial_ends_at: datetime | None = None
    plan: str | None = None


class TenantRead(BaseModel):
    model_config = {"from_attributes": True}

    id: uuid.UUID
    name: str
    subdomain: str
    slug: str
    status: TenantStatus
    subscription_status: SubscriptionStatus
    plan: str | None
    external_store_id: str | None
    external_linked_at: datetime | None
    deleted_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class StoreSummary(BaseModel):
    id: uuid.UUID
    name: str
    subdomain: str
    status: TenantStatus
    external_store_id: str | None
    role: StoreRole


class StoreContextRead(BaseModel):
    store_id: uuid.UUID
    external_store_id: str | None
    role: StoreRole | None


class ExternalLinkRequest(BaseModel):
    external_store_id: str
