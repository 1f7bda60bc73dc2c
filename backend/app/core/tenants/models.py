import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin, SoftDeleteMixin


class TenantStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    ARCHIVED = "archived"


class SubscriptionStatus(str, Enum):
    TRIAL = "trial"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    UNPAID = "unpaid"


class Tenant(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "tenants"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    subdomain: Mapped[str] = mapped_column(String(63), nullable=False, unique=True)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default=TenantStatus.PENDING.value)
    subscription_status: Mapped[str] = mapped_column(String(50), nullable=False, default=SubscriptionStatus.TRIAL.value)
    trial_ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    owner_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    plan: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # At most one tenant per external id; the unique index is what stops two
    # concurrent link requests from both succeeding.
    external_store_id: Mapped[str | None] = mapped_column(Text, nullable=True, unique=True)
    external_linked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    external_unlinked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # "metadata" is reserved on declarative classes
    extra: Mapped[dict] = mapped_column("metadata", JSONB, nullable=False, default=dict)
