import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, ForeignKey, String, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, StoreScopedMixin, TimestampMixin, utcnow


class StoreRole(str, Enum):
    VIEWER = "viewer"
    EDITOR = "editor"
    ADMIN = "admin"
    OWNER = "owner"

    @property
    def rank(self) -> int:
        return ROLE_HIERARCHY.index(self)

    def at_least(self, required: "StoreRole") -> bool:
        return self.rank >= required.rank


# Lowest privilege first
ROLE_HIERARCHY: tuple[StoreRole, ...] = (StoreRole.VIEWER, StoreRole.EDITOR, StoreRole.ADMIN, StoreRole.OWNER)


class StoreMember(Base, TimestampMixin, StoreScopedMixin):
    __tablename__ = "store_members"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=StoreRole.VIEWER.value)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    invited_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    invited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=utcnow)

    __table_args__ = (UniqueConstraint("store_id", "user_id", name="uq_store_member_store_user"),)
