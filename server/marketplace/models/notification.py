"""Notification model definition."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.clock import utcnow
from ..core.database import Base


class NotificationType(str, Enum):
    """Notification type enumeration."""
    CATEGORY_APPROVED = "category_approved"
    CATEGORY_REJECTED = "category_rejected"
    DESTINATION_APPROVED = "destination_approved"
    DESTINATION_REJECTED = "destination_rejected"
    GENERAL = "general"


class Notification(Base):
    """Message delivered to a user's in-app inbox."""

    __tablename__ = "notifications"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    recipient_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    sender_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)

    type: Mapped[NotificationType] = mapped_column(String(40), nullable=False, default=NotificationType.GENERAL)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    # Entity the notification is about, if any
    entity_kind: Mapped[str | None] = mapped_column(String(20), nullable=True)
    entity_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    entity_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_read: Mapped[bool] = mapped_column(nullable=False, default=False, index=True)
    read_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, recipient_id={self.recipient_id}, type={self.type})>"
