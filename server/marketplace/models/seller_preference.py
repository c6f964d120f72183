"""Per-seller view of a global catalog entity."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.clock import utcnow
from ..core.database import Base
from .catalog import ApprovalStatus


class EntityKindName(str, Enum):
    """Kinds of global entity a preference can point at."""
    CATEGORY = "category"
    DESTINATION = "destination"


class SellerPreference(Base):
    """
    A seller's override of a global entity.

    ``is_active``, ``is_approved`` and ``approval_status`` mirror the global
    record; the remaining flags belong to the seller alone.
    """

    __tablename__ = "seller_preferences"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    entity_kind: Mapped[EntityKindName] = mapped_column(String(20), nullable=False)
    seller_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    entity_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)

    # Mirrored from the global entity
    is_active: Mapped[bool] = mapped_column(nullable=False, default=False)
    is_approved: Mapped[bool] = mapped_column(nullable=False, default=False)
    approval_status: Mapped[ApprovalStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ApprovalStatus.PENDING
    )

    # Seller's own flags
    is_visible: Mapped[bool] = mapped_column(nullable=False, default=True)
    is_enabled: Mapped[bool] = mapped_column(nullable=False, default=True)
    is_favorite: Mapped[bool] = mapped_column(nullable=False, default=False)
    added_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("entity_kind", "seller_id", "entity_id", name="uq_seller_preference_entity"),
    )

    def __repr__(self) -> str:
        return (
            f"<SellerPreference(kind={self.entity_kind}, seller_id={self.seller_id}, "
            f"entity_id={self.entity_id}, is_active={self.is_active})>"
        )
