"""Global catalog models shared across sellers: categories and destinations."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.clock import utcnow
from ..core.database import Base


class ApprovalStatus(str, Enum):
    """Approval status of a global catalog entity."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovableMixin:
    """Approval and activation columns common to every global entity."""

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    approval_status: Mapped[ApprovalStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ApprovalStatus.PENDING,
        index=True
    )
    is_approved: Mapped[bool] = mapped_column(nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=False)

    created_by: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    approved_by: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_by: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    def mark_pending(self) -> None:
        """Send the entity back for review, dropping any earlier decision."""
        self.approval_status = ApprovalStatus.PENDING
        self.is_approved = False
        self.is_active = False
        self.approved_by = None
        self.approved_at = None
        self.rejected_by = None
        self.rejected_at = None
        self.rejection_reason = None
        self.submitted_at = utcnow()


class GlobalCategory(ApprovableMixin, Base):
    """Tour category proposed by a seller and curated by admins."""

    __tablename__ = "global_categories"

    image_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("usage_count >= 0", name="ck_global_category_usage_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<GlobalCategory(id={self.id}, name='{self.name}', status={self.approval_status})>"


class GlobalDestination(ApprovableMixin, Base):
    """Destination proposed by a seller and curated by admins."""

    __tablename__ = "global_destinations"

    cover_image: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    region: Mapped[str | None] = mapped_column(String(100), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        CheckConstraint("usage_count >= 0", name="ck_global_destination_usage_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<GlobalDestination(id={self.id}, name='{self.name}', status={self.approval_status})>"
