"""Tour model definition."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.clock import utcnow
from ..core.config import settings
from ..core.database import Base


class TourStatus(str, Enum):
    """Tour publication status."""
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class Tour(Base):
    """Tour entity representing a seller's tour offering."""

    __tablename__ = "tours"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Tour information
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    seller_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Group size; max_size NULL means the configured default capacity
    min_size: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_size: Mapped[int | None] = mapped_column(Integer, nullable=True)

    tour_status: Mapped[TourStatus] = mapped_column(
        String(20),
        nullable=False,
        default=TourStatus.DRAFT,
        index=True
    )

    # Price per adult in minor units
    price_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price_currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("min_size >= 1", name="ck_tour_min_size_positive"),
        CheckConstraint("max_size IS NULL OR max_size >= 1", name="ck_tour_max_size_positive"),
        CheckConstraint("price_amount >= 0", name="ck_tour_price_non_negative"),
    )

    @property
    def capacity(self) -> int:
        """Maximum adult+child participants per departure day."""
        return self.max_size or settings.default_tour_capacity

    def __repr__(self) -> str:
        return f"<Tour(id={self.id}, code='{self.code}', title='{self.title}')>"
