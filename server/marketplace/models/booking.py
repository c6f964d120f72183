"""Booking model definition and its status rules."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.clock import utcnow
from ..core.database import Base


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PaymentStatus(str, Enum):
    """Payment status enumeration."""
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"
    REFUNDED = "refunded"


# Bookings in these states hold seats on their departure
ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    """Return True if a booking may move from ``current`` to ``target``."""
    return target in ALLOWED_TRANSITIONS[BookingStatus(current)]


class Booking(Base):
    """Booking entity for a tour departure day."""

    __tablename__ = "bookings"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Tour reference with a snapshot of what was booked
    tour_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tours.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    tour_title: Mapped[str] = mapped_column(String(255), nullable=False)
    tour_code: Mapped[str] = mapped_column(String(64), nullable=False)

    # Registered customer; NULL for guest bookings
    user_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    is_guest_booking: Mapped[bool] = mapped_column(nullable=False, default=False)
    guest_full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    guest_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    guest_phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    guest_country: Mapped[str | None] = mapped_column(String(100), nullable=True)

    departure_date: Mapped[datetime] = mapped_column(nullable=False, index=True)

    # Participants
    adults: Mapped[int] = mapped_column(Integer, nullable=False)
    children: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    infants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Pricing snapshot in minor units
    base_price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    adult_price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    child_price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    infant_price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    # Contact
    contact_name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_email: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_phone: Mapped[str] = mapped_column(String(64), nullable=False)
    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Status
    status: Mapped[BookingStatus] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.UNPAID,
        index=True
    )
    paid_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    transaction_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(64), nullable=True)

    booking_reference: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    booking_date: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    confirmed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("adults >= 1", name="ck_booking_adults_positive"),
        CheckConstraint("children >= 0", name="ck_booking_children_non_negative"),
        CheckConstraint("infants >= 0", name="ck_booking_infants_non_negative"),
        CheckConstraint("paid_amount >= 0", name="ck_booking_paid_amount_non_negative"),
        CheckConstraint("length(booking_reference) > 0", name="ck_booking_reference_not_empty"),
        Index("ix_bookings_tour_departure_status", "tour_id", "departure_date", "status"),
    )

    @property
    def seats(self) -> int:
        """Seats this booking occupies; infants travel on a lap."""
        return self.adults + self.children

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, reference='{self.booking_reference}', "
            f"tour_id={self.tour_id}, seats={self.seats}, status={self.status})>"
        )
