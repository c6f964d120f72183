"""Departure slot model: the per-day seat ledger of a tour."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Integer, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.clock import utcnow
from ..core.database import Base


class DepartureSlot(Base):
    """
    Seats booked on one tour for one calendar day.

    Reservations go through a conditional UPDATE on ``seats_booked`` so two
    concurrent bookings can never both take the last seats.
    """

    __tablename__ = "departure_slots"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    tour_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tours.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    # Midnight (UTC) of the departure day
    departure_day: Mapped[datetime] = mapped_column(nullable=False)
    seats_booked: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("tour_id", "departure_day", name="uq_departure_slot_tour_day"),
        CheckConstraint("seats_booked >= 0", name="ck_departure_slot_seats_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<DepartureSlot(id={self.id}, tour_id={self.tour_id}, "
            f"day={self.departure_day.date()}, seats_booked={self.seats_booked})>"
        )
