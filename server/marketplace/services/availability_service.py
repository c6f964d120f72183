"""Capacity checks and atomic seat reservation for tour departure days."""

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import case, func, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import day_window
from ..core.exceptions import CapacityError
from ..core.observability import metrics_collector
from ..models.booking import ACTIVE_STATUSES, Booking
from ..models.departure_slot import DepartureSlot
from ..models.tour import Tour
from .tour_service import TourService

logger = logging.getLogger(__name__)


def remaining_capacity(capacity: int, booked: int) -> int:
    """Seats still free on a departure day; never negative."""
    return max(0, capacity - booked)


@dataclass(frozen=True)
class AvailabilityResult:
    """Capacity of one tour on one departure day."""

    tour_id: UUID
    date: datetime
    max_size: int
    booked: int

    @property
    def remaining_capacity(self) -> int:
        return remaining_capacity(self.max_size, self.booked)

    @property
    def available(self) -> bool:
        return self.remaining_capacity > 0


class AvailabilityService:
    """
    Capacity checker and seat ledger.

    ``check_availability`` is a read-only sum over active bookings.
    ``reserve_seats`` and ``release_seats`` maintain the per-day
    ``DepartureSlot`` row inside the caller's transaction; the caller
    commits or rolls back.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.tour_service = TourService(db)

    async def count_active_seats(self, tour_id: UUID, departure_date: datetime) -> int:
        """Sum adults and children of pending/confirmed bookings on the day of ``departure_date``."""
        day_start, day_end = day_window(departure_date)
        stmt = select(func.coalesce(func.sum(Booking.adults + Booking.children), 0)).where(
            Booking.tour_id == tour_id,
            Booking.departure_date >= day_start,
            Booking.departure_date < day_end,
            Booking.status.in_([status.value for status in ACTIVE_STATUSES]),
        )
        return int(await self.db.scalar(stmt) or 0)

    async def availability_for(self, tour: Tour, departure_date: datetime) -> AvailabilityResult:
        """Availability of an already loaded tour."""
        day_start, _ = day_window(departure_date)
        booked = await self.count_active_seats(tour.id, departure_date)
        return AvailabilityResult(tour_id=tour.id, date=day_start, max_size=tour.capacity, booked=booked)

    async def check_availability(self, tour_id: UUID, departure_date: datetime) -> AvailabilityResult:
        """
        Report how many seats are left on a tour for a departure day.

        Args:
            tour_id: Tour to check
            departure_date: Any moment of the departure day

        Returns:
            AvailabilityResult for the whole calendar day

        Raises:
            NotFoundError: If tour not found
        """
        tour = await self.tour_service.get_tour_by_id_or_raise(tour_id)
        result = await self.availability_for(tour, departure_date)

        logger.debug(
            "Availability checked",
            extra={
                "tour_id": str(tour_id),
                "date": result.date.isoformat(),
                "booked": result.booked,
                "remaining_capacity": result.remaining_capacity
            }
        )
        return result

    async def _lock_day(self, tour_id: UUID, day_start: datetime) -> None:
        # Advisory lock until the transaction ends; SQLite relies on BEGIN IMMEDIATE
        if self.db.bind and self.db.bind.dialect.name == "postgresql":
            await self.db.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:slot_key))"),
                {"slot_key": f"{tour_id}:{day_start.date().isoformat()}"}
            )

    async def _get_slot(self, tour_id: UUID, day_start: datetime) -> DepartureSlot | None:
        stmt = select(DepartureSlot).where(
            DepartureSlot.tour_id == tour_id,
            DepartureSlot.departure_day == day_start,
        ).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _get_or_create_slot(self, tour_id: UUID, day_start: datetime) -> DepartureSlot:
        """
        Load the ledger row for a day, creating it from existing bookings if missing.

        A concurrent creation surfaces as IntegrityError on flush; the caller
        retries its whole transaction.
        """
        slot = await self._get_slot(tour_id, day_start)
        if slot is not None:
            return slot

        booked = await self.count_active_seats(tour_id, day_start)
        slot = DepartureSlot(tour_id=tour_id, departure_day=day_start, seats_booked=booked)
        self.db.add(slot)
        await self.db.flush()

        logger.info(
            "Departure slot created",
            extra={
                "tour_id": str(tour_id),
                "date": day_start.isoformat(),
                "seats_booked": booked
            }
        )
        return slot

    async def reserve_seats(self, tour: Tour, departure_date: datetime, seats: int) -> int:
        """
        Atomically take ``seats`` on the tour's departure day.

        Returns:
            Seats booked on the day after the reservation

        Raises:
            CapacityError: If the day cannot take ``seats`` more participants
        """
        day_start, _ = day_window(departure_date)
        await self._lock_day(tour.id, day_start)
        slot = await self._get_or_create_slot(tour.id, day_start)

        capacity = tour.capacity
        stmt = (
            update(DepartureSlot)
            .where(
                DepartureSlot.id == slot.id,
                DepartureSlot.seats_booked + seats <= capacity,
            )
            .values(seats_booked=DepartureSlot.seats_booked + seats)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)

        booked = int(await self.db.scalar(
            select(DepartureSlot.seats_booked).where(DepartureSlot.id == slot.id)
        ))

        if result.rowcount != 1:
            metrics_collector.record_capacity_rejection("reserve")
            logger.warning(
                "Seat reservation refused - departure day full",
                extra={
                    "tour_id": str(tour.id),
                    "date": day_start.isoformat(),
                    "requested": seats,
                    "seats_booked": booked,
                    "capacity": capacity
                }
            )
            raise CapacityError(
                tour_id=str(tour.id),
                requested=seats,
                remaining=remaining_capacity(capacity, booked),
            )

        logger.debug(
            "Seats reserved",
            extra={"tour_id": str(tour.id), "date": day_start.isoformat(), "seats": seats, "seats_booked": booked}
        )
        return booked

    async def release_seats(self, tour_id: UUID, departure_date: datetime, seats: int) -> None:
        """Give ``seats`` back to the departure day; the ledger never drops below zero."""
        day_start, _ = day_window(departure_date)
        await self._lock_day(tour_id, day_start)
        stmt = (
            update(DepartureSlot)
            .where(
                DepartureSlot.tour_id == tour_id,
                DepartureSlot.departure_day == day_start,
            )
            .values(
                seats_booked=case(
                    (DepartureSlot.seats_booked >= seats, DepartureSlot.seats_booked - seats),
                    else_=0,
                )
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(stmt)

        logger.debug(
            "Seats released",
            extra={"tour_id": str(tour_id), "date": day_start.isoformat(), "seats": seats}
        )

    async def reconcile(self, tour_id: UUID, departure_date: datetime) -> AvailabilityResult:
        """
        Recompute the day's ledger from active bookings and commit it.

        Raises:
            NotFoundError: If tour not found
        """
        tour = await self.tour_service.get_tour_by_id_or_raise(tour_id)
        day_start, _ = day_window(departure_date)
        await self._lock_day(tour.id, day_start)

        slot = await self._get_or_create_slot(tour.id, day_start)
        booked = await self.count_active_seats(tour.id, day_start)
        previous = slot.seats_booked
        slot.seats_booked = booked
        await self.db.commit()

        logger.info(
            "Departure slot reconciled",
            extra={
                "tour_id": str(tour_id),
                "date": day_start.isoformat(),
                "previous_seats_booked": previous,
                "seats_booked": booked
            }
        )
        return AvailabilityResult(tour_id=tour.id, date=day_start, max_size=tour.capacity, booked=booked)
