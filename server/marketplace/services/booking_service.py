"""Booking service for business logic operations."""

import logging
import re
import secrets
import string
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import to_naive_utc, utcnow
from ..core.config import settings
from ..core.dependencies import AuthContext
from ..core.exceptions import (
    AuthorizationError,
    CapacityError,
    ConflictError,
    NotFoundError,
    PolicyViolationError,
)
from ..core.observability import metrics_collector
from ..models.booking import ACTIVE_STATUSES, Booking, BookingStatus, PaymentStatus, can_transition
from ..models.tour import Tour
from ..schemas.booking import CreateBookingRequest, Participants, PricingInput
from .availability_service import AvailabilityService
from .tour_service import TourService

logger = logging.getLogger(__name__)

_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits
_BASE36_DIGITS = string.digits + string.ascii_uppercase

BOOKING_REFERENCE_PATTERN = re.compile(r"^BK-[0-9A-Z]+-[A-Z0-9]{4}$")


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def generate_booking_reference(timestamp_ms: Optional[int] = None) -> str:
    """Return a reference like ``BK-<base36 ms timestamp>-<4 random chars>``."""
    if timestamp_ms is None:
        timestamp_ms = time.time_ns() // 1_000_000
    suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(4))
    return f"BK-{_to_base36(timestamp_ms)}-{suffix}"


def compute_total_price(pricing: PricingInput, participants: Participants) -> int:
    """Total in minor units; the base price is informational."""
    return (
        pricing.adult_price * participants.adults
        + pricing.child_price * participants.children
        + pricing.infant_price * participants.infants
    )


def cancellation_allowed(departure_date: datetime, now: datetime, notice_hours: int) -> bool:
    """True when at least ``notice_hours`` remain before departure."""
    return departure_date - now >= timedelta(hours=notice_hours)


@dataclass(frozen=True)
class StatusStats:
    """Aggregates for bookings in one status."""

    status: BookingStatus
    count: int
    total_revenue: int
    paid_revenue: int


class BookingService:
    """Service for booking-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.tour_service = TourService(db)
        self.availability_service = AvailabilityService(db)

    async def create_booking(self, request: CreateBookingRequest, auth: Optional[AuthContext]) -> Booking:
        """
        Create a pending booking after reserving its seats.

        The whole unit of work is retried when the database reports a unique
        violation, which covers a booking reference collision as well as a
        concurrently created departure slot.

        Args:
            request: Booking creation request
            auth: Caller, or None for a guest booking

        Returns:
            Created booking entity

        Raises:
            NotFoundError: If tour not found
            CapacityError: If the departure day cannot take the participants
            ConflictError: If no unique reference could be allocated
        """
        max_attempts = settings.booking_reference_max_attempts
        for attempt in range(1, max_attempts + 1):
            try:
                return await self._create_booking_once(request, auth)
            except CapacityError:
                await self.db.rollback()
                raise
            except IntegrityError as e:
                await self.db.rollback()
                metrics_collector.record_reference_collision()
                logger.warning(
                    "Booking write hit a unique constraint - retrying",
                    extra={
                        "tour_id": str(request.tour_id),
                        "attempt": attempt,
                        "max_attempts": max_attempts,
                        "error": str(e.orig)
                    }
                )

        logger.error(
            "Booking creation failed - could not allocate a unique reference",
            extra={"tour_id": str(request.tour_id), "attempts": max_attempts}
        )
        raise ConflictError(
            detail=f"Could not allocate a unique booking reference after {max_attempts} attempts"
        )

    async def _create_booking_once(self, request: CreateBookingRequest, auth: Optional[AuthContext]) -> Booking:
        tour = await self.tour_service.get_tour_by_id_or_raise(request.tour_id)
        departure_date = to_naive_utc(request.departure_date)
        seats = request.participants.adults + request.participants.children

        availability = await self.availability_service.availability_for(tour, departure_date)
        if seats > availability.remaining_capacity:
            metrics_collector.record_capacity_rejection("check")
            logger.warning(
                "Booking creation failed - insufficient capacity",
                extra={
                    "tour_id": str(tour.id),
                    "date": availability.date.isoformat(),
                    "requested": seats,
                    "remaining_capacity": availability.remaining_capacity
                }
            )
            raise CapacityError(
                tour_id=str(tour.id),
                requested=seats,
                remaining=availability.remaining_capacity,
            )

        reference = await self._allocate_reference()
        await self.availability_service.reserve_seats(tour, departure_date, seats)

        booking = self._build_booking(request, tour, departure_date, reference, auth)
        self.db.add(booking)
        await self.db.commit()
        await self.db.refresh(booking)

        metrics_collector.record_booking_created(guest=booking.is_guest_booking)
        logger.info(
            "Booking created successfully",
            extra={
                "booking_id": str(booking.id),
                "booking_reference": booking.booking_reference,
                "tour_id": str(tour.id),
                "departure_date": departure_date.isoformat(),
                "seats": seats,
                "guest": booking.is_guest_booking
            }
        )
        return booking

    async def _allocate_reference(self) -> str:
        reference = generate_booking_reference()
        while await self.get_booking_by_reference(reference):
            metrics_collector.record_reference_collision()
            reference = generate_booking_reference()
        return reference

    def _build_booking(
        self,
        request: CreateBookingRequest,
        tour: Tour,
        departure_date: datetime,
        reference: str,
        auth: Optional[AuthContext],
    ) -> Booking:
        pricing = request.pricing or PricingInput(
            base_price=tour.price_amount,
            adult_price=tour.price_amount,
            currency=tour.price_currency,
        )
        contact = request.contact_info
        is_guest = auth is None

        return Booking(
            tour_id=tour.id,
            tour_title=tour.title,
            tour_code=tour.code,
            user_id=None if is_guest else auth.user_id,
            is_guest_booking=is_guest,
            guest_full_name=contact.full_name if is_guest else None,
            guest_email=contact.email if is_guest else None,
            guest_phone=contact.phone if is_guest else None,
            guest_country=contact.country if is_guest else None,
            departure_date=departure_date,
            adults=request.participants.adults,
            children=request.participants.children,
            infants=request.participants.infants,
            base_price=pricing.base_price,
            adult_price=pricing.adult_price,
            child_price=pricing.child_price,
            infant_price=pricing.infant_price,
            total_price=compute_total_price(pricing, request.participants),
            currency=pricing.currency,
            contact_name=contact.full_name,
            contact_email=contact.email,
            contact_phone=contact.phone,
            special_requests=request.special_requests,
            status=BookingStatus.PENDING,
            payment_status=PaymentStatus.UNPAID,
            booking_reference=reference,
            booking_date=utcnow(),
        )

    async def get_booking_by_id(self, booking_id: UUID) -> Booking | None:
        """Get booking by ID."""
        stmt = select(Booking).where(Booking.id == booking_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_booking_by_id_or_raise(self, booking_id: UUID) -> Booking:
        """Get booking by ID or raise NotFoundError."""
        booking = await self.get_booking_by_id(booking_id)
        if not booking:
            logger.warning(
                "Booking not found",
                extra={"booking_id": str(booking_id)}
            )
            raise NotFoundError(
                resource_type="booking",
                resource_id=str(booking_id)
            )
        return booking

    async def get_booking(self, booking_id: UUID, auth: AuthContext) -> Booking:
        """
        Get a booking visible to ``auth``.

        Raises:
            NotFoundError: If booking not found
            AuthorizationError: If a non-staff caller does not own the booking
        """
        booking = await self.get_booking_by_id_or_raise(booking_id)
        if not auth.is_staff and booking.user_id != auth.user_id:
            raise AuthorizationError(detail="You can only view your own bookings")
        return booking

    async def get_booking_by_reference(self, reference: str) -> Booking | None:
        """Get booking by its public reference."""
        stmt = select(Booking).where(Booking.booking_reference == reference)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_booking_by_reference_or_raise(self, reference: str) -> Booking:
        """Get booking by reference or raise NotFoundError."""
        booking = await self.get_booking_by_reference(reference)
        if not booking:
            raise NotFoundError(resource_type="booking", resource_id=reference)
        return booking

    async def list_user_bookings(self, user_id: UUID) -> list[Booking]:
        """Bookings made by a registered user, newest first."""
        stmt = select(Booking).where(Booking.user_id == user_id).order_by(Booking.created_at.desc())
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def list_tour_bookings(self, tour_id: UUID) -> list[Booking]:
        """Bookings of a tour ordered by departure date."""
        await self.tour_service.get_tour_by_id_or_raise(tour_id)
        stmt = (
            select(Booking)
            .where(Booking.tour_id == tour_id)
            .order_by(Booking.departure_date, Booking.created_at)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def list_bookings(
        self,
        status: Optional[BookingStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        tour_id: Optional[UUID] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Booking], int]:
        """Filtered page of all bookings and the total matching count."""
        conditions = []
        if status is not None:
            conditions.append(Booking.status == status.value)
        if payment_status is not None:
            conditions.append(Booking.payment_status == payment_status.value)
        if tour_id is not None:
            conditions.append(Booking.tour_id == tour_id)

        total = await self.db.scalar(select(func.count(Booking.id)).where(*conditions))
        stmt = (
            select(Booking)
            .where(*conditions)
            .order_by(Booking.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars()), int(total or 0)

    async def update_booking_status(
        self,
        booking_id: UUID,
        status: BookingStatus,
        notes: Optional[str] = None,
    ) -> Booking:
        """
        Move a booking to ``status``.

        Confirming stamps ``confirmed_at``; cancelling stamps ``cancelled_at``
        and keeps ``notes`` as the cancellation reason. A booking leaving the
        active set gives its seats back to the departure day.

        Raises:
            NotFoundError: If booking not found
            ConflictError: If the transition is not allowed
        """
        booking = await self.get_booking_by_id_or_raise(booking_id)
        current = BookingStatus(booking.status)
        target = BookingStatus(status)

        if not can_transition(current, target):
            logger.warning(
                "Booking status transition refused",
                extra={
                    "booking_id": str(booking_id),
                    "from_status": current.value,
                    "to_status": target.value
                }
            )
            raise ConflictError(
                detail=f"Cannot change booking status from '{current.value}' to '{target.value}'",
                conflicting_resource={"id": str(booking.id), "status": current.value}
            )

        now = utcnow()
        booking.status = target
        if target == BookingStatus.CONFIRMED:
            booking.confirmed_at = now
        if target == BookingStatus.CANCELLED:
            booking.cancelled_at = now
            booking.cancellation_reason = notes
        elif notes is not None:
            booking.notes = notes

        if current in ACTIVE_STATUSES and target not in ACTIVE_STATUSES:
            await self.availability_service.release_seats(booking.tour_id, booking.departure_date, booking.seats)

        await self.db.commit()
        await self.db.refresh(booking)

        metrics_collector.record_status_change(current.value, target.value)
        logger.info(
            "Booking status updated",
            extra={
                "booking_id": str(booking.id),
                "booking_reference": booking.booking_reference,
                "from_status": current.value,
                "to_status": target.value
            }
        )
        return booking

    async def cancel_booking(self, booking_id: UUID, reason: Optional[str], auth: AuthContext) -> Booking:
        """
        Cancel a booking on behalf of ``auth``.

        Raises:
            NotFoundError: If booking not found
            AuthorizationError: If a non-staff caller does not own the booking
            ConflictError: If the booking is already cancelled
            PolicyViolationError: If departure is closer than the notice period
        """
        booking = await self.get_booking_by_id_or_raise(booking_id)

        if not auth.is_staff and booking.user_id != auth.user_id:
            logger.warning(
                "Booking cancellation refused - not the owner",
                extra={"booking_id": str(booking_id), "user_id": str(auth.user_id)}
            )
            raise AuthorizationError(detail="You can only cancel your own bookings")

        if booking.status == BookingStatus.CANCELLED:
            raise ConflictError(
                detail="Booking is already cancelled",
                conflicting_resource={"id": str(booking.id), "status": BookingStatus.CANCELLED.value}
            )

        notice_hours = settings.cancellation_notice_hours
        if not cancellation_allowed(booking.departure_date, utcnow(), notice_hours):
            logger.warning(
                "Booking cancellation refused - inside notice period",
                extra={
                    "booking_id": str(booking_id),
                    "departure_date": booking.departure_date.isoformat(),
                    "notice_hours": notice_hours
                }
            )
            raise PolicyViolationError(
                detail=f"Bookings cannot be cancelled less than {notice_hours} hours before departure",
                policy="cancellation_notice",
                extensions={"notice_hours": notice_hours},
            )

        return await self.update_booking_status(booking_id, BookingStatus.CANCELLED, reason)

    async def update_payment_status(
        self,
        booking_id: UUID,
        payment_status: PaymentStatus,
        paid_amount: Optional[int] = None,
        transaction_id: Optional[str] = None,
        payment_method: Optional[str] = None,
    ) -> Booking:
        """
        Record payment details; independent of the booking status.

        Raises:
            NotFoundError: If booking not found
        """
        booking = await self.get_booking_by_id_or_raise(booking_id)

        booking.payment_status = payment_status
        if paid_amount is not None:
            booking.paid_amount = paid_amount
        if transaction_id is not None:
            booking.transaction_id = transaction_id
        if payment_method is not None:
            booking.payment_method = payment_method

        await self.db.commit()
        await self.db.refresh(booking)

        logger.info(
            "Booking payment updated",
            extra={
                "booking_id": str(booking.id),
                "payment_status": PaymentStatus(payment_status).value,
                "paid_amount": booking.paid_amount
            }
        )
        return booking

    async def get_booking_stats(self) -> list[StatusStats]:
        """Count and revenue of bookings per status; every status is reported."""
        stmt = select(
            Booking.status,
            func.count(Booking.id),
            func.coalesce(func.sum(Booking.total_price), 0),
            func.coalesce(func.sum(Booking.paid_amount), 0),
        ).group_by(Booking.status)
        result = await self.db.execute(stmt)
        rows = {BookingStatus(row[0]): row for row in result.all()}

        stats = []
        for status in BookingStatus:
            row = rows.get(status)
            stats.append(StatusStats(
                status=status,
                count=int(row[1]) if row else 0,
                total_revenue=int(row[2]) if row else 0,
                paid_revenue=int(row[3]) if row else 0,
            ))
        return stats
