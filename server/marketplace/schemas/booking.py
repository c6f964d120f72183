"""Booking-related Pydantic schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from ..models.booking import BookingStatus, PaymentStatus
from .common import CamelModel

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class Participants(CamelModel):
    """Headcount of a booking."""

    adults: int = Field(..., ge=1, le=100)
    children: int = Field(0, ge=0, le=100)
    infants: int = Field(0, ge=0, le=100)


class PricingInput(CamelModel):
    """Unit prices quoted to the customer, in minor units."""

    base_price: int = Field(0, ge=0)
    adult_price: int = Field(..., ge=0)
    child_price: int = Field(0, ge=0)
    infant_price: int = Field(0, ge=0)
    currency: str = Field("USD", pattern=r"^[A-Z]{3}$")


class Pricing(PricingInput):
    """Pricing snapshot stored on a booking."""

    total_price: int = Field(..., ge=0)


class ContactInfo(CamelModel):
    """Lead traveller contact details."""

    full_name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., max_length=255, pattern=_EMAIL_PATTERN)
    phone: str = Field(..., min_length=3, max_length=64)
    country: Optional[str] = Field(None, max_length=100)


class CreateBookingRequest(CamelModel):
    """Request schema for creating a booking."""

    tour_id: UUID = Field(..., description="Tour to book")
    departure_date: datetime = Field(..., description="Departure date (ISO 8601)")
    participants: Participants
    pricing: Optional[PricingInput] = Field(
        None, description="Unit prices; the tour's adult price is used when omitted"
    )
    contact_info: ContactInfo
    special_requests: Optional[str] = Field(None, max_length=2000)


class UpdateBookingStatusRequest(CamelModel):
    """Request schema for a booking status transition."""

    status: BookingStatus
    notes: Optional[str] = Field(None, max_length=2000)


class CancelBookingRequest(CamelModel):
    """Request schema for cancelling a booking."""

    reason: Optional[str] = Field(None, max_length=2000)


class UpdatePaymentRequest(CamelModel):
    """Request schema for recording payment information."""

    payment_status: PaymentStatus
    paid_amount: Optional[int] = Field(None, ge=0)
    transaction_id: Optional[str] = Field(None, max_length=128)
    payment_method: Optional[str] = Field(None, max_length=64)


class Booking(CamelModel):
    """Booking response schema."""

    id: UUID
    booking_reference: str
    tour_id: UUID
    tour_title: str
    tour_code: str
    user_id: Optional[UUID] = None
    is_guest_booking: bool
    guest_info: Optional[ContactInfo] = None
    departure_date: datetime
    participants: Participants
    pricing: Pricing
    contact_name: str
    contact_email: str
    contact_phone: str
    special_requests: Optional[str] = None
    status: BookingStatus
    payment_status: PaymentStatus
    paid_amount: int
    transaction_id: Optional[str] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    booking_date: datetime
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, booking) -> "Booking":
        """Build the response from a Booking row."""
        guest_info = None
        if booking.is_guest_booking:
            guest_info = ContactInfo.model_construct(
                full_name=booking.guest_full_name,
                email=booking.guest_email,
                phone=booking.guest_phone,
                country=booking.guest_country,
            )
        return cls(
            id=booking.id,
            booking_reference=booking.booking_reference,
            tour_id=booking.tour_id,
            tour_title=booking.tour_title,
            tour_code=booking.tour_code,
            user_id=booking.user_id,
            is_guest_booking=booking.is_guest_booking,
            guest_info=guest_info,
            departure_date=booking.departure_date,
            participants=Participants.model_construct(
                adults=booking.adults, children=booking.children, infants=booking.infants
            ),
            pricing=Pricing.model_construct(
                base_price=booking.base_price,
                adult_price=booking.adult_price,
                child_price=booking.child_price,
                infant_price=booking.infant_price,
                total_price=booking.total_price,
                currency=booking.currency,
            ),
            contact_name=booking.contact_name,
            contact_email=booking.contact_email,
            contact_phone=booking.contact_phone,
            special_requests=booking.special_requests,
            status=booking.status,
            payment_status=booking.payment_status,
            paid_amount=booking.paid_amount,
            transaction_id=booking.transaction_id,
            payment_method=booking.payment_method,
            notes=booking.notes,
            booking_date=booking.booking_date,
            confirmed_at=booking.confirmed_at,
            cancelled_at=booking.cancelled_at,
            cancellation_reason=booking.cancellation_reason,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
        )


class BookingList(CamelModel):
    """A page of bookings."""

    items: list[Booking]
    total: int
    limit: int
    offset: int


class BookingStatusStats(CamelModel):
    """Aggregates for bookings in one status."""

    status: BookingStatus
    count: int
    total_revenue: int
    paid_revenue: int


class BookingStats(CamelModel):
    """Booking aggregates across all statuses."""

    total_bookings: int
    total_revenue: int
    paid_revenue: int
    by_status: list[BookingStatusStats]
