"""Unit tests for booking creation and the booking state machine."""

from datetime import timedelta
from unittest.mock import patch
from uuid import uuid4

import pytest
from sqlalchemy import select

from marketplace.core.clock import utcnow
from marketplace.core.dependencies import AuthContext, Role
from marketplace.core.exceptions import (
    AuthorizationError,
    CapacityError,
    ConflictError,
    NotFoundError,
    PolicyViolationError,
)
from marketplace.models.booking import Booking, BookingStatus, PaymentStatus
from marketplace.schemas.booking import CreateBookingRequest
from marketplace.services import booking_service as booking_module
from marketplace.services.booking_service import BOOKING_REFERENCE_PATTERN, BookingService


def _request(payload) -> CreateBookingRequest:
    return CreateBookingRequest.model_validate(payload)


@pytest.mark.asyncio
async def test_create_booking_for_registered_user(test_session, sample_tour, booking_payload, customer):
    """A signed-in customer's booking is pending, priced and referenced."""
    service = BookingService(test_session)

    booking = await service.create_booking(_request(booking_payload(sample_tour.id, adults=2, children=1, infants=1)), customer)

    assert booking.status == BookingStatus.PENDING
    assert booking.payment_status == PaymentStatus.UNPAID
    assert booking.user_id == customer.user_id
    assert booking.is_guest_booking is False
    assert booking.guest_email is None
    assert booking.tour_title == sample_tour.title
    assert booking.tour_code == sample_tour.code
    assert booking.total_price == 2 * 10000 + 1 * 5000
    assert BOOKING_REFERENCE_PATTERN.match(booking.booking_reference)


@pytest.mark.asyncio
async def test_create_guest_booking(test_session, sample_tour, booking_payload):
    """Anonymous bookings keep the guest contact details."""
    booking = await BookingService(test_session).create_booking(_request(booking_payload(sample_tour.id)), None)

    assert booking.user_id is None
    assert booking.is_guest_booking is True
    assert booking.guest_full_name == "Ada Traveller"
    assert booking.guest_email == "ada@example.com"
    assert booking.guest_country == "Iceland"


@pytest.mark.asyncio
async def test_create_booking_defaults_to_tour_price(test_session, sample_tour, booking_payload, customer):
    """Without quoted pricing the tour's adult price applies."""
    payload = booking_payload(sample_tour.id, adults=3)
    del payload["pricing"]

    booking = await BookingService(test_session).create_booking(_request(payload), customer)

    assert booking.adult_price == sample_tour.price_amount
    assert booking.total_price == 3 * sample_tour.price_amount
    assert booking.currency == "USD"


@pytest.mark.asyncio
async def test_create_booking_unknown_tour(test_session, booking_payload, customer):
    """Booking a missing tour raises NotFoundError."""
    with pytest.raises(NotFoundError):
        await BookingService(test_session).create_booking(_request(booking_payload(uuid4())), customer)


@pytest.mark.asyncio
async def test_create_booking_over_capacity_persists_nothing(
    test_session, sample_tour, booking_payload, customer
):
    """A booking larger than the remaining capacity is refused."""
    service = BookingService(test_session)
    await service.create_booking(_request(booking_payload(sample_tour.id, adults=6)), customer)

    with pytest.raises(CapacityError) as exc_info:
        await service.create_booking(_request(booking_payload(sample_tour.id, adults=3, children=2)), customer)

    assert exc_info.value.status_code == 409
    assert exc_info.value.problem_details["code"] == "FULL"
    assert exc_info.value.problem_details["remaining_capacity"] == 4
    bookings = (await test_session.execute(select(Booking))).scalars().all()
    assert len(bookings) == 1


@pytest.mark.asyncio
async def test_create_booking_fills_exactly_to_capacity(test_session, sample_tour, booking_payload, customer):
    """The last seats can be taken."""
    service = BookingService(test_session)
    await service.create_booking(_request(booking_payload(sample_tour.id, adults=6)), customer)
    booking = await service.create_booking(_request(booking_payload(sample_tour.id, adults=4)), customer)

    assert booking.seats == 4


@pytest.mark.asyncio
async def test_reference_collision_is_retried(test_session, sample_tour, booking_payload, customer):
    """An already used reference is skipped and a fresh one allocated."""
    service = BookingService(test_session)
    first = await service.create_booking(_request(booking_payload(sample_tour.id, adults=1)), customer)

    references = iter([first.booking_reference, "BK-ZZZZZZZZ-ABCD"])
    with patch.object(booking_module, "generate_booking_reference", side_effect=lambda: next(references)):
        second = await service.create_booking(_request(booking_payload(sample_tour.id, adults=1)), customer)

    assert second.booking_reference == "BK-ZZZZZZZZ-ABCD"


@pytest.mark.asyncio
async def test_reference_exhaustion_raises_conflict(test_session, sample_tour, booking_payload, customer):
    """Unique violations on every attempt end in ConflictError."""
    service = BookingService(test_session)
    first = await service.create_booking(_request(booking_payload(sample_tour.id, adults=1)), customer)

    async def no_precheck(reference):
        return None

    with patch.object(booking_module, "generate_booking_reference", return_value=first.booking_reference), \
            patch.object(service, "get_booking_by_reference", side_effect=no_precheck):
        with pytest.raises(ConflictError):
            await service.create_booking(_request(booking_payload(sample_tour.id, adults=1)), customer)

    bookings = (await test_session.execute(select(Booking))).scalars().all()
    assert len(bookings) == 1


@pytest.mark.asyncio
async def test_confirm_then_complete(test_session, sample_tour, booking_payload, customer):
    """Confirming stamps confirmed_at; completing releases the seats."""
    service = BookingService(test_session)
    booking = await service.create_booking(_request(booking_payload(sample_tour.id, adults=5)), customer)

    confirmed = await service.update_booking_status(booking.id, BookingStatus.CONFIRMED, "paid at desk")
    assert confirmed.status == BookingStatus.CONFIRMED
    assert confirmed.confirmed_at is not None
    assert confirmed.notes == "paid at desk"

    completed = await service.update_booking_status(booking.id, BookingStatus.COMPLETED)
    assert completed.status == BookingStatus.COMPLETED


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "path",
    [
        [BookingStatus.COMPLETED],
        [BookingStatus.CANCELLED, BookingStatus.CONFIRMED],
        [BookingStatus.CONFIRMED, BookingStatus.PENDING],
        [BookingStatus.CONFIRMED, BookingStatus.COMPLETED, BookingStatus.CANCELLED],
    ],
)
async def test_illegal_transitions_conflict(test_session, sample_tour, booking_payload, customer, path):
    """Only the documented transitions are allowed."""
    service = BookingService(test_session)
    booking = await service.create_booking(_request(booking_payload(sample_tour.id, adults=1)), customer)

    *allowed, refused = path
    for status in allowed:
        await service.update_booking_status(booking.id, status)
    with pytest.raises(ConflictError):
        await service.update_booking_status(booking.id, refused)


@pytest.mark.asyncio
async def test_update_status_unknown_booking(test_session):
    """Unknown bookings raise NotFoundError."""
    with pytest.raises(NotFoundError):
        await BookingService(test_session).update_booking_status(uuid4(), BookingStatus.CONFIRMED)


@pytest.mark.asyncio
async def test_cancel_booking_records_reason(test_session, sample_tour, booking_payload, customer):
    """Owners can cancel with enough notice."""
    service = BookingService(test_session)
    booking = await service.create_booking(_request(booking_payload(sample_tour.id, adults=2)), customer)

    cancelled = await service.cancel_booking(booking.id, "weather", customer)

    assert cancelled.status == BookingStatus.CANCELLED
    assert cancelled.cancelled_at is not None
    assert cancelled.cancellation_reason == "weather"


@pytest.mark.asyncio
async def test_cancel_twice_conflicts(test_session, sample_tour, booking_payload, customer):
    """An already cancelled booking cannot be cancelled again."""
    service = BookingService(test_session)
    booking = await service.create_booking(_request(booking_payload(sample_tour.id)), customer)
    await service.cancel_booking(booking.id, None, customer)

    with pytest.raises(ConflictError):
        await service.cancel_booking(booking.id, None, customer)


@pytest.mark.asyncio
@pytest.mark.parametrize("role", [Role.USER, Role.SELLER, Role.ADMIN])
async def test_cancel_inside_notice_period_refused_for_every_role(
    test_session, sample_tour, booking_payload, customer, role
):
    """The 48-hour rule applies regardless of role."""
    service = BookingService(test_session)
    soon = utcnow() + timedelta(hours=47)
    booking = await service.create_booking(_request(booking_payload(sample_tour.id, when=soon)), customer)
    caller = customer if role == Role.USER else AuthContext(user_id=uuid4(), role=role)

    with pytest.raises(PolicyViolationError) as exc_info:
        await service.cancel_booking(booking.id, None, caller)

    assert exc_info.value.status_code == 400
    assert exc_info.value.problem_details["code"] == "CANCELLATION_NOTICE"
    refreshed = await service.get_booking_by_id(booking.id)
    assert refreshed.status == BookingStatus.PENDING


@pytest.mark.asyncio
async def test_user_cannot_cancel_someone_elses_booking(test_session, sample_tour, booking_payload, customer):
    """Plain users may only cancel their own bookings."""
    service = BookingService(test_session)
    booking = await service.create_booking(_request(booking_payload(sample_tour.id)), customer)
    stranger = AuthContext(user_id=uuid4(), role=Role.USER)

    with pytest.raises(AuthorizationError):
        await service.cancel_booking(booking.id, None, stranger)


@pytest.mark.asyncio
async def test_staff_can_cancel_any_booking(test_session, sample_tour, booking_payload, customer, admin):
    """Admins cancel bookings they do not own."""
    service = BookingService(test_session)
    booking = await service.create_booking(_request(booking_payload(sample_tour.id)), customer)

    cancelled = await service.cancel_booking(booking.id, "overbooked bus", admin)

    assert cancelled.status == BookingStatus.CANCELLED


@pytest.mark.asyncio
async def test_update_payment_status(test_session, sample_tour, booking_payload, customer):
    """Payment fields are overwritten only when provided."""
    service = BookingService(test_session)
    booking = await service.create_booking(_request(booking_payload(sample_tour.id)), customer)

    partial = await service.update_payment_status(
        booking.id, PaymentStatus.PARTIAL, paid_amount=5000, transaction_id="txn_1", payment_method="card"
    )
    assert partial.payment_status == PaymentStatus.PARTIAL
    assert partial.paid_amount == 5000

    paid = await service.update_payment_status(booking.id, PaymentStatus.PAID, paid_amount=20000)
    assert paid.payment_status == PaymentStatus.PAID
    assert paid.paid_amount == 20000
    assert paid.transaction_id == "txn_1"
    assert paid.status == BookingStatus.PENDING


@pytest.mark.asyncio
async def test_get_booking_access(test_session, sample_tour, booking_payload, customer, seller):
    """Owners and staff can read a booking; other users cannot."""
    service = BookingService(test_session)
    booking = await service.create_booking(_request(booking_payload(sample_tour.id)), customer)

    assert (await service.get_booking(booking.id, customer)).id == booking.id
    assert (await service.get_booking(booking.id, seller)).id == booking.id
    with pytest.raises(AuthorizationError):
        await service.get_booking(booking.id, AuthContext(user_id=uuid4(), role=Role.USER))


@pytest.mark.asyncio
async def test_listings_and_stats(test_session, sample_tour, booking_payload, customer):
    """Listing filters and per-status aggregates."""
    service = BookingService(test_session)
    first = await service.create_booking(_request(booking_payload(sample_tour.id, adults=2)), customer)
    await service.create_booking(_request(booking_payload(sample_tour.id, adults=1)), None)
    await service.update_booking_status(first.id, BookingStatus.CONFIRMED)
    await service.update_payment_status(first.id, PaymentStatus.PAID, paid_amount=20000)

    assert len(await service.list_user_bookings(customer.user_id)) == 1
    assert len(await service.list_tour_bookings(sample_tour.id)) == 2

    confirmed, total = await service.list_bookings(status=BookingStatus.CONFIRMED)
    assert total == 1
    assert confirmed[0].id == first.id

    stats = {item.status: item for item in await service.get_booking_stats()}
    assert stats[BookingStatus.CONFIRMED].count == 1
    assert stats[BookingStatus.CONFIRMED].total_revenue == 20000
    assert stats[BookingStatus.CONFIRMED].paid_revenue == 20000
    assert stats[BookingStatus.PENDING].count == 1
    assert stats[BookingStatus.CANCELLED].count == 0
