"""Booking router for booking operations."""

import logging
from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.dependencies import (
    AuthContext,
    DatabaseSession,
    IdempotencyKey,
    OptionalAuth,
    RequiredAuth,
    StaffOnly,
)
from ..core.exceptions import ProblemDetailsException
from ..models.booking import BookingStatus, PaymentStatus
from ..schemas.booking import (
    Booking,
    BookingList,
    BookingStats,
    BookingStatusStats,
    CancelBookingRequest,
    CreateBookingRequest,
    UpdateBookingStatusRequest,
    UpdatePaymentRequest,
)
from ..schemas.common import dump
from ..services.booking_service import BookingService
from ..services.idempotency_service import IdempotencyService, scope_idempotency_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/bookings", tags=["bookings"])


def _booking_response(booking, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=dump(Booking.from_model(booking)))


async def _handle_idempotent_operation(
    method: str,
    idempotency_key: Optional[str],
    request_body: dict[str, Any],
    operation_func: Callable[[], Awaitable[tuple[int, dict[str, Any]]]],
    db: AsyncSession,
    auth: Optional[AuthContext]
) -> JSONResponse:
    """
    Run ``operation_func`` once per idempotency key, replaying its response afterwards.

    Keys are scoped to the calling user; anonymous callers share one guest scope.
    """
    if idempotency_key is None:
        status_code, response_body = await operation_func()
        return JSONResponse(status_code=status_code, content=response_body)

    idempotency_key = scope_idempotency_key(idempotency_key, str(auth.user_id) if auth else None)

    idempotency_service = IdempotencyService(db)

    cached_response = await idempotency_service.check_idempotency(
        idempotency_key=idempotency_key,
        method=method,
        request_body=request_body
    )
    if cached_response:
        status_code, response_body = cached_response
        return JSONResponse(status_code=status_code, content=response_body)

    try:
        status_code, response_body = await operation_func()
    except ProblemDetailsException as e:
        if e.status_code < 500:
            await idempotency_service.store_response(
                idempotency_key=idempotency_key,
                method=method,
                request_body=request_body,
                status_code=e.status_code,
                response_body=e.problem_details,
                ttl_hours=settings.idempotency_ttl_hours
            )
        raise

    await idempotency_service.store_response(
        idempotency_key=idempotency_key,
        method=method,
        request_body=request_body,
        status_code=status_code,
        response_body=response_body,
        ttl_hours=settings.idempotency_ttl_hours
    )
    return JSONResponse(status_code=status_code, content=response_body)


@router.post("", response_model=Booking, status_code=201)
async def create_booking(
    request: CreateBookingRequest,
    db: AsyncSession = DatabaseSession,
    auth: Optional[AuthContext] = OptionalAuth,
    idempotency_key: Optional[str] = IdempotencyKey
) -> JSONResponse:
    """
    Book a tour departure. Anonymous callers create guest bookings.

    Retrying with the same Idempotency-Key header and body replays the first response.
    """
    booking_service = BookingService(db)

    async def operation():
        booking = await booking_service.create_booking(request, auth)
        return 201, dump(Booking.from_model(booking))

    return await _handle_idempotent_operation(
        method="bookings/create",
        idempotency_key=idempotency_key,
        request_body=request.model_dump(mode="json"),
        operation_func=operation,
        db=db,
        auth=auth
    )


@router.get("", response_model=BookingList)
async def list_bookings(
    status: Optional[BookingStatus] = None,
    payment_status: Optional[PaymentStatus] = Query(None, alias="paymentStatus"),
    tour_id: Optional[UUID] = Query(None, alias="tourId"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = DatabaseSession,
    auth: AuthContext = StaffOnly
) -> JSONResponse:
    """List bookings with optional status, payment and tour filters."""
    items, total = await BookingService(db).list_bookings(
        status=status,
        payment_status=payment_status,
        tour_id=tour_id,
        limit=limit,
        offset=offset,
    )
    page = BookingList(
        items=[Booking.from_model(booking) for booking in items],
        total=total,
        limit=limit,
        offset=offset,
    )
    return JSONResponse(status_code=200, content=dump(page))


@router.get("/stats", response_model=BookingStats)
async def get_booking_stats(
    db: AsyncSession = DatabaseSession,
    auth: AuthContext = StaffOnly
) -> JSONResponse:
    """Booking counts and revenue per status."""
    stats = await BookingService(db).get_booking_stats()
    response = BookingStats(
        total_bookings=sum(item.count for item in stats),
        total_revenue=sum(item.total_revenue for item in stats),
        paid_revenue=sum(item.paid_revenue for item in stats),
        by_status=[
            BookingStatusStats(
                status=item.status,
                count=item.count,
                total_revenue=item.total_revenue,
                paid_revenue=item.paid_revenue,
            )
            for item in stats
        ],
    )
    return JSONResponse(status_code=200, content=dump(response))


@router.get("/my-bookings", response_model=list[Booking])
async def list_my_bookings(
    db: AsyncSession = DatabaseSession,
    auth: AuthContext = RequiredAuth
) -> JSONResponse:
    """Bookings made by the caller."""
    bookings = await BookingService(db).list_user_bookings(auth.user_id)
    return JSONResponse(status_code=200, content=[dump(Booking.from_model(b)) for b in bookings])


@router.get("/reference/{reference}", response_model=Booking)
async def get_booking_by_reference(
    reference: str,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Look up a booking by its public reference."""
    booking = await BookingService(db).get_booking_by_reference_or_raise(reference)
    return _booking_response(booking)


@router.get("/tour/{tour_id}", response_model=list[Booking])
async def list_tour_bookings(
    tour_id: UUID,
    db: AsyncSession = DatabaseSession,
    auth: AuthContext = StaffOnly
) -> JSONResponse:
    """Bookings of one tour."""
    bookings = await BookingService(db).list_tour_bookings(tour_id)
    return JSONResponse(status_code=200, content=[dump(Booking.from_model(b)) for b in bookings])


@router.get("/{booking_id}", response_model=Booking)
async def get_booking(
    booking_id: UUID,
    db: AsyncSession = DatabaseSession,
    auth: AuthContext = RequiredAuth
) -> JSONResponse:
    """Get a booking owned by the caller, or any booking for staff."""
    booking = await BookingService(db).get_booking(booking_id, auth)
    return _booking_response(booking)


@router.post("/{booking_id}/cancel", response_model=Booking)
async def cancel_booking(
    booking_id: UUID,
    request: Optional[CancelBookingRequest] = None,
    db: AsyncSession = DatabaseSession,
    auth: AuthContext = RequiredAuth
) -> JSONResponse:
    """Cancel a booking at least the notice period before departure."""
    reason = request.reason if request else None
    booking = await BookingService(db).cancel_booking(booking_id, reason, auth)

    logger.info(
        "Booking cancelled",
        extra={"booking_id": str(booking_id), "cancelled_by": str(auth.user_id), "role": auth.role.value}
    )
    return _booking_response(booking)


@router.patch("/{booking_id}/status", response_model=Booking)
async def update_booking_status(
    booking_id: UUID,
    request: UpdateBookingStatusRequest,
    db: AsyncSession = DatabaseSession,
    auth: AuthContext = StaffOnly
) -> JSONResponse:
    """Move a booking through its lifecycle."""
    booking = await BookingService(db).update_booking_status(booking_id, request.status, request.notes)
    return _booking_response(booking)


@router.patch("/{booking_id}/payment", response_model=Booking)
async def update_payment_status(
    booking_id: UUID,
    request: UpdatePaymentRequest,
    db: AsyncSession = DatabaseSession,
    auth: AuthContext = StaffOnly
) -> JSONResponse:
    """Record payment status, amount and transaction details."""
    booking = await BookingService(db).update_payment_status(
        booking_id,
        request.payment_status,
        paid_amount=request.paid_amount,
        transaction_id=request.transaction_id,
        payment_method=request.payment_method,
    )
    return _booking_response(booking)
