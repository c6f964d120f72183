"""Tour router for tour management and availability."""

import logging
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import AdminOnly, AuthContext, DatabaseSession, StaffOnly
from ..schemas.common import dump
from ..schemas.tour import Availability, CreateTourRequest, Tour
from ..services.availability_service import AvailabilityResult, AvailabilityService
from ..services.tour_service import TourService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/tours", tags=["tours"])

DATE_QUERY = Query(..., description="Departure date (ISO 8601); the whole calendar day is checked")


def _availability_response(result: AvailabilityResult) -> JSONResponse:
    response = Availability(
        tour_id=result.tour_id,
        date=result.date,
        available=result.available,
        remaining_capacity=result.remaining_capacity,
        max_size=result.max_size,
        booked=result.booked,
    )
    return JSONResponse(status_code=200, content=dump(response))


@router.post("", response_model=Tour, status_code=201)
async def create_tour(
    request: CreateTourRequest,
    db: AsyncSession = DatabaseSession,
    auth: AuthContext = StaffOnly
) -> JSONResponse:
    """Create a tour owned by the calling seller."""
    tour = await TourService(db).create_tour(request, auth)
    return JSONResponse(status_code=201, content=dump(Tour.model_validate(tour)))


@router.get("/{tour_id}", response_model=Tour)
async def get_tour(
    tour_id: UUID,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Get a tour by ID."""
    tour = await TourService(db).get_tour_by_id_or_raise(tour_id)
    return JSONResponse(status_code=200, content=dump(Tour.model_validate(tour)))


@router.get("/{tour_id}/availability", response_model=Availability)
async def check_availability(
    tour_id: UUID,
    date: datetime = DATE_QUERY,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Remaining capacity of a tour on a departure day."""
    result = await AvailabilityService(db).check_availability(tour_id, date)
    return _availability_response(result)


@router.post("/{tour_id}/availability/reconcile", response_model=Availability)
async def reconcile_availability(
    tour_id: UUID,
    date: datetime = DATE_QUERY,
    db: AsyncSession = DatabaseSession,
    auth: AuthContext = AdminOnly
) -> JSONResponse:
    """Rebuild a departure day's seat ledger from its active bookings."""
    result = await AvailabilityService(db).reconcile(tour_id, date)

    logger.info(
        "Availability reconciled",
        extra={"tour_id": str(tour_id), "date": result.date.isoformat(), "admin_id": str(auth.user_id)}
    )
    return _availability_response(result)
