"""Tour service for business logic operations."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import AuthContext
from ..core.exceptions import ConflictError, NotFoundError
from ..models.tour import Tour
from ..schemas.tour import CreateTourRequest

logger = logging.getLogger(__name__)


class TourService:
    """Service for tour-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_tour(self, request: CreateTourRequest, seller: AuthContext) -> Tour:
        """
        Create a new tour owned by ``seller``.

        Args:
            request: Tour creation request
            seller: Caller creating the tour

        Returns:
            Created tour entity

        Raises:
            ConflictError: If a tour with the same code already exists
        """
        existing_tour = await self.get_tour_by_code(request.code)
        if existing_tour:
            logger.warning(
                "Tour creation failed - code already exists",
                extra={
                    "code": request.code,
                    "existing_tour_id": str(existing_tour.id)
                }
            )
            raise ConflictError(
                detail=f"Tour with code '{request.code}' already exists",
                conflicting_resource={
                    "id": str(existing_tour.id),
                    "code": existing_tour.code,
                    "title": existing_tour.title
                }
            )

        tour = Tour(
            title=request.title,
            code=request.code,
            seller_id=seller.user_id,
            description=request.description,
            min_size=request.min_size,
            max_size=request.max_size,
            tour_status=request.tour_status,
            price_amount=request.price_amount,
            price_currency=request.price_currency,
        )

        try:
            self.db.add(tour)
            await self.db.commit()
            await self.db.refresh(tour)
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(
                "Tour creation failed due to integrity constraint",
                extra={"code": request.code, "error": str(e)}
            )
            raise ConflictError(detail=f"Tour with code '{request.code}' already exists") from e

        logger.info(
            "Tour created successfully",
            extra={
                "tour_id": str(tour.id),
                "code": tour.code,
                "seller_id": str(tour.seller_id),
                "max_size": tour.max_size
            }
        )
        return tour

    async def get_tour_by_id(self, tour_id: UUID) -> Optional[Tour]:
        """Get tour by ID, or None."""
        stmt = select(Tour).where(Tour.id == tour_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_tour_by_code(self, code: str) -> Optional[Tour]:
        """Get tour by its unique code, or None."""
        stmt = select(Tour).where(Tour.code == code)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_tour_by_id_or_raise(self, tour_id: UUID) -> Tour:
        """
        Get tour by ID or raise NotFoundError.

        Raises:
            NotFoundError: If tour not found
        """
        tour = await self.get_tour_by_id(tour_id)
        if not tour:
            logger.warning(
                "Tour not found",
                extra={"tour_id": str(tour_id)}
            )
            raise NotFoundError(
                resource_type="tour",
                resource_id=str(tour_id)
            )
        return tour
