"""Tour-related Pydantic schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field, model_validator

from ..models.tour import TourStatus
from .common import CamelModel


class CreateTourRequest(CamelModel):
    """Request schema for creating a tour."""

    title: str = Field(..., min_length=1, max_length=255, description="Tour title")
    code: str = Field(..., min_length=1, max_length=64, pattern=r"^[A-Za-z0-9-]+$", description="Unique tour code")
    description: Optional[str] = Field(None, max_length=5000, description="Tour description")
    min_size: int = Field(1, ge=1, description="Minimum group size")
    max_size: Optional[int] = Field(None, ge=1, description="Maximum participants per departure day")
    tour_status: TourStatus = Field(TourStatus.DRAFT, description="Publication status")
    price_amount: int = Field(0, ge=0, description="Adult price in minor units")
    price_currency: str = Field("USD", pattern=r"^[A-Z]{3}$", description="ISO 4217 currency code")

    @model_validator(mode="after")
    def check_sizes(self):
        if self.max_size is not None and self.max_size < self.min_size:
            raise ValueError("maxSize must not be smaller than minSize")
        return self


class Tour(CamelModel):
    """Tour response schema."""

    id: UUID
    title: str
    code: str
    seller_id: UUID
    description: Optional[str] = None
    min_size: int
    max_size: Optional[int] = None
    capacity: int = Field(..., description="Effective per-day capacity")
    tour_status: TourStatus
    price_amount: int
    price_currency: str
    created_at: datetime
    updated_at: datetime


class Availability(CamelModel):
    """Capacity of a tour on one departure day."""

    tour_id: UUID
    date: datetime = Field(..., description="Start of the departure day (UTC)")
    available: bool
    remaining_capacity: int = Field(..., ge=0)
    max_size: int
    booked: int = Field(..., ge=0, description="Adult and child seats held by active bookings")
