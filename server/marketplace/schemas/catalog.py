"""Schemas for global categories, destinations and seller preferences."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field, field_validator

from ..models.catalog import ApprovalStatus
from .common import CamelModel


def _reject_null_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        raise ValueError("name cannot be null")
    return value


class CategorySubmitRequest(CamelModel):
    """A seller's proposal for a new category."""

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    image_url: Optional[str] = Field(None, max_length=1024)
    reason: Optional[str] = Field(None, max_length=2000, description="Why the category is needed")


class CategoryUpdateRequest(CamelModel):
    """Partial update of a category; omitted fields are left unchanged."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    image_url: Optional[str] = Field(None, max_length=1024)
    reason: Optional[str] = Field(None, max_length=2000)
    is_active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def name_not_null(cls, value: Optional[str]) -> Optional[str]:
        return _reject_null_name(value)


class DestinationSubmitRequest(CamelModel):
    """A seller's proposal for a new destination."""

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    cover_image: Optional[str] = Field(None, max_length=1024)
    country: Optional[str] = Field(None, max_length=100)
    region: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=100)


class DestinationUpdateRequest(CamelModel):
    """Partial update of a destination; omitted fields are left unchanged."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    cover_image: Optional[str] = Field(None, max_length=1024)
    country: Optional[str] = Field(None, max_length=100)
    region: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=100)
    is_active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def name_not_null(cls, value: Optional[str]) -> Optional[str]:
        return _reject_null_name(value)


class RejectRequest(CamelModel):
    """Admin rejection; the reason is required."""

    reason: Optional[str] = Field(None, max_length=2000)


class GlobalEntity(CamelModel):
    """Fields shared by every global catalog entity."""

    id: UUID
    name: str
    slug: str
    description: Optional[str] = None
    approval_status: ApprovalStatus
    is_approved: bool
    is_active: bool
    created_by: UUID
    approved_by: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[UUID] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    submitted_at: datetime
    usage_count: int
    created_at: datetime
    updated_at: datetime


class Category(GlobalEntity):
    """Category response schema."""

    image_url: Optional[str] = None
    reason: Optional[str] = None


class Destination(GlobalEntity):
    """Destination response schema."""

    cover_image: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None


class SellerPreference(CamelModel):
    """A seller's flags for one global entity."""

    is_active: bool
    is_approved: bool
    approval_status: ApprovalStatus
    is_visible: bool
    is_enabled: bool
    is_favorite: bool
    added_at: datetime


class SellerCategory(Category):
    """Category as seen by one seller."""

    is_owner: bool
    preference: SellerPreference


class SellerDestination(Destination):
    """Destination as seen by one seller."""

    is_owner: bool
    preference: SellerPreference
