"""Unit tests for tour service."""

from uuid import uuid4

import pytest

from marketplace.core.exceptions import ConflictError, NotFoundError
from marketplace.schemas.tour import CreateTourRequest
from marketplace.services.tour_service import TourService


@pytest.mark.asyncio
async def test_create_tour(test_session, sample_tour_data, seller):
    """Test creating a tour."""
    service = TourService(test_session)

    tour = await service.create_tour(CreateTourRequest(**sample_tour_data), seller)

    assert tour.id is not None
    assert tour.title == sample_tour_data["title"]
    assert tour.code == sample_tour_data["code"]
    assert tour.seller_id == seller.user_id
    assert tour.tour_status == "draft"
    assert tour.capacity == 10


@pytest.mark.asyncio
async def test_create_tour_duplicate_code(test_session, sample_tour_data, seller):
    """Test creating a tour with duplicate code raises error."""
    service = TourService(test_session)
    await service.create_tour(CreateTourRequest(**sample_tour_data), seller)

    with pytest.raises(ConflictError):
        await service.create_tour(
            CreateTourRequest(**{**sample_tour_data, "title": "Different Tour"}),
            seller
        )


@pytest.mark.asyncio
async def test_tour_without_max_size_uses_default_capacity(test_session, sample_tour_data, seller):
    """A tour with no max size takes the default capacity."""
    data = {**sample_tour_data, "max_size": None}
    tour = await TourService(test_session).create_tour(CreateTourRequest(**data), seller)

    assert tour.max_size is None
    assert tour.capacity == 10


@pytest.mark.asyncio
async def test_get_tour_by_id(test_session, sample_tour):
    """Test getting a tour by ID."""
    found_tour = await TourService(test_session).get_tour_by_id(sample_tour.id)

    assert found_tour is not None
    assert found_tour.code == sample_tour.code


@pytest.mark.asyncio
async def test_get_tour_by_id_not_found(test_session):
    """Test getting a non-existent tour returns None."""
    assert await TourService(test_session).get_tour_by_id(uuid4()) is None


@pytest.mark.asyncio
async def test_get_tour_by_id_or_raise(test_session):
    """Test that a missing tour raises NotFoundError."""
    with pytest.raises(NotFoundError):
        await TourService(test_session).get_tour_by_id_or_raise(uuid4())


def test_max_size_smaller_than_min_size_rejected(sample_tour_data):
    """The request schema refuses an inverted size range."""
    with pytest.raises(ValueError):
        CreateTourRequest(**{**sample_tour_data, "min_size": 5, "max_size": 2})
