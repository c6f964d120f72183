"""Service layer package."""

from .approval_service import CATEGORY, DESTINATION, ApprovalService, EntityKind
from .availability_service import AvailabilityService
from .booking_service import BookingService
from .idempotency_service import IdempotencyService
from .notification_service import NotificationService
from .tour_service import TourService

__all__ = [
    "ApprovalService",
    "AvailabilityService",
    "BookingService",
    "CATEGORY",
    "DESTINATION",
    "EntityKind",
    "IdempotencyService",
    "NotificationService",
    "TourService",
]
