"""Models module exporting all database models."""

from .booking import ACTIVE_STATUSES, ALLOWED_TRANSITIONS, Booking, BookingStatus, PaymentStatus, can_transition
from .catalog import ApprovalStatus, GlobalCategory, GlobalDestination
from .departure_slot import DepartureSlot
from .idempotency import IdempotencyRecord
from .notification import Notification, NotificationType
from .seller_preference import EntityKindName, SellerPreference
from .tour import Tour, TourStatus

__all__ = [
    # Tours and capacity
    "Tour",
    "TourStatus",
    "DepartureSlot",

    # Booking entities
    "Booking",
    "BookingStatus",
    "PaymentStatus",
    "ACTIVE_STATUSES",
    "ALLOWED_TRANSITIONS",
    "can_transition",

    # Global catalog
    "ApprovalStatus",
    "GlobalCategory",
    "GlobalDestination",
    "EntityKindName",
    "SellerPreference",

    # Notifications
    "Notification",
    "NotificationType",

    # Idempotency entity
    "IdempotencyRecord",
]
