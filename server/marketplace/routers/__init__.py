"""FastAPI routers package."""

from .booking import router as booking_router
from .catalog import category_router, destination_router
from .metrics import router as metrics_router
from .notification import router as notification_router
from .tour import router as tour_router

__all__ = [
    "booking_router",
    "category_router",
    "destination_router",
    "metrics_router",
    "notification_router",
    "tour_router",
]
