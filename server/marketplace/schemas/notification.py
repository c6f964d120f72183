"""Notification schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from ..models.notification import NotificationType
from .common import CamelModel


class Notification(CamelModel):
    """Notification response schema."""

    id: UUID
    recipient_id: UUID
    sender_id: Optional[UUID] = None
    type: NotificationType
    title: str
    message: str
    entity_kind: Optional[str] = None
    entity_id: Optional[UUID] = None
    entity_name: Optional[str] = None
    rejection_reason: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime
