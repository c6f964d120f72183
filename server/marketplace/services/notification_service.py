"""Notification service for in-app messages."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import utcnow
from ..core.exceptions import NotFoundError
from ..models.catalog import ApprovalStatus
from ..models.notification import Notification, NotificationType

logger = logging.getLogger(__name__)


class NotificationService:
    """Service for creating and reading notifications."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def notify_decision(
        self,
        kind: str,
        entity,
        decision: ApprovalStatus,
        sender_id: UUID,
    ) -> Notification:
        """
        Queue a notification to the entity's creator about an admin decision.

        The notification is added to the session; the caller commits it
        together with the decision.
        """
        approved = decision == ApprovalStatus.APPROVED
        notification_type = NotificationType(f"{kind}_{'approved' if approved else 'rejected'}")

        if approved:
            title = f"{kind.capitalize()} approved"
            message = f"Your {kind} '{entity.name}' has been approved and is now available."
        else:
            title = f"{kind.capitalize()} rejected"
            message = f"Your {kind} '{entity.name}' has been rejected. Reason: {entity.rejection_reason}"

        notification = Notification(
            recipient_id=entity.created_by,
            sender_id=sender_id,
            type=notification_type,
            title=title,
            message=message,
            entity_kind=kind,
            entity_id=entity.id,
            entity_name=entity.name,
            rejection_reason=None if approved else entity.rejection_reason,
        )
        self.db.add(notification)

        logger.info(
            "Decision notification queued",
            extra={
                "recipient_id": str(entity.created_by),
                "type": notification_type.value,
                "entity_id": str(entity.id)
            }
        )
        return notification

    async def list_for_recipient(self, recipient_id: UUID, unread_only: bool = False) -> list[Notification]:
        """Notifications of a user, newest first."""
        stmt = select(Notification).where(Notification.recipient_id == recipient_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        stmt = stmt.order_by(Notification.created_at.desc())
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def mark_read(self, notification_id: UUID, recipient_id: UUID) -> Notification:
        """
        Mark one of the recipient's notifications as read.

        Raises:
            NotFoundError: If the notification does not exist or belongs to someone else
        """
        stmt = select(Notification).where(
            Notification.id == notification_id,
            Notification.recipient_id == recipient_id,
        )
        result = await self.db.execute(stmt)
        notification = result.scalar_one_or_none()
        if notification is None:
            raise NotFoundError(resource_type="notification", resource_id=str(notification_id))

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            await self.db.commit()
            await self.db.refresh(notification)

        return notification
