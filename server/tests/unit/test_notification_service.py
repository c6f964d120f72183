"""Unit tests for the notification service."""

from uuid import uuid4

import pytest

from marketplace.core.exceptions import NotFoundError
from marketplace.models.catalog import ApprovalStatus
from marketplace.models.notification import NotificationType
from marketplace.services.approval_service import CATEGORY, DESTINATION, ApprovalService
from marketplace.services.notification_service import NotificationService


@pytest.mark.asyncio
async def test_rejection_notification_carries_reason(test_session, seller, admin):
    """The creator is told why their destination was rejected."""
    service = ApprovalService(test_session, DESTINATION)
    destination = await service.submit(
        {"name": "Atlantis", "description": None, "cover_image": None, "country": "Nowhere", "region": None, "city": None},
        seller,
    )
    await service.reject(destination.id, admin, "Not a real place")

    inbox = await NotificationService(test_session).list_for_recipient(seller.user_id)

    assert len(inbox) == 1
    notification = inbox[0]
    assert notification.type == NotificationType.DESTINATION_REJECTED
    assert notification.sender_id == admin.user_id
    assert notification.entity_id == destination.id
    assert notification.entity_name == "Atlantis"
    assert notification.rejection_reason == "Not a real place"
    assert "Not a real place" in notification.message
    assert notification.is_read is False


@pytest.mark.asyncio
async def test_notify_decision_is_added_not_committed(test_session, seller, admin):
    """Queued notifications are only visible once the caller commits."""
    category = await ApprovalService(test_session, CATEGORY).submit(
        {"name": "Hiking", "description": None, "image_url": None, "reason": None},
        seller,
    )
    service = NotificationService(test_session)

    notification = service.notify_decision("category", category, ApprovalStatus.APPROVED, admin.user_id)

    assert notification in test_session.new
    assert notification.title == "Category approved"
    assert notification.rejection_reason is None


@pytest.mark.asyncio
async def test_mark_read_and_unread_filter(test_session, seller, admin):
    """Reading a notification drops it from the unread list."""
    service = ApprovalService(test_session, CATEGORY)
    category = await service.submit({"name": "Diving", "description": None, "image_url": None, "reason": None}, seller)
    await service.approve(category.id, admin)

    notifications = NotificationService(test_session)
    [notification] = await notifications.list_for_recipient(seller.user_id, unread_only=True)

    read = await notifications.mark_read(notification.id, seller.user_id)

    assert read.is_read is True
    assert read.read_at is not None
    assert await notifications.list_for_recipient(seller.user_id, unread_only=True) == []
    assert len(await notifications.list_for_recipient(seller.user_id)) == 1


@pytest.mark.asyncio
async def test_mark_read_of_someone_else(test_session, seller, other_seller, admin):
    """Another user's notification looks missing."""
    service = ApprovalService(test_session, CATEGORY)
    category = await service.submit({"name": "Rafting", "description": None, "image_url": None, "reason": None}, seller)
    await service.approve(category.id, admin)
    [notification] = await NotificationService(test_session).list_for_recipient(seller.user_id)

    with pytest.raises(NotFoundError):
        await NotificationService(test_session).mark_read(notification.id, other_seller.user_id)
    with pytest.raises(NotFoundError):
        await NotificationService(test_session).mark_read(uuid4(), seller.user_id)
