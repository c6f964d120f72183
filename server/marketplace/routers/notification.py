"""Notification router."""

from uuid import UUID

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import AuthContext, DatabaseSession, RequiredAuth
from ..schemas.common import dump
from ..schemas.notification import Notification
from ..services.notification_service import NotificationService

router = APIRouter(prefix="/v1/notifications", tags=["notifications"])


@router.get("", response_model=list[Notification])
async def list_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    db: AsyncSession = DatabaseSession,
    auth: AuthContext = RequiredAuth
) -> JSONResponse:
    """The caller's notifications, newest first."""
    notifications = await NotificationService(db).list_for_recipient(auth.user_id, unread_only=unread_only)
    return JSONResponse(
        status_code=200,
        content=[dump(Notification.model_validate(n)) for n in notifications]
    )


@router.patch("/{notification_id}/read", response_model=Notification)
async def mark_notification_read(
    notification_id: UUID,
    db: AsyncSession = DatabaseSession,
    auth: AuthContext = RequiredAuth
) -> JSONResponse:
    """Mark one of the caller's notifications as read."""
    notification = await NotificationService(db).mark_read(notification_id, auth.user_id)
    return JSONResponse(status_code=200, content=dump(Notification.model_validate(notification)))
