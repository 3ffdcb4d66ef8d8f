"""Notifications API - the signed-in user's technician notifications."""

from fastapi import APIRouter, Query

from repair_api.api.deps import DbSession, CurrentUser
from repair_api.schemas.errors import get_error_responses
from repair_api.schemas.notification import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from repair_api.services import notification_service

router = APIRouter()


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    db: DbSession,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    unread_only: bool = False,
):
    """List notifications for the current user, newest first."""
    items, total = await notification_service.list_notifications(
        db, current_user.id, page, page_size, unread_only
    )
    return NotificationListResponse(
        items=items,
        total=total,
        unread_count=await notification_service.unread_count(db, current_user.id),
        page=page,
        page_size=page_size,
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(db: DbSession, current_user: CurrentUser):
    return UnreadCountResponse(unread_count=await notification_service.unread_count(db, current_user.id))


@router.post(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    responses=get_error_responses(404),
)
async def mark_notification_read(notification_id: int, db: DbSession, current_user: CurrentUser):
    """Mark a notification as read."""
    return await notification_service.mark_read(db, notification_id, current_user.id)


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_notifications_read(db: DbSession, current_user: CurrentUser):
    """Mark all of the current user's notifications as read."""
    return MarkAllReadResponse(updated=await notification_service.mark_all_read(db, current_user.id))
