"""
Technician notifications.

Writers only add rows to the caller's session; they are committed together
with the points or assignment change that produced them.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from repair_api.exceptions import NotFoundError
from repair_api.models.notification import NotificationType, TechnicianNotification

logger = logging.getLogger(__name__)


def notify(
    db: AsyncSession,
    user_id: int,
    type: NotificationType,
    title: str,
    message: str,
    data: Optional[dict] = None,
) -> TechnicianNotification:
    notification = TechnicianNotification(
        user_id=user_id,
        type=type.value,
        title=title,
        message=message,
        data=data,
        is_read=False,
    )
    db.add(notification)
    logger.info("Notification created", extra={"user_id": user_id, "type": type.value})
    return notification


def notify_points_earned(db: AsyncSession, profile, entry) -> TechnicianNotification:
    return notify(
        db,
        profile.user_id,
        NotificationType.POINTS_EARNED,
        "Points Earned!",
        f"You earned {entry.points} points for {entry.description}",
        {"points": entry.points, "type": entry.type, "service_id": entry.service_id},
    )


def notify_promotion_available(db: AsyncSession, profile, candidate) -> TechnicianNotification:
    current = candidate.current_level
    return notify(
        db,
        profile.user_id,
        NotificationType.LEVEL_PROMOTION,
        "Level Promotion Available!",
        f"Congratulations! You are now eligible for promotion to {candidate.eligible_level.name}.",
        {
            "current_level": current.code if current else None,
            "eligible_level": candidate.eligible_level.code,
            "total_points": candidate.total_points,
        },
    )


def notify_promoted(db: AsyncSession, profile, from_level, to_level, bonus_points: int) -> TechnicianNotification:
    message = f"You have been promoted to {to_level.name}."
    if bonus_points:
        message += f" {bonus_points} bonus points have been added."
    return notify(
        db,
        profile.user_id,
        NotificationType.LEVEL_PROMOTION,
        f"Promoted to {to_level.name}",
        message,
        {
            "from_level": from_level.code if from_level else None,
            "to_level": to_level.code,
            "bonus_points": bonus_points,
        },
    )


def notify_service_assigned(db: AsyncSession, profile, service) -> TechnicianNotification:
    return notify(
        db,
        profile.user_id,
        NotificationType.SERVICE_ASSIGNED,
        "New Service Assigned",
        f"Service {service.ticket_number} has been assigned to you",
        {"service_id": service.id, "ticket_number": service.ticket_number},
    )


# ── Reading ───────────────────────────────────────────────


async def list_notifications(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    page_size: int = 20,
    unread_only: bool = False,
) -> tuple[list[TechnicianNotification], int]:
    """A user's notifications, newest first, with the total matching count."""
    query = select(TechnicianNotification).where(TechnicianNotification.user_id == user_id)
    if unread_only:
        query = query.where(TechnicianNotification.is_read.is_(False))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(
        query.order_by(TechnicianNotification.created_at.desc(), TechnicianNotification.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().all()), total


async def unread_count(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        select(func.count(TechnicianNotification.id)).where(
            TechnicianNotification.user_id == user_id,
            TechnicianNotification.is_read.is_(False),
        )
    )
    return result.scalar() or 0


async def mark_read(db: AsyncSession, notification_id: int, user_id: int) -> TechnicianNotification:
    """Mark one of the user's notifications read. Other users' notifications are not found."""
    result = await db.execute(
        select(TechnicianNotification).where(
            TechnicianNotification.id == notification_id,
            TechnicianNotification.user_id == user_id,
        )
    )
    notification = result.scalar_one_or_none()
    if not notification:
        raise NotFoundError("Notification", notification_id)

    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.now(timezone.utc)
        await db.commit()
    return notification


async def mark_all_read(db: AsyncSession, user_id: int) -> int:
    """Mark every unread notification of the user read; returns how many changed."""
    result = await db.execute(
        update(TechnicianNotification)
        .where(
            TechnicianNotification.user_id == user_id,
            TechnicianNotification.is_read.is_(False),
        )
        .values(is_read=True, read_at=datetime.now(timezone.utc))
    )
    await db.commit()
    return result.rowcount or 0
