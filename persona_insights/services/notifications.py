"""
In-app notification helpers.

Notifications are written in the caller's transaction, so a rolled-back
invitation or membership change never leaves a stray notification behind.
"""

import logging
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from persona_insights.models.notification import Notification, NotificationType

logger = logging.getLogger(__name__)


async def notify(
    db: AsyncSession,
    profile_id: int,
    type: NotificationType,
    title: str,
    message: str,
    data: dict[str, Any] | None = None,
) -> Notification:
    """Queue a notification for a profile in the current transaction."""
    notification = Notification(
        profile_id=profile_id,
        type=type,
        title=title,
        message=message,
        data=data or {},
    )
    db.add(notification)
    logger.info(f"Notification {type.value} queued for profile {profile_id}")
    return notification


async def list_notifications(
    db: AsyncSession,
    profile_id: int,
    unread_only: bool = False,
    limit: int = 50,
) -> list[Notification]:
    query = select(Notification).where(Notification.profile_id == profile_id)
    if unread_only:
        query = query.where(Notification.read.is_(False))
    query = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def mark_read(
    db: AsyncSession,
    profile_id: int,
    notification_ids: list[int] | None = None,
) -> int:
    """Mark the given notifications (or all of them) as read. Returns rows updated."""
    stmt = (
        update(Notification)
        .where(Notification.profile_id == profile_id, Notification.read.is_(False))
        .values(read=True)
    )
    if notification_ids is not None:
        stmt = stmt.where(Notification.id.in_(notification_ids))
    result = await db.execute(stmt)
    return result.rowcount or 0
