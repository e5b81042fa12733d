"""
Notifications router.
"""

from datetime import datetime

from fastapi import APIRouter, Query
from pydantic import BaseModel

from persona_insights.deps import CurrentProfile, DBSession
from persona_insights.models.base import as_utc
from persona_insights.models.notification import NotificationType
from persona_insights.services.notifications import list_notifications, mark_read

router = APIRouter(prefix="/notifications", tags=["notifications"])


class NotificationOut(BaseModel):
    id: int
    type: NotificationType
    title: str
    message: str
    data: dict | None = None
    read: bool
    created_at: datetime


class MarkReadRequest(BaseModel):
    ids: list[int] | None = None  # None marks everything


@router.get("", response_model=list[NotificationOut])
async def get_notifications(
    profile: CurrentProfile,
    db: DBSession,
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
):
    notifications = await list_notifications(db, profile.id, unread_only=unread_only, limit=limit)
    return [
        NotificationOut(
            id=n.id,
            type=n.type,
            title=n.title,
            message=n.message,
            data=n.data,
            read=n.read,
            created_at=as_utc(n.created_at),
        )
        for n in notifications
    ]


@router.post("/read")
async def read_notifications(profile: CurrentProfile, db: DBSession, data: MarkReadRequest):
    updated = await mark_read(db, profile.id, data.ids)
    await db.commit()
    return {"updated": updated}
