"""
In-app notification model.
"""

from enum import Enum

from sqlalchemy import JSON, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from persona_insights.db import Base
from persona_insights.models.base import TimestampMixin


class NotificationType(str, Enum):
    INVITATION_ACCEPTED = "invitation_accepted"
    INVITATION_DECLINED = "invitation_declined"
    TEAM_MEMBER_ADDED = "team_member_added"
    JOINED_TEAM = "joined_team"
    MANAGER_ASSIGNED = "manager_assigned"
    TEAM_MEMBER_REMOVED = "team_member_removed"
    TEAM_MEMBER_LEFT = "team_member_left"


class Notification(Base, TimestampMixin):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(primary_key=True)
    profile_id: Mapped[int] = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    type: Mapped[NotificationType] = mapped_column(String(40), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    read: Mapped[bool] = mapped_column(default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<Notification {self.type} profile={self.profile_id} read={self.read}>"
