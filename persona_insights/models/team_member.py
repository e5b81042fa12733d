"""
Team membership model.

A team is owned by a manager profile; ``team_id`` is that manager's profile
id. Each member holds exactly one numbered slot on the team.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from persona_insights.db import Base
from persona_insights.models.base import TimestampMixin, utcnow


class TeamMemberRole(str, Enum):
    EMPLOYEE = "employee"


class TeamMember(Base, TimestampMixin):
    """Association between a manager's team and one member."""

    __tablename__ = "team_members"
    __table_args__ = (
        UniqueConstraint("team_id", "member_id", name="uq_team_members_team_member"),
        UniqueConstraint("team_id", "slot", name="uq_team_members_team_slot"),
        CheckConstraint("team_id <> member_id", name="ck_team_members_not_self"),
        CheckConstraint("slot >= 1", name="ck_team_members_slot_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    team_id: Mapped[int] = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    slot: Mapped[int] = mapped_column(nullable=False)
    role: Mapped[TeamMemberRole] = mapped_column(String(20), default=TeamMemberRole.EMPLOYEE, nullable=False)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<TeamMember team={self.team_id} member={self.member_id} slot={self.slot}>"
