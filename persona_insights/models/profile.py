"""
Profile model: the identity-linked record for every person in the system.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from persona_insights.db import Base
from persona_insights.models.base import TimestampMixin, utcnow


class ProfileRole(str, Enum):
    EMPLOYEE = "employee"
    MANAGER = "manager"


class Profile(Base, TimestampMixin):
    """User profile. Created on registration, never hard-deleted."""

    __tablename__ = "profiles"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    display_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    full_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Local auth
    hashed_password: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Team role
    role: Mapped[ProfileRole] = mapped_column(String(20), default=ProfileRole.EMPLOYEE, nullable=False)
    team_name: Mapped[str | None] = mapped_column(String(150), nullable=True)  # managers only
    can_manage_teams: Mapped[bool] = mapped_column(default=False, nullable=False)
    can_be_managed: Mapped[bool] = mapped_column(default=True, nullable=False)

    # Status
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    last_seen_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_manager(self) -> bool:
        return self.role == ProfileRole.MANAGER

    @property
    def display_label(self) -> str:
        """Best human-readable name for emails and notifications."""
        return self.display_name or self.full_name or self.email.split("@")[0]

    @property
    def default_team_name(self) -> str:
        return f"{self.display_label}'s Team"

    def update_last_seen(self) -> None:
        """Update last seen timestamp."""
        self.last_seen_at = utcnow()

    def __repr__(self) -> str:
        return f"<Profile {self.email} role={self.role}>"
