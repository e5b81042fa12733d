"""
Sharing preferences: which categories of an employee's data a manager may see.
"""

from sqlalchemy import ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from persona_insights.db import Base
from persona_insights.models.base import TimestampMixin

SHARING_CATEGORIES = (
    "share_profile",
    "share_insights",
    "share_conversations",
    "share_ocean_profile",
    "share_progress",
)


class SharingPreference(Base, TimestampMixin):
    """Per (employee, manager) visibility flags. Only the employee edits these."""

    __tablename__ = "sharing_preferences"
    __table_args__ = (
        UniqueConstraint("profile_id", "manager_id", name="uq_sharing_preferences_profile_manager"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    profile_id: Mapped[int] = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    manager_id: Mapped[int] = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)

    share_profile: Mapped[bool] = mapped_column(default=False, nullable=False)
    share_insights: Mapped[bool] = mapped_column(default=False, nullable=False)
    share_conversations: Mapped[bool] = mapped_column(default=False, nullable=False)
    share_ocean_profile: Mapped[bool] = mapped_column(default=False, nullable=False)
    share_progress: Mapped[bool] = mapped_column(default=False, nullable=False)

    def as_flags(self) -> dict[str, bool]:
        return {name: bool(getattr(self, name)) for name in SHARING_CATEGORIES}

    def __repr__(self) -> str:
        return f"<SharingPreference profile={self.profile_id} manager={self.manager_id}>"
