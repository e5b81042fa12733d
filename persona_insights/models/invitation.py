"""
Invitation model for manager requests and team-join invites.
"""

import secrets
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from persona_insights.db import Base
from persona_insights.models.base import TimestampMixin, as_utc, utcnow


def generate_invitation_token() -> str:
    """Generate a random single-use invitation token."""
    return secrets.token_urlsafe(32)


class InvitationType(str, Enum):
    MANAGER_REQUEST = "manager_request"  # employee asks someone to become their manager
    TEAM_JOIN = "team_join"  # manager invites someone onto their team


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CANCELLED = "cancelled"


class Invitation(Base, TimestampMixin):
    """Token-bearing, time-limited invitation.

    Expiry is derived at read time: an expired invitation stays ``pending``
    in storage until someone tries to resolve it.
    """

    __tablename__ = "invitations"
    __table_args__ = (
        # One pending invitation per (email, inviter, type)
        Index(
            "uq_invitations_pending_email_inviter_type",
            "email",
            "invited_by_id",
            "invitation_type",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, default=generate_invitation_token)

    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    invitation_type: Mapped[InvitationType] = mapped_column(String(20), nullable=False)

    # team_join: the inviting manager. manager_request: set on acceptance.
    manager_id: Mapped[int | None] = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), nullable=True)
    invited_by_id: Mapped[int | None] = mapped_column(ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[InvitationStatus] = mapped_column(String(20), default=InvitationStatus.PENDING, nullable=False)
    invited_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by_id: Mapped[int | None] = mapped_column(ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)

    @classmethod
    def create(
        cls,
        email: str,
        invitation_type: InvitationType,
        invited_by_id: int,
        manager_id: int | None = None,
        message: str | None = None,
        expires_in_days: int = 7,
    ) -> "Invitation":
        """Create a new pending invitation (not yet added to the session)."""
        now = utcnow()
        return cls(
            email=email.lower().strip(),
            invitation_type=invitation_type,
            invited_by_id=invited_by_id,
            manager_id=manager_id,
            message=message,
            token=generate_invitation_token(),
            status=InvitationStatus.PENDING,
            invited_at=now,
            expires_at=now + timedelta(days=expires_in_days),
        )

    @property
    def is_expired(self) -> bool:
        return utcnow() > as_utc(self.expires_at)

    def get_accept_url(self, base_url: str) -> str:
        return f"{base_url.rstrip('/')}/invitation/{self.token}"

    def get_decline_url(self, base_url: str) -> str:
        return f"{self.get_accept_url(base_url)}?action=decline"

    def __repr__(self) -> str:
        return f"<Invitation {self.invitation_type} {self.email} status={self.status}>"
