"""
Bearer-token session model.

Each login creates a new session record, so a person can be signed in from
several browsers at once.
"""

import secrets
from datetime import datetime, timedelta

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from persona_insights.db import Base
from persona_insights.models.base import TimestampMixin, as_utc, utcnow
from persona_insights.settings import settings


class UserSession(Base, TimestampMixin):
    """Individual login session."""

    __tablename__ = "user_sessions"

    id: Mapped[int] = mapped_column(primary_key=True)
    profile_id: Mapped[int] = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)

    session_token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Client information
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)  # IPv4 or IPv6

    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @classmethod
    def create_session(cls, profile_id: int, request=None) -> "UserSession":
        """
        Create a new session for a profile.

        Args:
            profile_id: The profile's ID
            request: Optional FastAPI request object for client detection

        Returns:
            New UserSession instance (not yet added to DB)
        """
        user_agent = None
        ip_address = None
        if request is not None:
            user_agent = request.headers.get("User-Agent")
            ip_address = cls._get_client_ip(request)

        now = utcnow()
        return cls(
            profile_id=profile_id,
            session_token=secrets.token_hex(32),
            expires_at=now + timedelta(hours=settings.session_expire_hours),
            user_agent=user_agent,
            ip_address=ip_address,
            last_used_at=now,
        )

    @staticmethod
    def _get_client_ip(request) -> str | None:
        """Extract client IP from request, handling proxies."""
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            # X-Forwarded-For can contain multiple IPs, first is the client
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()

        if request.client:
            return request.client.host
        return None

    def is_valid(self) -> bool:
        """Check if session is still valid (not expired)."""
        return utcnow() < as_utc(self.expires_at)

    def refresh(self) -> None:
        """Touch last_used_at and extend expiry once less than half the lifetime remains."""
        now = utcnow()
        self.last_used_at = now

        half_life = timedelta(hours=settings.session_expire_hours / 2)
        if as_utc(self.expires_at) - now < half_life:
            self.expires_at = now + timedelta(hours=settings.session_expire_hours)

    def __repr__(self) -> str:
        return f"<UserSession {self.id} profile={self.profile_id}>"
