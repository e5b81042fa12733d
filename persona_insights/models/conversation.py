"""
Assessment conversation and key-insight models.

Only the data a manager-facing projection needs is stored here; transcripts
live with the voice/chat service.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from persona_insights.db import Base
from persona_insights.models.base import TimestampMixin, utcnow

OCEAN_TRAITS = (
    "openness",
    "conscientiousness",
    "extraversion",
    "agreeableness",
    "neuroticism",
)


class ConversationStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class Conversation(Base, TimestampMixin):
    __tablename__ = "conversations"

    id: Mapped[int] = mapped_column(primary_key=True)
    profile_id: Mapped[int] = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    status: Mapped[ConversationStatus] = mapped_column(String(20), default=ConversationStatus.ACTIVE, nullable=False)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    ocean_scores: Mapped[dict | None] = mapped_column(JSON, nullable=True)  # trait -> 0..100
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Conversation {self.id} profile={self.profile_id} status={self.status}>"


class KeyInsight(Base, TimestampMixin):
    __tablename__ = "key_insights"

    id: Mapped[int] = mapped_column(primary_key=True)
    conversation_id: Mapped[int] = mapped_column(ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    profile_id: Mapped[int] = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    insights: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"<KeyInsight conversation={self.conversation_id}>"
