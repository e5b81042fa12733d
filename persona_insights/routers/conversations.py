"""
Assessment conversations router.

Employees start and complete conversations here; completion stores the
summary, OCEAN scores and key insights that managers may later see through
the sharing gate.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select

from persona_insights.deps import CurrentProfile, DBSession
from persona_insights.errors import Conflict, NotFound
from persona_insights.models.base import as_utc, utcnow
from persona_insights.models.conversation import (
    OCEAN_TRAITS,
    Conversation,
    ConversationStatus,
    KeyInsight,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conversations", tags=["conversations"])


class StartConversationRequest(BaseModel):
    title: str | None = Field(None, max_length=200)


class CompleteConversationRequest(BaseModel):
    summary: str | None = None
    ocean_scores: dict[str, float] | None = None
    insights: list[str] = []

    @field_validator("ocean_scores")
    @classmethod
    def check_scores(cls, scores: dict[str, float] | None) -> dict[str, float] | None:
        if scores is None:
            return None
        unknown = set(scores) - set(OCEAN_TRAITS)
        if unknown:
            raise ValueError(f"unknown traits: {', '.join(sorted(unknown))}")
        for trait, value in scores.items():
            if not 0 <= value <= 100:
                raise ValueError(f"{trait} must be between 0 and 100")
        return scores


class ConversationOut(BaseModel):
    id: int
    title: str | None = None
    status: ConversationStatus
    summary: str | None = None
    ocean_scores: dict | None = None
    started_at: datetime
    completed_at: datetime | None = None

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> "ConversationOut":
        return cls(
            id=conversation.id,
            title=conversation.title,
            status=conversation.status,
            summary=conversation.summary,
            ocean_scores=conversation.ocean_scores,
            started_at=as_utc(conversation.started_at),
            completed_at=as_utc(conversation.completed_at),
        )


@router.post("", response_model=ConversationOut, status_code=status.HTTP_201_CREATED)
async def start_conversation(profile: CurrentProfile, db: DBSession, data: StartConversationRequest):
    conversation = Conversation(profile_id=profile.id, title=data.title, started_at=utcnow())
    db.add(conversation)
    await db.commit()
    return ConversationOut.from_conversation(conversation)


@router.post("/{conversation_id}/complete", response_model=ConversationOut)
async def complete_conversation(
    conversation_id: int,
    profile: CurrentProfile,
    db: DBSession,
    data: CompleteConversationRequest,
):
    conversation = await db.get(Conversation, conversation_id)
    if conversation is None or conversation.profile_id != profile.id:
        raise NotFound("Conversation not found")
    if conversation.status == ConversationStatus.COMPLETED:
        raise Conflict("Conversation is already completed")

    conversation.status = ConversationStatus.COMPLETED
    conversation.completed_at = utcnow()
    conversation.summary = data.summary
    conversation.ocean_scores = data.ocean_scores

    insights = [text.strip() for text in data.insights if text.strip()]
    if insights:
        db.add(KeyInsight(conversation_id=conversation.id, profile_id=profile.id, insights=insights))

    await db.commit()
    logger.info(f"Conversation {conversation.id} completed by profile {profile.id}")
    return ConversationOut.from_conversation(conversation)


@router.get("", response_model=list[ConversationOut])
async def list_conversations(profile: CurrentProfile, db: DBSession):
    result = await db.execute(
        select(Conversation)
        .where(Conversation.profile_id == profile.id)
        .order_by(Conversation.started_at.desc(), Conversation.id.desc())
    )
    return [ConversationOut.from_conversation(c) for c in result.scalars().all()]
