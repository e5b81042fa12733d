"""
Sharing preferences gate.

Visibility is enforced in the read path: ``project_member_data`` only loads
and returns the categories the employee has shared with that manager, so an
API consumer cannot read around the flags.
"""

import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from persona_insights.errors import NotFound, ValidationError
from persona_insights.models.base import as_utc
from persona_insights.models.conversation import (
    OCEAN_TRAITS,
    Conversation,
    ConversationStatus,
    KeyInsight,
)
from persona_insights.models.profile import Profile
from persona_insights.models.sharing_preference import SHARING_CATEGORIES, SharingPreference
from persona_insights.services.team import get_membership
from persona_insights.services.team_cache import team_cache
from persona_insights.settings import settings

logger = logging.getLogger(__name__)

RECENT_LIMIT = 20


def default_preferences() -> dict[str, bool]:
    """Flags seeded for a new (employee, manager) pair, per the configured policy."""
    shared = settings.sharing_default_policy == "shared"
    flags = {name: shared for name in SHARING_CATEGORIES}
    if settings.sharing_always_share_ocean:
        flags["share_ocean_profile"] = True
    return flags


async def _get_row(db: AsyncSession, profile_id: int, manager_id: int) -> SharingPreference | None:
    result = await db.execute(
        select(SharingPreference).where(
            SharingPreference.profile_id == profile_id,
            SharingPreference.manager_id == manager_id,
        )
    )
    return result.scalar_one_or_none()


async def ensure_preferences(db: AsyncSession, profile_id: int, manager_id: int) -> SharingPreference:
    """Seed default preferences for the pair. Existing rows are left as they are."""
    existing = await _get_row(db, profile_id, manager_id)
    if existing:
        return existing

    preference = SharingPreference(profile_id=profile_id, manager_id=manager_id, **default_preferences())
    db.add(preference)
    await db.flush()
    logger.info(f"Seeded sharing preferences for profile {profile_id} -> manager {manager_id}")
    return preference


async def get_preferences(db: AsyncSession, profile_id: int, manager_id: int) -> dict[str, bool]:
    """Current flags for the pair; the defaults if nothing is stored yet."""
    row = await _get_row(db, profile_id, manager_id)
    return row.as_flags() if row else default_preferences()


async def update_preferences(
    db: AsyncSession,
    profile: Profile,
    manager_id: int,
    changes: dict[str, bool],
) -> dict[str, bool]:
    """Employee updates what their manager may see."""
    unknown = set(changes) - set(SHARING_CATEGORIES)
    if unknown:
        raise ValidationError(f"Unknown sharing categories: {', '.join(sorted(unknown))}")

    if not await get_membership(db, manager_id, profile.id):
        raise NotFound("You are not a member of this manager's team")

    row = await ensure_preferences(db, profile.id, manager_id)
    for name, value in changes.items():
        setattr(row, name, bool(value))
    await db.flush()
    team_cache.invalidate(manager_id)
    logger.info(f"Profile {profile.id} updated sharing with manager {manager_id}: {changes}")
    return row.as_flags()


def average_ocean(score_sets: list[dict]) -> dict[str, float] | None:
    """Average each OCEAN trait over the score sets that report it."""
    averages: dict[str, float] = {}
    for trait in OCEAN_TRAITS:
        values = [float(scores[trait]) for scores in score_sets if scores and scores.get(trait) is not None]
        if values:
            averages[trait] = round(sum(values) / len(values), 1)
    return averages or None


async def load_ocean_profile(db: AsyncSession, profile_id: int) -> dict[str, float] | None:
    result = await db.execute(
        select(Conversation.ocean_scores).where(
            Conversation.profile_id == profile_id,
            Conversation.status == ConversationStatus.COMPLETED,
        )
    )
    return average_ocean([scores for scores in result.scalars().all() if scores])


async def load_progress(db: AsyncSession, profile_id: int) -> dict[str, Any]:
    result = await db.execute(
        select(Conversation.status, func.count(Conversation.id))
        .where(Conversation.profile_id == profile_id)
        .group_by(Conversation.status)
    )
    counts = {status: count for status, count in result.all()}
    total = sum(counts.values())
    completed = counts.get(ConversationStatus.COMPLETED.value, 0)
    return {
        "total_conversations": total,
        "completed_conversations": completed,
        "completion_rate": round(completed / total, 2) if total else 0.0,
    }


async def _load_insights(db: AsyncSession, profile_id: int) -> list[dict]:
    result = await db.execute(
        select(KeyInsight)
        .where(KeyInsight.profile_id == profile_id)
        .order_by(KeyInsight.created_at.desc(), KeyInsight.id.desc())
        .limit(RECENT_LIMIT)
    )
    return [
        {
            "conversation_id": insight.conversation_id,
            "insights": insight.insights,
            "created_at": as_utc(insight.created_at).isoformat(),
        }
        for insight in result.scalars().all()
    ]


async def _load_conversations(db: AsyncSession, profile_id: int) -> list[dict]:
    result = await db.execute(
        select(Conversation)
        .where(Conversation.profile_id == profile_id)
        .order_by(Conversation.started_at.desc(), Conversation.id.desc())
        .limit(RECENT_LIMIT)
    )
    return [
        {
            "id": conversation.id,
            "title": conversation.title,
            "status": conversation.status,
            "summary": conversation.summary,
            "started_at": as_utc(conversation.started_at).isoformat(),
            "completed_at": as_utc(conversation.completed_at).isoformat() if conversation.completed_at else None,
        }
        for conversation in result.scalars().all()
    ]


async def project_member_data(db: AsyncSession, manager: Profile, member_id: int) -> dict[str, Any]:
    """What ``manager`` may see of a team member, and nothing more."""
    membership = await get_membership(db, manager.id, member_id)
    if not membership:
        raise NotFound("Team member not found")

    member = await db.get(Profile, member_id)
    if member is None:
        raise NotFound("Team member not found")

    flags = await get_preferences(db, member_id, manager.id)

    data: dict[str, Any] = {
        "member_id": member_id,
        "display_name": member.display_label,
        "shared": flags,
        "hidden": [name.removeprefix("share_") for name, on in flags.items() if not on],
    }
    if flags["share_profile"]:
        data["profile"] = {
            "display_name": member.display_name,
            "full_name": member.full_name,
            "email": member.email,
            "role": member.role,
            "joined_at": as_utc(membership.joined_at).isoformat(),
        }
    if flags["share_insights"]:
        data["insights"] = await _load_insights(db, member_id)
    if flags["share_conversations"]:
        data["conversations"] = await _load_conversations(db, member_id)
    if flags["share_ocean_profile"]:
        data["ocean_profile"] = await load_ocean_profile(db, member_id)
    if flags["share_progress"]:
        data["progress"] = await load_progress(db, member_id)
    return data
