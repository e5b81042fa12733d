"""
Team analytics for the manager dashboard.

Aggregates only what each member has shared with the manager. Results are
cached per manager (see team_cache) and recomputed when the TTL lapses or
the team's fingerprint changes.
"""

import hashlib
import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from persona_insights.models.base import as_utc
from persona_insights.models.conversation import Conversation
from persona_insights.models.profile import Profile
from persona_insights.models.sharing_preference import SharingPreference
from persona_insights.services.sharing import (
    average_ocean,
    get_preferences,
    load_ocean_profile,
    load_progress,
)
from persona_insights.services.team import list_members
from persona_insights.services.team_cache import team_cache
from persona_insights.settings import settings

logger = logging.getLogger(__name__)


async def team_fingerprint(db: AsyncSession, manager_id: int, members: list[tuple]) -> str:
    """Hash of membership, sharing flags and the latest conversation activity of the team."""
    parts = sorted(
        f"{membership.member_id}-{as_utc(membership.joined_at).isoformat()}"
        for membership, _ in members
    )
    member_ids = [membership.member_id for membership, _ in members]
    if member_ids:
        result = await db.execute(
            select(SharingPreference).where(
                SharingPreference.manager_id == manager_id,
                SharingPreference.profile_id.in_(member_ids),
            )
        )
        for preference in sorted(result.scalars().all(), key=lambda p: p.profile_id):
            flags = "".join("1" if shared else "0" for shared in preference.as_flags().values())
            parts.append(f"sharing:{preference.profile_id}:{flags}")

        result = await db.execute(
            select(func.count(Conversation.id), func.max(Conversation.updated_at))
            .where(Conversation.profile_id.in_(member_ids))
        )
        count, latest = result.one()
        parts.append(f"conversations:{count}:{as_utc(latest).isoformat() if latest else ''}")
    return hashlib.sha256("|".join(parts).encode()).hexdigest()


async def team_analytics(db: AsyncSession, manager: Profile) -> dict[str, Any]:
    members = await list_members(db, manager.id)
    fingerprint = await team_fingerprint(db, manager.id, members)

    cached = team_cache.get(manager.id, fingerprint)
    if cached is not None:
        return {**cached, "cached": True}

    member_rows = []
    ocean_sets = []
    for membership, profile in members:
        flags = await get_preferences(db, profile.id, manager.id)
        row: dict[str, Any] = {
            "member_id": profile.id,
            "display_name": profile.display_label,
            "slot": membership.slot,
        }
        if flags["share_progress"]:
            row["progress"] = await load_progress(db, profile.id)
        if flags["share_ocean_profile"]:
            ocean = await load_ocean_profile(db, profile.id)
            if ocean:
                ocean_sets.append(ocean)
        member_rows.append(row)

    analytics = {
        "team_name": manager.team_name,
        "member_count": len(members),
        "capacity": settings.team_max_members,
        "members": member_rows,
        "team_ocean_profile": average_ocean(ocean_sets),
        "ocean_contributors": len(ocean_sets),
    }
    team_cache.set(manager.id, fingerprint, analytics)
    logger.info(f"Computed team analytics for manager {manager.id} ({len(members)} members)")
    return {**analytics, "cached": False}
