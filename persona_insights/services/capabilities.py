"""
Capability resolver: derived, read-only access decisions.
"""

from dataclasses import asdict, dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from persona_insights.models.profile import Profile
from persona_insights.services.team import count_members
from persona_insights.settings import settings


@dataclass
class ManagerCapabilities:
    is_manager: bool
    has_team_members: bool
    member_count: int
    capacity: int
    can_access_manager_dashboard: bool

    def to_dict(self) -> dict:
        return asdict(self)


async def resolve_capabilities(db: AsyncSession, profile: Profile) -> ManagerCapabilities:
    """Dashboard access needs both the manage-teams flag and at least one member.

    Recomputed on every call; nothing is cached.
    """
    member_count = await count_members(db, profile.id)
    is_manager = profile.can_manage_teams is True
    return ManagerCapabilities(
        is_manager=is_manager,
        has_team_members=member_count > 0,
        member_count=member_count,
        capacity=settings.team_max_members,
        can_access_manager_dashboard=is_manager and member_count > 0,
    )
