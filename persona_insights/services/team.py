"""
Team membership and capacity management.

A manager's team holds at most ``settings.team_max_members`` members, each in
a numbered slot. Adding takes the lowest free slot; removing frees it. Role
transitions live here too: a profile becomes a manager when its team gains
its first member and reverts to employee when the last member goes.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from persona_insights.errors import Conflict, NotFound, TeamFull, ValidationError
from persona_insights.models.notification import NotificationType
from persona_insights.models.profile import Profile, ProfileRole
from persona_insights.models.team_member import TeamMember
from persona_insights.services.notifications import notify
from persona_insights.services.team_cache import team_cache
from persona_insights.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class RemovalResult:
    removed_member_name: str
    was_last_member: bool


def promote_to_manager(profile: Profile, team_name: str | None = None) -> bool:
    """Make a profile a manager. Returns True if the role actually changed."""
    changed = profile.role != ProfileRole.MANAGER
    profile.role = ProfileRole.MANAGER
    profile.can_manage_teams = True
    if team_name and team_name.strip():
        profile.team_name = team_name.strip()
    elif not profile.team_name:
        profile.team_name = profile.default_team_name
    if changed:
        logger.info(f"Profile {profile.id} promoted to manager (team '{profile.team_name}')")
    return changed


def demote_to_employee(profile: Profile) -> None:
    profile.role = ProfileRole.EMPLOYEE
    profile.team_name = None
    profile.can_manage_teams = False
    logger.info(f"Profile {profile.id} reverted to employee")


async def count_members(db: AsyncSession, manager_id: int) -> int:
    result = await db.execute(
        select(func.count(TeamMember.id)).where(TeamMember.team_id == manager_id)
    )
    return result.scalar_one()


async def get_membership(db: AsyncSession, manager_id: int, member_id: int) -> TeamMember | None:
    result = await db.execute(
        select(TeamMember).where(
            TeamMember.team_id == manager_id,
            TeamMember.member_id == member_id,
        )
    )
    return result.scalar_one_or_none()


async def list_members(db: AsyncSession, manager_id: int) -> list[tuple[TeamMember, Profile]]:
    """Members of a manager's team ordered by slot."""
    result = await db.execute(
        select(TeamMember, Profile)
        .join(Profile, Profile.id == TeamMember.member_id)
        .where(TeamMember.team_id == manager_id)
        .order_by(TeamMember.slot)
    )
    return [(membership, profile) for membership, profile in result.all()]


async def get_teams_for_member(db: AsyncSession, member_id: int) -> list[tuple[TeamMember, Profile]]:
    """Teams a profile belongs to, paired with the managing profile."""
    result = await db.execute(
        select(TeamMember, Profile)
        .join(Profile, Profile.id == TeamMember.team_id)
        .where(TeamMember.member_id == member_id)
        .order_by(TeamMember.joined_at)
    )
    return [(membership, manager) for membership, manager in result.all()]


def _first_free_slot(taken: set[int], capacity: int) -> int | None:
    for slot in range(1, capacity + 1):
        if slot not in taken:
            return slot
    return None


async def add_member(db: AsyncSession, manager: Profile, member: Profile) -> TeamMember:
    """Put ``member`` into the first free slot of ``manager``'s team.

    Adding an existing member returns the existing row unchanged. Raises
    TeamFull without mutating anything when every slot is taken.
    """
    if manager.id == member.id:
        raise ValidationError("You cannot join your own team")

    # Serialize concurrent adds to the same team on the manager's row
    await db.execute(select(Profile.id).where(Profile.id == manager.id).with_for_update())

    existing = await get_membership(db, manager.id, member.id)
    if existing:
        return existing

    result = await db.execute(select(TeamMember.slot).where(TeamMember.team_id == manager.id))
    taken = set(result.scalars().all())

    slot = _first_free_slot(taken, settings.team_max_members)
    if slot is None:
        raise TeamFull(
            f"{manager.team_name or manager.default_team_name} is full "
            f"({settings.team_max_members} members maximum)"
        )

    membership = TeamMember(team_id=manager.id, member_id=member.id, slot=slot)
    db.add(membership)
    try:
        await db.flush()
    except IntegrityError as e:
        logger.warning(f"Concurrent membership change on team {manager.id}: {e}")
        raise Conflict("The team changed while you were joining. Please try again.") from e

    team_cache.invalidate(manager.id)
    logger.info(f"Profile {member.id} added to team {manager.id} in slot {slot}")
    return membership


async def _delete_membership(db: AsyncSession, manager: Profile, membership: TeamMember) -> bool:
    """Delete a membership row and demote the manager if the team is now empty."""
    await db.delete(membership)
    await db.flush()
    team_cache.invalidate(manager.id)

    remaining = await count_members(db, manager.id)
    if remaining == 0:
        demote_to_employee(manager)
        return True
    return False


async def remove_member(db: AsyncSession, manager: Profile, member_id: int) -> RemovalResult:
    """Manager removes a member from their team."""
    if not manager.is_manager:
        raise ValidationError("Only managers can remove team members")

    membership = await get_membership(db, manager.id, member_id)
    if not membership:
        raise NotFound("Team member not found")

    member = await db.get(Profile, member_id)
    member_name = member.display_label if member else "Team member"

    was_last = await _delete_membership(db, manager, membership)

    await notify(
        db,
        profile_id=member_id,
        type=NotificationType.TEAM_MEMBER_REMOVED,
        title="Removed from team",
        message=f"You were removed from {manager.team_name or manager.default_team_name}.",
        data={"manager_id": manager.id},
    )
    logger.info(f"Manager {manager.id} removed profile {member_id} (last member: {was_last})")
    return RemovalResult(removed_member_name=member_name, was_last_member=was_last)


async def leave_team(db: AsyncSession, member: Profile, manager_id: int) -> bool:
    """Member leaves a manager's team. Returns True if the manager was demoted."""
    membership = await get_membership(db, manager_id, member.id)
    if not membership:
        raise NotFound("Team membership not found")

    manager = await db.get(Profile, manager_id)
    if manager is None:
        raise NotFound("Team membership not found")

    was_last = await _delete_membership(db, manager, membership)

    await notify(
        db,
        profile_id=manager_id,
        type=NotificationType.TEAM_MEMBER_LEFT,
        title="Team member left",
        message=f"{member.display_label} has left your team.",
        data={"employee_id": member.id},
    )
    logger.info(f"Profile {member.id} left team {manager_id} (manager demoted: {was_last})")
    return was_last
