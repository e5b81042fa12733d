"""
Team router: capabilities, the manager dashboard and membership changes.
"""

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field

from persona_insights.deps import CurrentProfile, DashboardAccess, DBSession, ManagerProfile
from persona_insights.models.base import as_utc
from persona_insights.services.analytics import team_analytics
from persona_insights.services.capabilities import resolve_capabilities
from persona_insights.services.sharing import project_member_data
from persona_insights.services.team import (
    get_teams_for_member,
    leave_team,
    list_members,
    remove_member,
)

router = APIRouter(prefix="/team", tags=["team"])


class LeaveTeamBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    manager_id: int = Field(alias="managerId")


@router.get("/capabilities")
async def get_capabilities(profile: CurrentProfile, db: DBSession):
    capabilities = await resolve_capabilities(db, profile)
    return capabilities.to_dict()


@router.get("/members")
async def get_members(profile: CurrentProfile, access: DashboardAccess, db: DBSession):
    members = await list_members(db, profile.id)
    return {
        "team_name": profile.team_name,
        "member_count": access.member_count,
        "capacity": access.capacity,
        "members": [
            {
                "member_id": member.id,
                "display_name": member.display_label,
                "email": member.email,
                "slot": membership.slot,
                "joined_at": as_utc(membership.joined_at),
            }
            for membership, member in members
        ],
    }


@router.delete("/members/{member_id}")
async def delete_member(member_id: int, manager: ManagerProfile, db: DBSession):
    """Remove someone from your team. Removing the last member ends your manager role."""
    result = await remove_member(db, manager, member_id)
    await db.commit()

    message = f"{result.removed_member_name} has been removed from your team."
    if result.was_last_member:
        message += " Your team is now empty, so you are no longer a manager."
    return {
        "success": True,
        "message": message,
        "removed_member_name": result.removed_member_name,
        "was_last_member": result.was_last_member,
    }


@router.post("/leave")
async def leave(profile: CurrentProfile, db: DBSession, data: LeaveTeamBody):
    manager_demoted = await leave_team(db, profile, data.manager_id)
    await db.commit()
    return {"success": True, "manager_demoted": manager_demoted}


@router.get("/memberships")
async def get_memberships(profile: CurrentProfile, db: DBSession):
    """Teams the signed-in profile belongs to."""
    teams = await get_teams_for_member(db, profile.id)
    return [
        {
            "manager_id": manager.id,
            "manager_name": manager.display_label,
            "team_name": manager.team_name or manager.default_team_name,
            "slot": membership.slot,
            "joined_at": as_utc(membership.joined_at),
        }
        for membership, manager in teams
    ]


@router.get("/members/{member_id}/shared")
async def get_member_shared_data(member_id: int, profile: CurrentProfile, access: DashboardAccess, db: DBSession):
    return await project_member_data(db, profile, member_id)


@router.get("/analytics")
async def get_team_analytics(profile: CurrentProfile, access: DashboardAccess, db: DBSession):
    return await team_analytics(db, profile)
