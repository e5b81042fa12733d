"""
Profile router: read and edit your own profile.
"""

from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel, Field

from persona_insights.deps import CurrentProfile, DBSession
from persona_insights.errors import Forbidden, ValidationError
from persona_insights.models.base import as_utc
from persona_insights.models.profile import Profile, ProfileRole
from persona_insights.services.capabilities import resolve_capabilities

router = APIRouter(prefix="/profile", tags=["profile"])


class ProfileOut(BaseModel):
    id: int
    email: str
    display_name: str | None = None
    full_name: str | None = None
    role: ProfileRole
    team_name: str | None = None
    can_manage_teams: bool
    can_be_managed: bool
    created_at: datetime | None = None
    capabilities: dict | None = None

    @classmethod
    def from_profile(cls, profile: Profile, capabilities: dict | None = None) -> "ProfileOut":
        return cls(
            id=profile.id,
            email=profile.email,
            display_name=profile.display_name,
            full_name=profile.full_name,
            role=profile.role,
            team_name=profile.team_name,
            can_manage_teams=profile.can_manage_teams,
            can_be_managed=profile.can_be_managed,
            created_at=as_utc(profile.created_at),
            capabilities=capabilities,
        )


class ProfileUpdateRequest(BaseModel):
    display_name: str | None = Field(None, max_length=100)
    full_name: str | None = Field(None, max_length=200)
    team_name: str | None = Field(None, max_length=150)


@router.get("/me", response_model=ProfileOut)
async def get_my_profile(profile: CurrentProfile, db: DBSession):
    capabilities = await resolve_capabilities(db, profile)
    return ProfileOut.from_profile(profile, capabilities.to_dict())


@router.patch("/me", response_model=ProfileOut)
async def update_my_profile(profile: CurrentProfile, db: DBSession, data: ProfileUpdateRequest):
    if data.display_name is not None:
        if not data.display_name.strip():
            raise ValidationError("Display name cannot be empty")
        profile.display_name = data.display_name.strip()
    if data.full_name is not None:
        profile.full_name = data.full_name.strip() or None
    if data.team_name is not None:
        if not profile.is_manager:
            raise Forbidden("Only managers can name a team")
        if not data.team_name.strip():
            raise ValidationError("Team name cannot be empty")
        profile.team_name = data.team_name.strip()

    await db.commit()

    capabilities = await resolve_capabilities(db, profile)
    return ProfileOut.from_profile(profile, capabilities.to_dict())
