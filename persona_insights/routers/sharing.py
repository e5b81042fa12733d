"""
Sharing router: an employee decides what each of their managers can see.
"""

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict

from persona_insights.deps import CurrentProfile, DBSession
from persona_insights.errors import NotFound
from persona_insights.services.sharing import get_preferences, update_preferences
from persona_insights.services.team import get_membership

router = APIRouter(prefix="/sharing", tags=["sharing"])


class SharingUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    share_profile: bool | None = None
    share_insights: bool | None = None
    share_conversations: bool | None = None
    share_ocean_profile: bool | None = None
    share_progress: bool | None = None


@router.get("/{manager_id}")
async def get_sharing(manager_id: int, profile: CurrentProfile, db: DBSession):
    if not await get_membership(db, manager_id, profile.id):
        raise NotFound("You are not a member of this manager's team")
    return {"manager_id": manager_id, "preferences": await get_preferences(db, profile.id, manager_id)}


@router.put("/{manager_id}")
async def put_sharing(manager_id: int, profile: CurrentProfile, db: DBSession, data: SharingUpdateRequest):
    flags = await update_preferences(db, profile, manager_id, data.model_dump(exclude_none=True))
    await db.commit()
    return {"manager_id": manager_id, "preferences": flags}
