"""
Invitations router.

Manager requests (employee -> prospective manager) and team-join
invitations (manager -> prospective member), their email landing page,
and accept/decline resolution.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, ConfigDict, Field

from persona_insights.deps import CurrentProfile, DBSession
from persona_insights.errors import Forbidden, ValidationError
from persona_insights.models.base import as_utc
from persona_insights.models.invitation import Invitation, InvitationStatus, InvitationType
from persona_insights.services import invitations as invitation_service
from persona_insights.services.rate_limiter import invite_rate_limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invitations", tags=["invitations"])


class ManagerRequestBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    manager_email: str = Field(alias="managerEmail")
    message: str | None = Field(None, max_length=1000)


class TeamJoinBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    team_id: int | None = Field(None, alias="teamId")
    message: str | None = Field(None, max_length=1000)


class InvitationBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    invitation_type: InvitationType = Field(alias="invitationType")
    team_id: int | None = Field(None, alias="teamId")
    message: str | None = Field(None, max_length=1000)


class ResolveBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str
    action: str
    user_id: int | None = None
    team_name: str | None = Field(None, max_length=150)

    # Older clients echo the invitation back; checked against the stored row
    email: str | None = None
    invitation_type: InvitationType | None = Field(None, alias="invitationType")
    team_id: int | None = Field(None, alias="teamId")


class InvitationOut(BaseModel):
    id: int
    email: str
    invitation_type: InvitationType
    status: InvitationStatus
    message: str | None = None
    invited_at: datetime
    expires_at: datetime
    accepted_at: datetime | None = None
    is_expired: bool

    @classmethod
    def from_invitation(cls, invitation: Invitation) -> "InvitationOut":
        return cls(
            id=invitation.id,
            email=invitation.email,
            invitation_type=invitation.invitation_type,
            status=invitation.status,
            message=invitation.message,
            invited_at=as_utc(invitation.invited_at),
            expires_at=as_utc(invitation.expires_at),
            accepted_at=as_utc(invitation.accepted_at),
            is_expired=invitation.is_expired,
        )


class CreatedResponse(BaseModel):
    success: bool = True
    invitation: InvitationOut
    email_sent: bool


class InvitationPreview(BaseModel):
    invitation_type: InvitationType
    status: InvitationStatus
    email: str
    is_expired: bool
    expires_at: datetime
    inviter_name: str | None = None
    team_name: str | None = None
    message: str | None = None


class ResolveResponse(BaseModel):
    success: bool
    message: str
    invitation_type: str
    manager_name: str | None = None


async def _create(
    db,
    profile,
    email: str,
    invitation_type: InvitationType,
    team_id: int | None,
    message: str | None,
) -> CreatedResponse:
    invite_rate_limiter.check(f"invite:{profile.id}")

    invitation, email_sent = await invitation_service.create_invitation(
        db,
        inviter=profile,
        email=email,
        invitation_type=invitation_type,
        team_id=team_id,
        message=message,
    )
    await db.commit()

    return CreatedResponse(invitation=InvitationOut.from_invitation(invitation), email_sent=email_sent)


@router.post("/manager-request", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
async def send_manager_request(profile: CurrentProfile, db: DBSession, data: ManagerRequestBody):
    """Ask someone to become your manager."""
    return await _create(db, profile, data.manager_email, InvitationType.MANAGER_REQUEST, None, data.message)


@router.post("/team-join", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
async def send_team_invitation(profile: CurrentProfile, db: DBSession, data: TeamJoinBody):
    """Invite someone onto your team."""
    return await _create(db, profile, data.email, InvitationType.TEAM_JOIN, data.team_id, data.message)


@router.post("", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
async def send_invitation(profile: CurrentProfile, db: DBSession, data: InvitationBody):
    return await _create(db, profile, data.email, data.invitation_type, data.team_id, data.message)


@router.get("", response_model=list[InvitationOut])
async def list_invitations(
    profile: CurrentProfile,
    db: DBSession,
    direction: str = Query("sent", pattern="^(sent|received)$"),
):
    invitations = await invitation_service.list_invitations(db, profile, direction)
    return [InvitationOut.from_invitation(invitation) for invitation in invitations]


@router.post("/resolve", response_model=ResolveResponse)
async def resolve_invitation(profile: CurrentProfile, db: DBSession, data: ResolveBody):
    """Accept or decline an invitation addressed to the signed-in profile."""
    if data.user_id is not None and data.user_id != profile.id:
        raise Forbidden("You can only respond to invitations as yourself")

    if data.email is not None or data.invitation_type is not None or data.team_id is not None:
        invitation, _ = await invitation_service.get_invitation(db, data.token)
        mismatched = (
            (data.email is not None and data.email.strip().lower() != invitation.email)
            or (data.invitation_type is not None and data.invitation_type != invitation.invitation_type)
            or (data.team_id is not None and data.team_id != invitation.manager_id)
        )
        if mismatched:
            raise ValidationError("Invitation details do not match")

    outcome = await invitation_service.resolve_invitation(
        db,
        token=data.token,
        action=data.action,
        acting_profile=profile,
        team_name=data.team_name,
    )
    await db.commit()
    return outcome.to_dict()


@router.get("/{token}", response_model=InvitationPreview)
async def preview_invitation(token: str, db: DBSession):
    """Landing page data for an emailed link. No sign-in required."""
    invitation, inviter = await invitation_service.get_invitation(db, token)

    team_name = None
    if invitation.invitation_type == InvitationType.TEAM_JOIN and inviter is not None:
        team_name = inviter.team_name or inviter.default_team_name

    return InvitationPreview(
        invitation_type=invitation.invitation_type,
        status=invitation.status,
        email=invitation.email,
        is_expired=invitation.is_expired,
        expires_at=as_utc(invitation.expires_at),
        inviter_name=inviter.display_label if inviter else None,
        team_name=team_name,
        message=invitation.message,
    )


@router.post("/{invitation_id}/resend")
async def resend_invitation(invitation_id: int, profile: CurrentProfile, db: DBSession):
    invite_rate_limiter.check(f"invite:{profile.id}")
    email_sent = await invitation_service.resend_invitation(db, profile, invitation_id)
    return {"success": True, "email_sent": email_sent}


@router.delete("/{invitation_id}")
async def cancel_invitation(invitation_id: int, profile: CurrentProfile, db: DBSession):
    invitation = await invitation_service.cancel_invitation(db, profile, invitation_id)
    await db.commit()
    return {"success": True, "invitation": InvitationOut.from_invitation(invitation)}
