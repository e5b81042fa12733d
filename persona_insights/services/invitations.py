"""
Invitation lifecycle: create, look up, accept, decline, cancel and resend.

Two kinds of invitation exist:

- ``manager_request``: an employee asks someone (by email) to become their
  manager. Accepting promotes the invitee to manager and puts the requester
  on the invitee's team.
- ``team_join``: a manager invites someone (by email) onto their team.
  Accepting adds the invitee to the first free slot; a manager who is still
  an employee is promoted by gaining that first member.

Every operation runs inside the caller's transaction. Resolution claims the
invitation with a guarded ``pending -> accepted|declined`` update before any
side effect, so two concurrent resolutions of the same token cannot both
succeed, and any failure afterwards (for example TeamFull) rolls the claim
back and leaves the invitation pending.
"""

import logging
import re
from dataclasses import asdict, dataclass

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from persona_insights.errors import (
    Conflict,
    EmailDeliveryError,
    Expired,
    Forbidden,
    NotFound,
    TeamFull,
    ValidationError,
)
from persona_insights.models.base import utcnow
from persona_insights.models.invitation import Invitation, InvitationStatus, InvitationType
from persona_insights.models.notification import NotificationType
from persona_insights.models.profile import Profile
from persona_insights.services.email import email_service, send_invitation_email
from persona_insights.services.notifications import notify
from persona_insights.services.sharing import ensure_preferences
from persona_insights.services.team import (
    add_member,
    count_members,
    get_membership,
    promote_to_manager,
)
from persona_insights.settings import settings

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

ACTIONS = ("accept", "decline")


@dataclass
class ResolutionResult:
    success: bool
    message: str
    invitation_type: str
    manager_name: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def normalize_email(email: str | None) -> str:
    """Lower-case and validate an email address."""
    email = (email or "").strip().lower()
    if not email:
        raise ValidationError("Email is required")
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Please enter a valid email address")
    return email


def parse_invitation_type(value: str | InvitationType) -> InvitationType:
    try:
        return InvitationType(value)
    except ValueError:
        raise ValidationError(f"Unknown invitation type: {value}") from None


async def _find_profile_by_email(db: AsyncSession, email: str) -> Profile | None:
    result = await db.execute(select(Profile).where(Profile.email == email))
    return result.scalar_one_or_none()


async def _find_pending_duplicate(
    db: AsyncSession,
    email: str,
    invited_by_id: int,
    invitation_type: InvitationType,
) -> Invitation | None:
    result = await db.execute(
        select(Invitation).where(
            Invitation.email == email,
            Invitation.invited_by_id == invited_by_id,
            Invitation.invitation_type == invitation_type,
            Invitation.status == InvitationStatus.PENDING,
        )
    )
    return result.scalar_one_or_none()


async def create_invitation(
    db: AsyncSession,
    inviter: Profile,
    email: str,
    invitation_type: str | InvitationType,
    team_id: int | None = None,
    message: str | None = None,
) -> tuple[Invitation, bool]:
    """Create a pending invitation and email the invitee.

    Returns the invitation and whether the email went out. When a provider is
    configured but delivery fails, EmailDeliveryError is raised so the caller's
    transaction rolls the invitation back.
    """
    email = normalize_email(email)
    invitation_type = parse_invitation_type(invitation_type)

    if email == inviter.email.lower():
        raise ValidationError("You cannot invite yourself")

    manager_id = None
    if invitation_type == InvitationType.TEAM_JOIN:
        if team_id is not None and team_id != inviter.id:
            raise Forbidden("You can only invite people to your own team")
        manager_id = inviter.id

        invitee = await _find_profile_by_email(db, email)
        if invitee and await get_membership(db, inviter.id, invitee.id):
            raise Conflict("This person is already a member of your team")

        if await count_members(db, inviter.id) >= settings.team_max_members:
            raise TeamFull(f"Your team is full ({settings.team_max_members} members maximum)")

    duplicate = await _find_pending_duplicate(db, email, inviter.id, invitation_type)
    if duplicate and not duplicate.is_expired:
        raise Conflict("An invitation is already pending for this email")
    if duplicate:
        # An expired invitation can no longer be used; replace it
        duplicate.status = InvitationStatus.CANCELLED
        await db.flush()

    invitation = Invitation.create(
        email=email,
        invitation_type=invitation_type,
        invited_by_id=inviter.id,
        manager_id=manager_id,
        message=message.strip() if message else None,
        expires_in_days=settings.invitation_expire_days,
    )
    db.add(invitation)
    try:
        await db.flush()
    except IntegrityError as e:
        # Lost the race against a concurrent identical request
        raise Conflict("An invitation is already pending for this email") from e

    email_sent = await send_invitation_email(invitation, inviter)
    if not email_sent and email_service.is_configured:
        logger.error(f"Invitation email to {email} failed; discarding invitation")
        raise EmailDeliveryError("Failed to send invitation email. Please try again.")

    logger.info(
        f"Invitation {invitation.id} ({invitation_type.value}) created by profile {inviter.id} "
        f"for {email} (email sent: {email_sent})"
    )
    return invitation, email_sent


async def get_invitation(db: AsyncSession, token: str) -> tuple[Invitation, Profile | None]:
    """Look up an invitation by token for the landing page, with its sender."""
    result = await db.execute(select(Invitation).where(Invitation.token == token))
    invitation = result.scalar_one_or_none()
    if not invitation:
        raise NotFound("This invitation link is invalid")

    inviter = await db.get(Profile, invitation.invited_by_id) if invitation.invited_by_id else None
    return invitation, inviter


async def _claim(
    db: AsyncSession,
    invitation: Invitation,
    new_status: InvitationStatus,
    acting_profile: Profile,
    **extra,
) -> None:
    """Move the invitation out of pending, or fail if someone else already did."""
    now = utcnow()
    values = {"status": new_status, "resolved_by_id": acting_profile.id, "updated_at": now, **extra}
    if new_status == InvitationStatus.ACCEPTED:
        values["accepted_at"] = now

    result = await db.execute(
        update(Invitation)
        .where(Invitation.id == invitation.id, Invitation.status == InvitationStatus.PENDING)
        .values(**values)
    )
    if result.rowcount != 1:
        raise NotFound("This invitation link is invalid or has already been used")


async def _accept_team_join(
    db: AsyncSession,
    invitation: Invitation,
    member: Profile,
) -> ResolutionResult:
    manager = await db.get(Profile, invitation.manager_id) if invitation.manager_id else None
    if manager is None:
        raise NotFound("The team for this invitation no longer exists")

    await _claim(db, invitation, InvitationStatus.ACCEPTED, member)
    await add_member(db, manager, member)

    # A manager is discovered by gaining their first member
    if not manager.is_manager:
        promote_to_manager(manager)

    await ensure_preferences(db, member.id, manager.id)

    team_name = manager.team_name or manager.default_team_name
    await notify(
        db,
        profile_id=manager.id,
        type=NotificationType.TEAM_MEMBER_ADDED,
        title="New Team Member Added",
        message=f"{member.display_label} accepted your invitation and joined {team_name}.",
        data={"invitation_id": invitation.id, "employee_id": member.id},
    )
    await notify(
        db,
        profile_id=member.id,
        type=NotificationType.JOINED_TEAM,
        title="Welcome to the Team!",
        message=f"You've joined {team_name}. Choose what you share with {manager.display_label} in your sharing settings.",
        data={"manager_id": manager.id},
    )
    return ResolutionResult(
        success=True,
        message=f"You've successfully joined {team_name}.",
        invitation_type=InvitationType.TEAM_JOIN.value,
        manager_name=manager.display_label,
    )


async def _accept_manager_request(
    db: AsyncSession,
    invitation: Invitation,
    new_manager: Profile,
    team_name: str | None,
) -> ResolutionResult:
    requester = await db.get(Profile, invitation.invited_by_id) if invitation.invited_by_id else None
    if requester is None:
        raise NotFound("The person who sent this request no longer exists")

    await _claim(db, invitation, InvitationStatus.ACCEPTED, new_manager, manager_id=new_manager.id)

    promote_to_manager(new_manager, team_name)
    await add_member(db, new_manager, requester)
    await ensure_preferences(db, requester.id, new_manager.id)

    await notify(
        db,
        profile_id=requester.id,
        type=NotificationType.MANAGER_ASSIGNED,
        title="Manager Assigned",
        message=f"{new_manager.display_label} accepted your request and is now your manager.",
        data={"invitation_id": invitation.id, "manager_id": new_manager.id},
    )
    return ResolutionResult(
        success=True,
        message=(
            f"You've accepted the manager request from {requester.display_label}. "
            "You can now see the insights they share with you."
        ),
        invitation_type=InvitationType.MANAGER_REQUEST.value,
        manager_name=new_manager.display_label,
    )


async def _decline(
    db: AsyncSession,
    invitation: Invitation,
    acting_profile: Profile,
) -> ResolutionResult:
    await _claim(db, invitation, InvitationStatus.DECLINED, acting_profile)

    kind = "team" if invitation.invitation_type == InvitationType.TEAM_JOIN else "manager"
    if invitation.invited_by_id:
        await notify(
            db,
            profile_id=invitation.invited_by_id,
            type=NotificationType.INVITATION_DECLINED,
            title="Invitation Declined",
            message=f"Your {kind} invitation to {invitation.email} was declined.",
            data={"invitation_id": invitation.id, "invitation_type": InvitationType(invitation.invitation_type).value},
        )
    return ResolutionResult(
        success=True,
        message=f"You have declined the {kind} invitation.",
        invitation_type=InvitationType(invitation.invitation_type).value,
    )


async def resolve_invitation(
    db: AsyncSession,
    token: str,
    action: str,
    acting_profile: Profile,
    team_name: str | None = None,
) -> ResolutionResult:
    """Accept or decline a pending invitation on behalf of ``acting_profile``."""
    if action not in ACTIONS:
        raise ValidationError("Action must be 'accept' or 'decline'")
    if not token:
        raise ValidationError("Invitation token is required")

    result = await db.execute(
        select(Invitation)
        .where(Invitation.token == token, Invitation.status == InvitationStatus.PENDING)
        .with_for_update()
    )
    invitation = result.scalar_one_or_none()

    # Never-existed and already-resolved look the same to the caller
    if not invitation:
        raise NotFound("This invitation link is invalid or has already been used")

    if invitation.is_expired:
        raise Expired("This invitation has expired. Please request a new one.")

    if invitation.email.lower() != acting_profile.email.lower():
        raise Forbidden("This invitation was sent to a different email address")

    if action == "decline":
        outcome = await _decline(db, invitation, acting_profile)
    elif invitation.invitation_type == InvitationType.MANAGER_REQUEST:
        outcome = await _accept_manager_request(db, invitation, acting_profile, team_name)
    else:
        outcome = await _accept_team_join(db, invitation, acting_profile)

    logger.info(f"Invitation {invitation.id} {action}ed by profile {acting_profile.id}")
    return outcome


async def list_invitations(db: AsyncSession, profile: Profile, direction: str = "sent") -> list[Invitation]:
    """Invitations sent by or addressed to ``profile``, newest first."""
    query = select(Invitation)
    if direction == "sent":
        query = query.where(Invitation.invited_by_id == profile.id)
    elif direction == "received":
        query = query.where(Invitation.email == profile.email.lower())
    else:
        raise ValidationError("Direction must be 'sent' or 'received'")

    result = await db.execute(query.order_by(Invitation.invited_at.desc(), Invitation.id.desc()))
    return list(result.scalars().all())


async def _get_own_pending(db: AsyncSession, profile: Profile, invitation_id: int) -> Invitation:
    result = await db.execute(
        select(Invitation).where(
            Invitation.id == invitation_id,
            Invitation.invited_by_id == profile.id,
            Invitation.status == InvitationStatus.PENDING,
        )
    )
    invitation = result.scalar_one_or_none()
    if not invitation:
        raise NotFound("Invitation not found")
    return invitation


async def cancel_invitation(db: AsyncSession, profile: Profile, invitation_id: int) -> Invitation:
    invitation = await _get_own_pending(db, profile, invitation_id)
    invitation.status = InvitationStatus.CANCELLED
    await db.flush()
    logger.info(f"Invitation {invitation.id} cancelled by profile {profile.id}")
    return invitation


async def resend_invitation(db: AsyncSession, profile: Profile, invitation_id: int) -> bool:
    invitation = await _get_own_pending(db, profile, invitation_id)
    if invitation.is_expired:
        raise Expired("This invitation has expired. Cancel it and send a new one.")

    email_sent = await send_invitation_email(invitation, profile)
    if not email_sent and email_service.is_configured:
        raise EmailDeliveryError("Failed to send invitation email. Please try again.")
    return email_sent
