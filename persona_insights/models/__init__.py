# Models package
from persona_insights.db import Base
from persona_insights.models.profile import Profile, ProfileRole
from persona_insights.models.user_session import UserSession
from persona_insights.models.invitation import Invitation, InvitationStatus, InvitationType
from persona_insights.models.team_member import TeamMember, TeamMemberRole
from persona_insights.models.sharing_preference import SharingPreference, SHARING_CATEGORIES
from persona_insights.models.notification import Notification, NotificationType
from persona_insights.models.conversation import (
    Conversation,
    ConversationStatus,
    KeyInsight,
    OCEAN_TRAITS,
)

__all__ = [
    "Base",
    "Profile",
    "ProfileRole",
    "UserSession",
    "Invitation",
    "InvitationStatus",
    "InvitationType",
    "TeamMember",
    "TeamMemberRole",
    "SharingPreference",
    "SHARING_CATEGORIES",
    "Notification",
    "NotificationType",
    "Conversation",
    "ConversationStatus",
    "KeyInsight",
    "OCEAN_TRAITS",
]
