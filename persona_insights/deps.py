"""
FastAPI dependencies for authentication, database access and role gating.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from persona_insights.db import get_db
from persona_insights.models.profile import Profile
from persona_insights.models.user_session import UserSession
from persona_insights.services.capabilities import ManagerCapabilities, resolve_capabilities

# Type alias for database dependency
DBSession = Annotated[AsyncSession, Depends(get_db)]

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_session_optional(
    db: DBSession,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> UserSession | None:
    """Look up the session behind the bearer token (None if missing or expired).

    Valid sessions slide forward once less than half their lifetime remains.
    """
    if not credentials or not credentials.credentials:
        return None

    result = await db.execute(
        select(UserSession).where(UserSession.session_token == credentials.credentials)
    )
    session = result.scalar_one_or_none()
    if not session or not session.is_valid():
        return None

    session.refresh()
    return session


async def get_current_profile_optional(
    request: Request,
    db: DBSession,
    session: Annotated[UserSession | None, Depends(get_current_session_optional)],
) -> Profile | None:
    if session is None:
        return None

    profile = await db.get(Profile, session.profile_id)
    if not profile or not profile.is_active:
        return None

    profile.update_last_seen()
    request.state.profile_id = profile.id
    return profile


async def get_current_profile(
    profile: Annotated[Profile | None, Depends(get_current_profile_optional)],
) -> Profile:
    """Authenticated profile (raises 401 if not authenticated)."""
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return profile


# Type aliases for authenticated profile dependency
CurrentProfile = Annotated[Profile, Depends(get_current_profile)]
CurrentSession = Annotated[UserSession | None, Depends(get_current_session_optional)]


async def require_manager(profile: CurrentProfile) -> Profile:
    """Require the manager role (team may be empty)."""
    if not profile.is_manager:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Manager access required",
        )
    return profile


async def require_manager_dashboard(profile: CurrentProfile, db: DBSession) -> ManagerCapabilities:
    """Require dashboard access: the manage-teams flag plus at least one member."""
    capabilities = await resolve_capabilities(db, profile)
    if not capabilities.can_access_manager_dashboard:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Manager dashboard requires at least one team member",
        )
    return capabilities


ManagerProfile = Annotated[Profile, Depends(require_manager)]
DashboardAccess = Annotated[ManagerCapabilities, Depends(require_manager_dashboard)]


def get_client_ip(request: Request) -> str:
    """Client IP for rate limiting, honoring proxy headers."""
    return UserSession._get_client_ip(request) or "unknown"


def get_request_id(request: Request) -> str:
    """Get or generate request ID for logging."""
    return request.headers.get("X-Request-ID", request.state.request_id)
