"""
Authentication router: email/password registration and bearer sessions.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy import select

from persona_insights.deps import CurrentProfile, CurrentSession, DBSession, get_client_ip
from persona_insights.errors import ValidationError
from persona_insights.models.base import as_utc
from persona_insights.models.profile import Profile
from persona_insights.models.user_session import UserSession
from persona_insights.routers.profile import ProfileOut
from persona_insights.services.invitations import normalize_email
from persona_insights.services.password import hash_password, validate_password, verify_password
from persona_insights.services.rate_limiter import auth_rate_limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    email: str
    password: str
    full_name: str | None = None
    display_name: str | None = None


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime


@router.post("/register", response_model=ProfileOut, status_code=status.HTTP_201_CREATED)
async def register(db: DBSession, data: RegisterRequest):
    email = normalize_email(data.email)
    validate_password(data.password)

    result = await db.execute(select(Profile).where(Profile.email == email))
    if result.scalar_one_or_none():
        raise ValidationError("An account with this email already exists")

    profile = Profile(
        email=email,
        hashed_password=hash_password(data.password),
        full_name=data.full_name.strip() if data.full_name else None,
        display_name=data.display_name.strip() if data.display_name else None,
    )
    db.add(profile)
    await db.commit()

    logger.info(f"Registered profile {profile.id} ({email})")
    return ProfileOut.from_profile(profile)


@router.post("/login", response_model=TokenResponse)
async def login(request: Request, db: DBSession, data: LoginRequest):
    auth_rate_limiter.check(f"login:{get_client_ip(request)}")

    result = await db.execute(select(Profile).where(Profile.email == data.email.strip().lower()))
    profile = result.scalar_one_or_none()

    if not profile or not verify_password(data.password, profile.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    if not profile.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled",
        )

    session = UserSession.create_session(profile_id=profile.id, request=request)
    db.add(session)
    profile.update_last_seen()
    await db.commit()

    logger.info(f"Profile {profile.id} logged in")
    return TokenResponse(access_token=session.session_token, expires_at=as_utc(session.expires_at))


@router.post("/logout")
async def logout(profile: CurrentProfile, session: CurrentSession, db: DBSession):
    if session is not None:
        await db.delete(session)
        await db.commit()
    logger.info(f"Profile {profile.id} logged out")
    return {"success": True}
