"""
pytest configuration and shared fixtures.

Every test gets its own SQLite database file; the app's ``get_db``
dependency is overridden to use it.
"""

import logging
import os

# Must be set before persona_insights.settings is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./.pytest-bootstrap.db"
for key in ("RESEND_API_KEY", "SENDGRID_API_KEY", "SMTP_HOST"):
    os.environ[key] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import persona_insights.models  # noqa: F401
from persona_insights.db import Base, get_db
from persona_insights.main import app
from persona_insights.models.profile import Profile
from persona_insights.models.user_session import UserSession
from persona_insights.services.password import hash_password
from persona_insights.services.rate_limiter import auth_rate_limiter, invite_rate_limiter
from persona_insights.services.team_cache import team_cache

logging.basicConfig(level=logging.INFO)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def client(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_process_state():
    team_cache.clear()
    auth_rate_limiter.reset()
    invite_rate_limiter.reset()
    yield
    team_cache.clear()


@pytest.fixture
def make_profile(db):
    """Create and commit a profile."""

    async def _make(email: str, display_name: str | None = None, password: str | None = None, **fields) -> Profile:
        profile = Profile(
            email=email,
            display_name=display_name,
            hashed_password=hash_password(password) if password else None,
            **fields,
        )
        db.add(profile)
        await db.commit()
        return profile

    return _make


@pytest.fixture
def auth_headers(db):
    """Bearer headers for a fresh session of the given profile."""

    async def _headers(profile: Profile) -> dict[str, str]:
        session = UserSession.create_session(profile_id=profile.id)
        db.add(session)
        await db.commit()
        return {"Authorization": f"Bearer {session.session_token}"}

    return _headers
