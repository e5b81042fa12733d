"""
Database configuration with SQLAlchemy 2.0 async support.
"""

import asyncio
import logging
import ssl
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from persona_insights.settings import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def _get_connect_args() -> dict:
    """Get connection arguments, including SSL for managed databases."""
    connect_args = {}

    db_url = settings.database_url
    if settings.is_sqlite:
        return connect_args

    # Skip SSL for local development (localhost or Docker service names)
    local_hosts = ["localhost", "127.0.0.1", "@db:", "@db/", "@postgres:", "@postgres/"]
    is_local = any(host in db_url for host in local_hosts)

    if not is_local:
        ssl_context = ssl.create_default_context()
        ssl_context.check_hostname = False
        ssl_context.verify_mode = ssl.CERT_NONE  # Managed DBs often use self-signed certs
        connect_args["ssl"] = ssl_context
        logger.info("SSL enabled for database connection")

    return connect_args


def _get_engine_kwargs() -> dict:
    """Pool sizing applies to server databases only."""
    kwargs = {
        "echo": settings.debug,
        "connect_args": _get_connect_args(),
    }
    if not settings.is_sqlite:
        kwargs.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,
        )
    return kwargs


# Create async engine
engine = create_async_engine(settings.database_url, **_get_engine_kwargs())

# Session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session.

    The session is one transaction per request: everything a handler writes is
    committed together on success and rolled back together on any error.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """Context manager for database sessions (for use outside of FastAPI)."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Initialize database (create tables if needed) with retry logic."""
    max_retries = 10
    retry_delay = 5  # seconds

    parsed = urlparse(settings.database_url)
    logger.info(f"Connecting to database: {parsed.scheme}://{parsed.hostname or ''}{parsed.path}")

    for attempt in range(max_retries):
        try:
            async with engine.begin() as conn:
                # Import all models to ensure they're registered
                import persona_insights.models  # noqa: F401

                await conn.run_sync(Base.metadata.create_all)
                logger.info("Database initialized successfully")
                return
        except Exception as e:
            if attempt < max_retries - 1:
                logger.warning(f"Database connection attempt {attempt + 1}/{max_retries} failed: {e}")
                await asyncio.sleep(retry_delay)
            else:
                logger.error(f"Database connection failed after {max_retries} attempts")
                raise


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
