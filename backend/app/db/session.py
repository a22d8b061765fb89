"""
Database session configuration.

This module handles database engine creation and session management
using SQLAlchemy with async support. PostgreSQL (asyncpg) is the production
target; a sqlite+aiosqlite URL works for local development and tests.
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from backend.app.core.config import settings


def _engine_options(database_url: str) -> dict:
    """Pool sizing only applies to server databases."""
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": True,
    }


# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    future=True,
    **_engine_options(settings.database_url),
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Create declarative base for models
Base = declarative_base()


async def get_db():
    """
    FastAPI dependency for database sessions.

    Yields an async database session. Anything left uncommitted when the
    request fails is rolled back, so a trip change and its truck status
    update are never half-applied.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
