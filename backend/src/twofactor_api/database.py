"""Database connection and session management."""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from twofactor_api.config import get_settings

settings = get_settings()

_engine_options: dict[str, Any] = {
    # Security: Never echo SQL statements as they may contain sensitive data
    "echo": False,
}
if not settings.is_sqlite:
    _engine_options.update(
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        # Validate connections before checkout to detect stale connections
        pool_pre_ping=True,
        # Recycle connections after 1 hour (important for cloud proxies)
        pool_recycle=3600,
    )

engine = create_async_engine(settings.async_database_url, **_engine_options)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            raise
