"""Database engine and session management for the lesson booking service."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from core.settings import Settings
from .base import Base


def create_engine(settings: Settings) -> AsyncEngine:
    """
    Create async SQLAlchemy engine.

    Postgres gets a pre-pinged connection pool; other backends (SQLite in
    tests) use their driver defaults.

    Args:
        settings: Application settings

    Returns:
        Async SQLAlchemy engine
    """
    url = settings.database_url
    if url.startswith("postgresql+asyncpg://"):
        return create_async_engine(
            url,
            echo=settings.db_echo,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
            pool_recycle=3600,
            connect_args={
                "server_settings": {"application_name": "lesson_booking"},
                "command_timeout": 60,
                "timeout": 10,
            },
        )
    return create_async_engine(url, echo=settings.db_echo)


def create_test_engine(url: str) -> AsyncEngine:
    """
    Create async engine for testing with NullPool.

    Args:
        url: Database URL

    Returns:
        Async SQLAlchemy engine with NullPool
    """
    return create_async_engine(url, echo=False, poolclass=NullPool)


class Database:
    """Engine plus session factory, built once at process start."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(create_engine(settings))

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Context manager for getting async database session.

        Commits on success and rolls back on any exception.

        Example:
            async with database.session() as session:
                # use session
                pass
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def init_db(self) -> None:
        """Initialize database by creating all tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_db(self) -> None:
        """Drop all database tables. Use with caution!"""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def close(self) -> None:
        """Close database engine and all connections."""
        await self.engine.dispose()


