"""
Database connection and session management.
Uses SQLAlchemy async with PostgreSQL (asyncpg).

The engine is owned by a ``Database`` resource with an explicit
``init()``/``shutdown()`` lifecycle. The application creates one at startup
and keeps it on ``app.state``; nothing imports a global engine.
"""

import logging
from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)


# Convert sync URL to async URL if needed
def get_async_url(url: str) -> str:
    """Convert PostgreSQL URL to async format."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgresql+psycopg2://"):
        return url.replace("postgresql+psycopg2://", "postgresql+asyncpg://", 1)
    return url


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


class Database:
    """Process-scoped database handle."""

    def __init__(self, url: str, echo: bool = False, **engine_kwargs):
        self.url = get_async_url(url)
        self.echo = echo
        self._engine_kwargs = engine_kwargs
        self._engine: Optional[AsyncEngine] = None
        self._session_maker: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database is not initialized; call init() first")
        return self._engine

    @property
    def session_maker(self) -> async_sessionmaker[AsyncSession]:
        if self._session_maker is None:
            raise RuntimeError("Database is not initialized; call init() first")
        return self._session_maker

    async def init(self, create_tables: bool = False) -> None:
        """Create the engine and session factory, optionally creating tables."""
        if self._engine is not None:
            return
        self._engine = create_async_engine(
            self.url,
            echo=self.echo,
            **self._engine_kwargs,
        )
        self._session_maker = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        if create_tables:
            # Import models so their tables are registered on Base.metadata
            import identity_api.db.models  # noqa: F401

            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialized")

    async def shutdown(self) -> None:
        """Dispose of the engine and its connection pool."""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._session_maker = None
        logger.info("Database connections closed")

    async def ping(self) -> bool:
        """Round-trip a trivial query."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get an async database session bound to one request transaction."""
    database: Database = request.app.state.database
    async with database.session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
