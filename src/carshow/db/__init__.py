"""carshow database module.

Database models and migrations:
- SQLAlchemy 2.x ORM models
- Alembic migration configuration
- Explicitly owned async engine via psycopg
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from sqlalchemy.ext.asyncio import AsyncEngine

    from carshow.core.config import Settings


def to_psycopg_url(url: str) -> str:
    """Rewrite a PostgreSQL URL to use the psycopg (v3) driver.

    Args:
        url: postgresql:// or postgres:// connection URL.

    Returns:
        URL with the postgresql+psycopg scheme.
    """
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    return url


class Database:
    """Owner of one async engine and its session factory.

    Constructed once by the application (see ``carshow.api.create_app``)
    and handed to whatever needs sessions. Call ``dispose()`` on shutdown.

    Usage:
        database = Database.from_settings(settings)
        async with database.session() as session:
            result = await session.execute(query)
            await session.commit()
        await database.dispose()
    """

    def __init__(
        self,
        url: str,
        *,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_timeout: int = 30,
        echo: bool = False,
    ) -> None:
        self._engine: AsyncEngine | None = create_async_engine(
            to_psycopg_url(url),
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            echo=echo,
        )
        self._session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> Database:
        """Build a handle from the database section of the settings."""
        return cls(
            str(settings.database.url),
            pool_size=settings.database.pool_size,
            max_overflow=settings.database.max_overflow,
            pool_timeout=settings.database.pool_timeout,
            echo=settings.database.echo,
        )

    @property
    def engine(self) -> AsyncEngine:
        """The underlying engine.

        Raises:
            RuntimeError: If the handle has been disposed.
        """
        if self._engine is None:
            msg = "Database handle has been disposed"
            raise RuntimeError(msg)
        return self._engine

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Open a session, rolling back if the block raises.

        Committing is left to the caller so that one request maps to one
        transaction.

        Yields:
            AsyncSession for database operations.
        """
        if self._engine is None:
            msg = "Database handle has been disposed"
            raise RuntimeError(msg)

        session = self._session_factory()
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def dispose(self) -> None:
        """Close all pooled connections. Safe to call twice."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
