"""Async SQLAlchemy engine and session management for the case store."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Seconds a SQLite connection waits on a locked database file
SQLITE_LOCK_TIMEOUT = 30


def to_async_url(database_url: str) -> str:
    """Rewrite a plain sqlite:/// URL to use the aiosqlite driver."""
    if database_url.startswith("sqlite:///"):
        return "sqlite+aiosqlite:///" + database_url[len("sqlite:///"):]
    return database_url


class Database:
    """Owns the async engine and hands out transactional sessions.

    The cleanup sweep only reads case rows and, depending on the record
    policy, stamps or deletes them; every unit of work goes through
    session(), which commits on success and rolls back on error.
    """

    def __init__(self, database_url: str):
        self.url = to_async_url(database_url)
        self.is_sqlite = self.url.startswith("sqlite")

        self._engine: AsyncEngine = create_async_engine(
            self.url,
            connect_args={"timeout": SQLITE_LOCK_TIMEOUT} if self.is_sqlite else {},
        )
        self._sessions: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self._engine,
            expire_on_commit=False,
        )

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session bound to one transaction.

        Usage:
            async with db.session() as session:
                await session.execute(...)
        """
        async with self._sessions() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def init_db(self) -> None:
        """Create missing tables directly from the ORM metadata.

        Used by tests and auto_create_tables; deployments run Alembic.
        """
        from pepper_cleanup.models import orm  # noqa: F401

        async with self._engine.begin() as conn:
            if self.is_sqlite:
                await conn.execute(
                    text(f"PRAGMA busy_timeout={SQLITE_LOCK_TIMEOUT * 1000}")
                )
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Dispose of the engine and its pooled connections."""
        await self._engine.dispose()
