"""
SchoolDesk Backend — Database Engine & Session Management
===========================================================

What:  Async SQLAlchemy engine construction, session factory, declarative base
       and the per-operation session scope used by the SQL repository.
Why:   Centralizes all relational connection logic in one place.
How:   The composition root builds ONE engine at startup with `create_engine()`,
       hands a session factory to the repository, and disposes the engine at
       shutdown. Nothing here holds a module-level connection.
Who:   Used by `schooldesk.dependencies` (startup/shutdown), the SQL repository,
       Alembic, and the SQL repository tests.

Connection Pooling Strategy:
    pool_size / max_overflow:  Taken from settings for server databases
    pool_pre_ping:             Validates connections before use
    pool_recycle=3600:         Recycles connections every hour
    SQLite URLs skip the pool sizing arguments (aiosqlite manages its own pool).
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from schooldesk.config import Settings, settings as default_settings


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares a single metadata object so Alembic and `create_all` see every table.
    """
    pass


# ── Engine Construction ───────────────────────────────────────────────────
def create_engine(
    database_url: Optional[str] = None,
    config: Optional[Settings] = None,
) -> AsyncEngine:
    """
    Create the process-wide async engine.

    Args:
        database_url: Override the configured URL (used in tests).
        config: Settings to read pool sizing from (defaults to the singleton).
    """
    config = config or default_settings
    url = database_url or config.database_url

    if url.startswith("sqlite"):
        return create_async_engine(url, echo=config.log_level == "DEBUG")

    return create_async_engine(
        url,
        pool_size=config.db_pool_size,
        max_overflow=config.db_max_overflow,
        pool_pre_ping=config.db_pool_pre_ping,
        pool_recycle=3600,
        # Echo SQL queries only when debugging
        echo=config.log_level == "DEBUG",
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Build the session factory bound to `engine`.

    expire_on_commit=False: records stay readable after commit, so the
    repository can convert ORM rows into response models outside the session.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# ── Session Scope ─────────────────────────────────────────────────────────
@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """
    Provide a transactional session for a single repository operation.

    How it works:
        1. Creates a new session from the factory
        2. Yields it to the caller (the caller performs queries)
        3. On success: commits the transaction
        4. On error: rolls back and re-raises
        5. Always: closes the session (returns connection to pool)

    Why per-operation (not per-request):
        The service must observe constraint violations (duplicate email) at the
        moment of the insert, so it can delete the just-uploaded image before
        answering. A commit deferred to the end of the request would surface
        the error after the service has already returned.
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def create_tables(engine: AsyncEngine) -> None:
    """Create all registered tables (no-op for tables that already exist)."""
    # Importing the models registers them with Base.metadata
    from schooldesk.models import school  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine(engine: AsyncEngine) -> None:
    """
    What:  Gracefully closes all connections in the pool.
    When:  Called during application shutdown (lifespan handler).
    """
    await engine.dispose()
