"""Database connection and session management."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncGenerator, Awaitable, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from hris_payroll.config import get_settings
from hris_payroll.models import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

T = TypeVar("T")


def get_engine() -> AsyncEngine:
    """Create the async engine for the payroll database."""
    settings = get_settings()
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )


# Process-wide engine and session factory, created on first use
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_db() -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Return the shared engine and session factory, creating them once."""
    global _engine, _session_factory
    if _engine is None:
        _engine = get_engine()
        _session_factory = async_sessionmaker(
            _engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _engine, _session_factory


async def create_schema() -> None:
    """Create all tables that do not exist yet."""
    engine, _ = init_db()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Dispose the global engine (used by scripts before exiting)."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session that commits on success and rolls back on error."""
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def fetch_for_update(session: AsyncSession, model: type, *criteria: Any) -> Any:
    """Load a single row with a row lock, refreshing any identity-mapped copy.

    SQLite ignores FOR UPDATE; the compare-and-swap updates in the services
    still guard status transitions there.
    """
    result = await session.execute(
        select(model)
        .where(*criteria)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def run_in_savepoint(
    session: AsyncSession, work: Awaitable[T], timeout: float | None = None
) -> T:
    """Run one unit of bulk work inside its own savepoint.

    The savepoint is opened and rolled back here, outside the awaited work,
    so a timeout that cancels ``work`` mid-flush still leaves the session
    usable for the next unit.
    """
    savepoint = await session.begin_nested()
    try:
        result = await asyncio.wait_for(work, timeout)
    except BaseException:
        await savepoint.rollback()
        raise
    await savepoint.commit()
    return result
