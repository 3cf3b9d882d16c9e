# shiftwatch/db/session.py
import os
from collections.abc import AsyncGenerator

from sqlalchemy import create_engine as create_sync_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from shiftwatch.core.config import get_settings
from shiftwatch.db.base import Base

# Import ORM models so that Base.metadata is aware of them.
from shiftwatch.models.user import User  # noqa: F401
from shiftwatch.models.schedule import Schedule  # noqa: F401
from shiftwatch.models.booking import Booking  # noqa: F401
from shiftwatch.models.recurring_assignment import RecurringAssignment  # noqa: F401

settings = get_settings()

# Detect if we're running under pytest
IS_TEST = "PYTEST_CURRENT_TEST" in os.environ

# ---------------------------------------------------------------------------
# Main application engine + session
# ---------------------------------------------------------------------------
engine = create_async_engine(
    settings.DB_URL,
    echo=False,
    # Tests drive the app from several event loops, so connections must not
    # be reused across them.
    poolclass=NullPool if IS_TEST else None,
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    autoflush=False,
    expire_on_commit=False,
    class_=AsyncSession,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides an async SQLAlchemy session.

    The session is automatically closed when the request is completed.
    """
    async with AsyncSessionLocal() as session:
        yield session


# ---------------------------------------------------------------------------
# PRODUCTION / DEV: DB init for app startup
# ---------------------------------------------------------------------------
async def init_db_for_startup() -> None:
    """
    Create any missing tables for the configured database.

    Existing tables are left untouched; schema migrations are handled
    outside this service.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ---------------------------------------------------------------------------
# TESTS ONLY: reset schema using a SYNC engine
# ---------------------------------------------------------------------------

def build_sync_db_url(async_url: str) -> str:
    """
    Convert an async driver URL into its synchronous counterpart, e.g.
    'sqlite+aiosqlite:///x.db' -> 'sqlite:///x.db' and
    'postgresql+asyncpg://...' -> 'postgresql://...'.
    """
    for async_driver in ("+aiosqlite", "+asyncpg"):
        if async_driver in async_url:
            return async_url.replace(async_driver, "")
    return async_url


def reset_schema_sync(async_url: str) -> None:
    """
    Run drop_all + create_all using a synchronous SQLAlchemy engine.

    This bypasses the async driver entirely, so it can be called from plain
    (non-async) test fixtures.
    """
    sync_engine = create_sync_engine(build_sync_db_url(async_url))

    with sync_engine.begin() as conn:
        Base.metadata.drop_all(bind=conn)
        Base.metadata.create_all(bind=conn)

    sync_engine.dispose()
