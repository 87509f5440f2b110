"""
Database session configuration and the persistence boundary.

This module handles database engine creation, session management
using SQLAlchemy with async support for PostgreSQL, and `run_atomic`,
the transactional boundary every ledger mutation goes through.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, TypeVar

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from backend.app.core.config import settings
from backend.app.core.exceptions import AppException, AtomicityError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _engine_options(database_url: str) -> Dict[str, Any]:
    # SQLite (local dev) does not take pool sizing arguments
    options: Dict[str, Any] = {"echo": settings.db_echo, "future": True}
    if not database_url.startswith("sqlite"):
        options["pool_size"] = settings.db_pool_size
        options["max_overflow"] = settings.db_max_overflow
    return options


# Create async engine
engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

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

    Yields an async database session and ensures it's properly closed.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def run_atomic(
    db: AsyncSession,
    fn: Callable[[AsyncSession], Awaitable[T]],
    operation: str = "unit of work"
) -> T:
    """
    Execute a set of entity mutations as one transaction.

    `fn` receives the session and must only flush, never commit. When this
    returns, the commit has completed, so any read issued afterwards sees
    the new state.

    Raises:
        AppException: Domain errors raised by `fn`, unchanged, after rollback
        AtomicityError: Any other failure inside `fn` or the commit, after rollback
    """
    try:
        result = await fn(db)
        await db.commit()
    except AppException:
        await db.rollback()
        raise
    except Exception as exc:
        await db.rollback()
        logger.error(
            "Atomic unit rolled back",
            extra={"operation": operation, "error": type(exc).__name__}
        )
        raise AtomicityError(operation, exc) from exc
    return result
