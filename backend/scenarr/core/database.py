"""Database configuration and setup for Scenarr.

Handles SQLite async database setup with proper concurrency handling:
- WAL mode for better concurrent reads/writes
- Connection pooling with appropriate sizing
- Retry logic for database locks
- Session factory for dependency injection
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import structlog
from sqlalchemy import event
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from scenarr.core.metrics import (
    db_connections_active,
    db_connections_idle,
    db_lock_errors_total,
    db_pool_size,
    db_retries_failed_total,
    db_retry_attempts_total,
)
from scenarr.db.models import metadata

logger = structlog.get_logger("scenarr.database")

T = TypeVar("T")

SessionFactory = async_sessionmaker[SQLModelAsyncSession]

# Global storage for session factory (set once at startup)
_global_session_factory: SessionFactory | None = None


def set_global_session_factory(session_factory: SessionFactory | None) -> None:
    """Set the global session factory.

    Args:
        session_factory: The async session factory to store globally
    """
    global _global_session_factory
    _global_session_factory = session_factory
    logger.debug("Global session factory set")


def get_global_session_factory() -> SessionFactory | None:
    """Get the global session factory.

    Returns:
        The async session factory or None if not set
    """
    return _global_session_factory


def create_database_engine(
    database_file: Path | str,
    echo: bool = False,
) -> AsyncEngine:
    """Create and configure the database engine for async SQLite.

    Args:
        database_file: Path to the SQLite database file.
        echo: If True, log all SQL statements (useful for debugging).

    Returns:
        Configured AsyncEngine instance.
    """
    database_url = f"sqlite+aiosqlite:///{database_file}"
    pool_size = 10

    engine = create_async_engine(
        database_url,
        echo=echo,
        connect_args={"timeout": 30.0},  # Wait for locks instead of failing immediately
        pool_pre_ping=True,
        pool_size=pool_size,
        max_overflow=20,
    )
    db_pool_size.set(pool_size)

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn: Any, connection_record: Any) -> None:
        """Enable WAL mode and other SQLite optimizations."""
        cursor = dbapi_conn.cursor()
        try:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA foreign_keys=ON")
        finally:
            cursor.close()

    @event.listens_for(engine.sync_engine, "checkout")
    def on_connection_checkout(
        dbapi_conn: Any, connection_record: Any, connection_proxy: Any
    ) -> None:
        pool = engine.sync_engine.pool
        db_connections_active.set(pool.checkedout())  # type: ignore[attr-defined]
        db_connections_idle.set(pool.checkedin())  # type: ignore[attr-defined]

    @event.listens_for(engine.sync_engine, "checkin")
    def on_connection_checkin(dbapi_conn: Any, connection_record: Any) -> None:
        pool = engine.sync_engine.pool
        db_connections_active.set(pool.checkedout())  # type: ignore[attr-defined]
        db_connections_idle.set(pool.checkedin())  # type: ignore[attr-defined]

    logger.info("Database engine created", database_file=str(database_file), echo=echo)
    return engine


def create_session_factory(engine: AsyncEngine) -> SessionFactory:
    """Create a session factory for database sessions.

    expire_on_commit=False is important for async sessions to avoid lazy loading issues.

    Args:
        engine: The database engine.

    Returns:
        Configured async_sessionmaker instance.
    """
    return async_sessionmaker(
        engine,
        class_=SQLModelAsyncSession,
        expire_on_commit=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables registered on the SQLModel metadata."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)


async def retry_db_operation(
    operation: Callable[[], Awaitable[T]],
    session: SQLModelAsyncSession | None = None,
    max_retries: int = 5,
    retry_delay: float = 0.1,
    operation_type: str = "unknown",
) -> T:
    """Retry a database operation on SQLite lock errors with exponential backoff.

    Args:
        operation: Callable returning an awaitable (not already awaited).
        session: Optional database session to rollback on lock errors.
        max_retries: Maximum number of attempts.
        retry_delay: Initial delay between retries in seconds, doubled on each retry.
        operation_type: Label for metrics ("query", "update", "commit", ...).

    Returns:
        Result of the operation.

    Raises:
        OperationalError: If the operation is not a lock error or still fails after
            max_retries.
    """
    for attempt in range(max_retries):
        try:
            return await operation()
        except OperationalError as exc:
            if "locked" not in str(exc).lower() or attempt >= max_retries - 1:
                if attempt > 0:
                    db_retries_failed_total.labels(operation_type=operation_type).inc()
                logger.error(
                    "Database operation failed",
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    operation_type=operation_type,
                    error=str(exc)[:200],
                )
                raise

            db_lock_errors_total.inc()
            db_retry_attempts_total.labels(operation_type=operation_type).inc()
            logger.debug(
                "Database lock detected, retrying",
                attempt=attempt + 1,
                max_retries=max_retries,
                operation_type=operation_type,
            )
            if session is not None:
                await session.rollback()
            await asyncio.sleep(retry_delay * (2**attempt))

    raise RuntimeError(f"Operation failed after {max_retries} retries")
