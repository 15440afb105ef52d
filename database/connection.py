"""
Async database engine, session factory and transaction runner.

PostgreSQL (asyncpg) runs every transaction at SERIALIZABLE isolation so
predicate reads (the per-trainee daily booking count) take part in
conflict detection. SQLite (aiosqlite, used for local runs and tests)
opens every transaction with BEGIN IMMEDIATE, which serializes writers
outright.

run_in_transaction() is the single entry point used by the booking and
signing transactions: it executes a unit of work inside one transaction
and re-runs the whole unit when the store reports a serialization
conflict, so a losing concurrent caller re-reads committed state and
fails its own preconditions.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import TypeVar

from sqlalchemy import event
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from shared.config import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# SQLSTATE codes PostgreSQL uses for retryable transaction conflicts
SERIALIZATION_FAILURE_CODES = {"40001", "40P01"}

# Base delay between conflict retries (doubled per attempt)
RETRY_BACKOFF_SECONDS = 0.05


class TransactionConflictError(Exception):
    """Raised when a transaction keeps conflicting after all attempts."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Transaction aborted after {attempts} conflicting attempts")


def _configure_sqlite(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        # Let SQLAlchemy's "begin" hook own the BEGIN statement
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine_from_settings() -> AsyncEngine:
    """Create the async engine for DATABASE_URL with backend-specific isolation."""
    settings = get_settings()
    url = settings.DATABASE_URL

    if url.startswith("sqlite"):
        new_engine = create_async_engine(
            url,
            echo=settings.DATABASE_ECHO,
            connect_args={"timeout": 30},
        )
        _configure_sqlite(new_engine)
        return new_engine

    return create_async_engine(
        url,
        echo=settings.DATABASE_ECHO,
        isolation_level="SERIALIZABLE",
        pool_pre_ping=True,
    )


engine = create_engine_from_settings()

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@asynccontextmanager
async def get_async_session() -> AsyncIterator[AsyncSession]:
    """
    Yield a session bound to the shared engine.

    Usage:
        async with get_async_session() as session:
            await session.execute(...)
    """
    async with AsyncSessionLocal() as session:
        yield session


def is_serialization_failure(error: DBAPIError) -> bool:
    """True if the driver error is a retryable serialization/deadlock conflict."""
    orig = error.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return code in SERIALIZATION_FAILURE_CODES


async def run_in_transaction(
    work: Callable[[AsyncSession], Awaitable[T]],
    *,
    max_attempts: int | None = None,
    trace_id: str = "",
) -> T:
    """
    Run work(session) inside a single transaction and commit it.

    Any exception raised by work rolls the transaction back and propagates
    unchanged. Serialization conflicts reported by the store (on a read,
    a flush or the commit) restart the whole unit with a fresh session.

    Args:
        work: Coroutine function receiving the transactional session
        max_attempts: Attempts before giving up (default TRANSACTION_MAX_ATTEMPTS)
        trace_id: Prefix for log lines

    Returns:
        Whatever work returns for the committed attempt

    Raises:
        TransactionConflictError: If every attempt conflicted
    """
    attempts = max_attempts or get_settings().TRANSACTION_MAX_ATTEMPTS

    for attempt in range(1, attempts + 1):
        try:
            async with AsyncSessionLocal() as session:
                async with session.begin():
                    return await work(session)
        except DBAPIError as e:
            if not is_serialization_failure(e):
                raise
            logger.warning(
                f"[{trace_id}] Serialization conflict on attempt {attempt}/{attempts}",
                extra={"error": str(e.orig)},
            )
            if attempt < attempts:
                await asyncio.sleep(RETRY_BACKOFF_SECONDS * (2 ** (attempt - 1)))

    raise TransactionConflictError(attempts)
