"""
Unit tests for database/connection.py - Transaction runner with conflict retry.

Tests coverage:
- is_serialization_failure() for asyncpg (sqlstate) and psycopg (pgcode) errors
- run_in_transaction() retries the whole unit on serialization conflicts
- Non-conflict errors and domain errors propagate without retry
- TransactionConflictError after max_attempts
"""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import DBAPIError

from database.connection import (
    TransactionConflictError,
    is_serialization_failure,
    run_in_transaction,
)
from training.errors import SlotUnavailable


class FakeDriverError(Exception):
    def __init__(self, message: str, sqlstate: str | None = None, pgcode: str | None = None):
        super().__init__(message)
        self.sqlstate = sqlstate
        self.pgcode = pgcode


def db_error(**codes) -> DBAPIError:
    return DBAPIError("UPDATE slots SET status = 'booked'", {}, FakeDriverError("conflict", **codes))


class TestIsSerializationFailure:
    @pytest.mark.parametrize(
        "codes,expected",
        [
            ({"sqlstate": "40001"}, True),
            ({"sqlstate": "40P01"}, True),
            ({"pgcode": "40001"}, True),
            ({"sqlstate": "23505"}, False),
            ({}, False),
        ],
    )
    def test_detection(self, codes, expected):
        assert is_serialization_failure(db_error(**codes)) is expected


class TestRunInTransaction:
    """Test retry semantics (no statements are executed, so no schema is needed)."""

    @pytest.mark.asyncio
    async def test_returns_work_result(self):
        async def work(session):
            return "done"

        assert await run_in_transaction(work) == "done"

    @pytest.mark.asyncio
    async def test_retries_after_serialization_conflict(self):
        calls = []

        async def work(session):
            calls.append(session)
            if len(calls) < 3:
                raise db_error(sqlstate="40001")
            return len(calls)

        with patch("database.connection.RETRY_BACKOFF_SECONDS", 0):
            result = await run_in_transaction(work, max_attempts=5, trace_id="test")

        assert result == 3
        # Each attempt gets a fresh session
        assert len({id(s) for s in calls}) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        calls = 0

        async def work(session):
            nonlocal calls
            calls += 1
            raise db_error(sqlstate="40P01")

        with patch("database.connection.RETRY_BACKOFF_SECONDS", 0):
            with pytest.raises(TransactionConflictError) as exc_info:
                await run_in_transaction(work, max_attempts=3)

        assert calls == 3
        assert exc_info.value.attempts == 3

    @pytest.mark.asyncio
    async def test_other_driver_errors_are_not_retried(self):
        calls = 0

        async def work(session):
            nonlocal calls
            calls += 1
            raise db_error(sqlstate="23505")

        with pytest.raises(DBAPIError):
            await run_in_transaction(work, max_attempts=5)

        assert calls == 1

    @pytest.mark.asyncio
    async def test_domain_errors_propagate_unchanged(self):
        calls = 0

        async def work(session):
            nonlocal calls
            calls += 1
            raise SlotUnavailable()

        with pytest.raises(SlotUnavailable):
            await run_in_transaction(work)

        assert calls == 1
