"""
Test configuration and fixtures.

This module sets up test environment and provides shared fixtures for all tests.
"""

import os
import tempfile
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

# Tests run against a throwaway SQLite file instead of the Docker PostgreSQL host.
# Must be set BEFORE any imports of database.connection or shared.config
_TEST_DB_DIR = tempfile.mkdtemp(prefix="echo-training-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DB_DIR}/test.db"
os.environ["AUTH_JWT_SECRET"] = "test-identity-secret-0123456789abcdef"
os.environ["AUTH_JWT_ALGORITHM"] = "HS256"
os.environ["TIMEZONE"] = "Europe/London"
os.environ["DEFAULT_DAILY_CAP"] = "2"

SUPERVISOR = "consultant@uclh.nhs.uk"
TRAINEE_A = "fellow.a@uclh.nhs.uk"
TRAINEE_B = "fellow.b@uclh.nhs.uk"
MENTOR = "mentor@uclh.nhs.uk"


@pytest.fixture(scope="function", autouse=True)
async def cleanup_engine():
    """
    Dispose the database engine after each test.

    Each test runs on its own event loop; pooled aiosqlite connections must
    not leak into the next one.
    """
    yield
    from database.connection import engine

    await engine.dispose()


@pytest.fixture
async def database():
    """Fresh schema for each integration test."""
    from database.connection import engine
    from database.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine


@pytest.fixture
def make_slot(database):
    """
    Factory inserting a slot directly (bypassing the publishing service).

    Usage:
        path = await make_slot("s1", datetime(2025, 9, 5, 9, tzinfo=UTC))
    """
    from database.access import as_utc
    from database.connection import run_in_transaction
    from database.models import Slot, SlotStatus

    async def _make(
        slot_id: str | None = None,
        start: datetime | None = None,
        supervisor_id: str = SUPERVISOR,
        daily_cap: int | None = None,
        status: SlotStatus = SlotStatus.AVAILABLE,
    ) -> str:
        # SQLite drops offsets, so store UTC like the publishing service does
        start = as_utc(start or datetime(2025, 9, 5, 9, 0, tzinfo=UTC))
        slot = Slot(
            supervisor_id=supervisor_id,
            id=slot_id or uuid4().hex,
            start=start,
            end=start + timedelta(hours=1),
            location="Echo lab 2",
            daily_cap_for_trainee=daily_cap,
            status=status,
            created_at=datetime.now(UTC),
            updated_at=datetime.now(UTC),
        )

        async def insert(session):
            session.add(slot)

        await run_in_transaction(insert)
        return slot.path

    return _make


@pytest.fixture
def make_entry(database):
    """Factory inserting a draft logbook entry owned by TRAINEE_A."""
    from training.services.logbook_service import create_entry

    async def _make(owner: str = TRAINEE_A, **fields):
        values = {
            "date": datetime(2025, 9, 1, 10, 30, tzinfo=UTC),
            "indication": "Breathlessness on exertion",
            "views": ["PLAX", "PSAX", "AP4C"],
            "findings": {"lv": "normal", "rv": "mildly dilated"},
            "summary": "Preserved LV systolic function",
            "directly_observed": True,
            "image_quality": "Good",
            "demographics": {"age": 64, "sex": "F"},
        }
        values.update(fields)
        return await create_entry(owner, values)

    return _make
