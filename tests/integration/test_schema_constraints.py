"""
Integration tests for the table constraints declared in database/models.py.

Rows written outside the services (imports, manual fixes) must still hold
only statuses the enums can load.

Tests coverage:
- slots.status limited to available/booked/blocked
- bookings.status limited to booked/cancelled
- A booked slot must carry its trainee and booking id
"""

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from database.connection import get_async_session
from database.models import SlotStatus
from training.errors import SlotUnavailable
from training.transactions import BookingTransaction

pytestmark = pytest.mark.integration

SUPERVISOR = "consultant@uclh.nhs.uk"
TRAINEE = "fellow.a@uclh.nhs.uk"

INSERT_SLOT = text(
    'INSERT INTO slots (supervisor_id, id, start, "end", status, trainee_id, booking_id) '
    "VALUES (:supervisor_id, :id, '2025-09-05 09:00:00.000000', '2025-09-05 10:00:00.000000', "
    ":status, :trainee_id, :booking_id)"
)

INSERT_BOOKING = text(
    "INSERT INTO bookings (id, supervisor_id, slot_id, trainee_id, status, slot_date_key) "
    "VALUES (:id, :supervisor_id, :slot_id, :trainee_id, :status, '2025-09-05')"
)


async def insert_slot(slot_id: str, status: str, trainee_id=None, booking_id=None) -> None:
    async with get_async_session() as session:
        await session.execute(
            INSERT_SLOT,
            {
                "supervisor_id": SUPERVISOR,
                "id": slot_id,
                "status": status,
                "trainee_id": trainee_id,
                "booking_id": booking_id,
            },
        )
        await session.commit()


class TestSlotStatusConstraint:
    @pytest.mark.asyncio
    async def test_legacy_unavailable_label_rejected(self, database):
        with pytest.raises(IntegrityError):
            await insert_slot("legacy", "unavailable")

    @pytest.mark.asyncio
    async def test_unknown_status_rejected(self, database):
        with pytest.raises(IntegrityError):
            await insert_slot("odd", "cancelled")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [SlotStatus.AVAILABLE.value, SlotStatus.BLOCKED.value])
    async def test_known_status_accepted(self, database, status):
        await insert_slot("ok", status)

    @pytest.mark.asyncio
    async def test_raw_blocked_slot_rejected_by_booking(self, database):
        await insert_slot("s1", "blocked")

        with pytest.raises(SlotUnavailable):
            await BookingTransaction.execute(f"schedules/{SUPERVISOR}/slots/s1", TRAINEE)

    @pytest.mark.asyncio
    async def test_booked_without_binding_rejected(self, database):
        with pytest.raises(IntegrityError):
            await insert_slot("unbound", "booked")


class TestBookingStatusConstraint:
    @pytest.mark.asyncio
    async def test_unknown_status_rejected(self, database):
        await insert_slot("s1", "available")

        with pytest.raises(IntegrityError):
            async with get_async_session() as session:
                await session.execute(
                    INSERT_BOOKING,
                    {
                        "id": "0f5c2a1e9d7b4c3a8e6f1b2d3c4a5e6f",
                        "supervisor_id": SUPERVISOR,
                        "slot_id": "s1",
                        "trainee_id": TRAINEE,
                        "status": "pending",
                    },
                )
                await session.commit()
