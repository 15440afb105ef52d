"""
Integration tests for the booking engine against a real (SQLite) database.

Tests coverage:
- First trainee books, second trainee is rejected ("Slot not available")
- Daily cap in the London day bucket ("Daily booking limit reached (2).")
- Failed bookings leave slots and bookings untouched
- Concurrent bookings of one slot: exactly one winner
- Concurrent bookings by one trainee on one day: never above the cap
"""

import asyncio
from datetime import UTC, datetime
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import func, select

from database.connection import get_async_session
from database.models import Booking, BookingStatus, Slot, SlotStatus
from training.errors import (
    DailyCapExceeded,
    InvalidArgument,
    SlotNotFound,
    SlotUnavailable,
    Unauthenticated,
)
from training.transactions import BookingTransaction

pytestmark = pytest.mark.integration

LONDON_TZ = ZoneInfo("Europe/London")

SUPERVISOR = "consultant@uclh.nhs.uk"
TRAINEE_A = "fellow.a@uclh.nhs.uk"
TRAINEE_B = "fellow.b@uclh.nhs.uk"


async def load_slot(path: str) -> Slot:
    supervisor_id, slot_id = path.split("/")[1], path.split("/")[3]
    async with get_async_session() as session:
        return await session.get(Slot, (supervisor_id, slot_id))


async def load_bookings() -> list[Booking]:
    async with get_async_session() as session:
        result = await session.execute(select(Booking).order_by(Booking.created_at))
        return list(result.scalars().all())


async def snapshot() -> tuple[list[tuple], list[tuple]]:
    async with get_async_session() as session:
        slots = (await session.execute(
            select(Slot.supervisor_id, Slot.id, Slot.status, Slot.trainee_id, Slot.booking_id)
            .order_by(Slot.id)
        )).all()
        bookings = (await session.execute(
            select(Booking.id, Booking.trainee_id, Booking.status).order_by(Booking.id)
        )).all()
    return [tuple(r) for r in slots], [tuple(r) for r in bookings]


class TestSingleBooking:
    """Test the basic booking scenario."""

    @pytest.mark.asyncio
    async def test_trainee_books_available_slot(self, make_slot):
        path = await make_slot("s1", datetime(2025, 9, 5, 9, 0, tzinfo=UTC))

        result = await BookingTransaction.execute(path, TRAINEE_A)

        slot = await load_slot(path)
        assert slot.status == SlotStatus.BOOKED
        assert slot.trainee_id == TRAINEE_A
        assert slot.booking_id == result.booking_id

        bookings = await load_bookings()
        assert len(bookings) == 1
        assert bookings[0].id == result.booking_id
        assert bookings[0].trainee_id == TRAINEE_A
        assert bookings[0].status == BookingStatus.BOOKED
        assert bookings[0].slot_date_key == "2025-09-05"
        assert bookings[0].slot_path == path

    @pytest.mark.asyncio
    async def test_second_trainee_rejected(self, make_slot):
        path = await make_slot("s1")
        await BookingTransaction.execute(path, TRAINEE_A)

        with pytest.raises(SlotUnavailable) as exc_info:
            await BookingTransaction.execute(path, TRAINEE_B)

        assert exc_info.value.message == "Slot not available"
        slot = await load_slot(path)
        assert slot.trainee_id == TRAINEE_A
        assert len(await load_bookings()) == 1

    @pytest.mark.asyncio
    async def test_scheduling_metadata_preserved(self, make_slot):
        start = datetime(2025, 9, 5, 14, 0, tzinfo=UTC)
        path = await make_slot("s1", start)

        await BookingTransaction.execute(path, TRAINEE_A)

        slot = await load_slot(path)
        assert slot.start.replace(tzinfo=UTC) == start
        assert slot.location == "Echo lab 2"
        assert slot.supervisor_id == SUPERVISOR

    @pytest.mark.asyncio
    async def test_blocked_slot_rejected(self, make_slot):
        path = await make_slot("s1", status=SlotStatus.BLOCKED)

        with pytest.raises(SlotUnavailable):
            await BookingTransaction.execute(path, TRAINEE_A)

        assert await load_bookings() == []

    @pytest.mark.asyncio
    async def test_missing_slot(self, database):
        with pytest.raises(SlotNotFound) as exc_info:
            await BookingTransaction.execute(f"schedules/{SUPERVISOR}/slots/nope", TRAINEE_A)

        assert exc_info.value.message == "Slot not found"

    @pytest.mark.asyncio
    async def test_unauthenticated(self, make_slot):
        path = await make_slot("s1")

        with pytest.raises(Unauthenticated):
            await BookingTransaction.execute(path, None)

        assert (await load_slot(path)).status == SlotStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_malformed_path(self, database):
        with pytest.raises(InvalidArgument):
            await BookingTransaction.execute("schedules/only-two-parts", TRAINEE_A)


class TestDailyCap:
    """Test the per-trainee daily cap."""

    @pytest.mark.asyncio
    async def test_third_booking_same_day_rejected(self, make_slot):
        s1 = await make_slot("s1", datetime(2025, 9, 5, 8, 0, tzinfo=UTC))
        s2 = await make_slot("s2", datetime(2025, 9, 5, 10, 0, tzinfo=UTC))
        s3 = await make_slot("s3", datetime(2025, 9, 5, 13, 0, tzinfo=UTC))

        await BookingTransaction.execute(s1, TRAINEE_A)
        await BookingTransaction.execute(s2, TRAINEE_A)
        before = await snapshot()

        with pytest.raises(DailyCapExceeded) as exc_info:
            await BookingTransaction.execute(s3, TRAINEE_A)

        assert exc_info.value.message == "Daily booking limit reached (2)."
        # Nothing written by the failed attempt
        assert await snapshot() == before
        assert (await load_slot(s3)).status == SlotStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_cap_is_per_trainee(self, make_slot):
        s1 = await make_slot("s1")
        s2 = await make_slot("s2")
        s3 = await make_slot("s3")

        await BookingTransaction.execute(s1, TRAINEE_A)
        await BookingTransaction.execute(s2, TRAINEE_A)
        await BookingTransaction.execute(s3, TRAINEE_B)

        assert len(await load_bookings()) == 3

    @pytest.mark.asyncio
    async def test_other_days_do_not_count(self, make_slot):
        await BookingTransaction.execute(
            await make_slot("mon", datetime(2025, 9, 8, 9, 0, tzinfo=UTC)), TRAINEE_A
        )
        await BookingTransaction.execute(
            await make_slot("tue", datetime(2025, 9, 9, 9, 0, tzinfo=UTC)), TRAINEE_A
        )
        await BookingTransaction.execute(
            await make_slot("wed", datetime(2025, 9, 10, 9, 0, tzinfo=UTC)), TRAINEE_A
        )

        assert {b.slot_date_key for b in await load_bookings()} == {
            "2025-09-08",
            "2025-09-09",
            "2025-09-10",
        }

    @pytest.mark.asyncio
    async def test_local_midnight_splits_buckets(self, make_slot):
        """23:59 and 00:05 London time fall in different day buckets."""
        late = await make_slot("late", datetime(2025, 9, 5, 23, 59, tzinfo=LONDON_TZ))
        early = await make_slot("early", datetime(2025, 9, 6, 0, 5, tzinfo=LONDON_TZ))
        other = await make_slot("other", datetime(2025, 9, 5, 9, 0, tzinfo=LONDON_TZ))

        first = await BookingTransaction.execute(late, TRAINEE_A)
        second = await BookingTransaction.execute(early, TRAINEE_A)
        third = await BookingTransaction.execute(other, TRAINEE_A)

        assert first.day_key == "2025-09-05"
        assert second.day_key == "2025-09-06"
        assert third.day_key == "2025-09-05"

    @pytest.mark.asyncio
    async def test_slot_cap_overrides_default(self, make_slot):
        paths = [await make_slot(f"s{i}", daily_cap=3) for i in range(4)]

        for path in paths[:3]:
            await BookingTransaction.execute(path, TRAINEE_A)

        with pytest.raises(DailyCapExceeded) as exc_info:
            await BookingTransaction.execute(paths[3], TRAINEE_A)

        assert exc_info.value.message == "Daily booking limit reached (3)."

    @pytest.mark.asyncio
    async def test_cancelled_bookings_do_not_count(self, make_slot):
        s1 = await make_slot("s1")
        s2 = await make_slot("s2")
        s3 = await make_slot("s3")
        first = await BookingTransaction.execute(s1, TRAINEE_A)
        await BookingTransaction.execute(s2, TRAINEE_A)

        async with get_async_session() as session:
            async with session.begin():
                booking = await session.get(Booking, first.booking_id)
                booking.status = BookingStatus.CANCELLED

        await BookingTransaction.execute(s3, TRAINEE_A)

        async with get_async_session() as session:
            live = await session.scalar(
                select(func.count()).select_from(Booking).where(Booking.status == BookingStatus.BOOKED)
            )
        assert live == 2


class TestConcurrentBooking:
    """Test behaviour under concurrent transactions."""

    @pytest.mark.asyncio
    async def test_same_slot_has_exactly_one_winner(self, make_slot):
        path = await make_slot("contested")
        trainees = [f"fellow.{i}@uclh.nhs.uk" for i in range(8)]

        results = await asyncio.gather(
            *(BookingTransaction.execute(path, t) for t in trainees),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert all(isinstance(e, SlotUnavailable) for e in losers)

        slot = await load_slot(path)
        bookings = await load_bookings()
        assert len(bookings) == 1
        assert slot.booking_id == bookings[0].id == winners[0].booking_id
        assert slot.trainee_id == bookings[0].trainee_id

    @pytest.mark.asyncio
    async def test_same_trainee_same_day_never_exceeds_cap(self, make_slot):
        paths = [
            await make_slot(f"s{i}", datetime(2025, 9, 5, 8 + i, 0, tzinfo=UTC))
            for i in range(5)
        ]

        results = await asyncio.gather(
            *(BookingTransaction.execute(p, TRAINEE_A) for p in paths),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 2
        assert len(losers) == 3
        assert all(isinstance(e, DailyCapExceeded) for e in losers)

        bookings = await load_bookings()
        assert len(bookings) == 2
        assert {b.slot_date_key for b in bookings} == {"2025-09-05"}
