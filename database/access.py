"""
Typed data access helpers shared by the booking and signing transactions.

All helpers take the caller's transactional session; none of them commit.
Row reads used for a later conditional write go through *_for_update so
PostgreSQL holds the row lock for the rest of the transaction.
"""

import re
from dataclasses import dataclass
from datetime import UTC, datetime, tzinfo
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import SLOT_PATH_TEMPLATE, Booking, BookingStatus, LogbookEntry, Slot

_SLOT_PATH_RE = re.compile(r"^schedules/(?P<supervisor_id>[^/]+)/slots/(?P<slot_id>[^/]+)$")


@dataclass(frozen=True)
class SlotKey:
    """Resolved identity of a slot: owning supervisor + slot id."""

    supervisor_id: str
    slot_id: str

    @property
    def path(self) -> str:
        return SLOT_PATH_TEMPLATE.format(supervisor_id=self.supervisor_id, slot_id=self.slot_id)


def parse_slot_path(path: str | None) -> SlotKey | None:
    """
    Resolve "schedules/{supervisorEmail}/slots/{slotId}" into a SlotKey.

    Returns None for anything that is not exactly that shape.

    Example:
        >>> parse_slot_path("schedules/sup@uclh.nhs.uk/slots/abc123")
        SlotKey(supervisor_id='sup@uclh.nhs.uk', slot_id='abc123')
    """
    if not path:
        return None
    match = _SLOT_PATH_RE.match(path.strip())
    if not match:
        return None
    return SlotKey(match["supervisor_id"], match["slot_id"])


def as_utc(value: datetime) -> datetime:
    """Normalize to UTC; naive timestamps (SQLite returns them naive) are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def day_key_for(start: datetime, tz: tzinfo) -> str:
    """
    Calendar day (YYYY-MM-DD) of a slot start in the governing timezone.

    Pure function of the timestamp, never of the current time.

    Example:
        >>> day_key_for(datetime(2025, 9, 4, 23, 30, tzinfo=UTC), ZoneInfo("Europe/London"))
        '2025-09-05'
    """
    return as_utc(start).astimezone(tz).strftime("%Y-%m-%d")


def resolve_daily_cap(raw: Any, default: int) -> int:
    """
    Per-trainee daily cap stored on a slot, or default when absent/non-numeric.

    Accepts ints and integral strings/floats; negative values fall back to default.
    """
    if raw is None or isinstance(raw, bool):
        return default
    try:
        number = float(raw)
    except (TypeError, ValueError):
        return default
    if number != number or number < 0 or not number.is_integer():
        return default
    return int(number)


def parse_entry_id(entry_id: str | UUID | None) -> UUID | None:
    """Entry ids are UUIDs; anything else cannot resolve to an entry."""
    if isinstance(entry_id, UUID):
        return entry_id
    if not entry_id:
        return None
    try:
        return UUID(str(entry_id))
    except ValueError:
        return None


async def get_slot_for_update(session: AsyncSession, key: SlotKey) -> Slot | None:
    stmt = (
        select(Slot)
        .where(Slot.supervisor_id == key.supervisor_id, Slot.id == key.slot_id)
        .with_for_update()
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def count_booked_for_day(session: AsyncSession, trainee_id: str, day_key: str) -> int:
    """Number of live bookings a trainee holds in one day bucket."""
    stmt = select(func.count()).select_from(Booking).where(
        Booking.trainee_id == trainee_id,
        Booking.status == BookingStatus.BOOKED,
        Booking.slot_date_key == day_key,
    )
    result = await session.execute(stmt)
    return int(result.scalar_one())


async def get_entry_for_update(session: AsyncSession, entry_id: UUID) -> LogbookEntry | None:
    stmt = select(LogbookEntry).where(LogbookEntry.id == entry_id).with_for_update()
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_entry(session: AsyncSession, entry_id: UUID) -> LogbookEntry | None:
    result = await session.execute(select(LogbookEntry).where(LogbookEntry.id == entry_id))
    return result.scalar_one_or_none()


async def list_entries_for_owner(session: AsyncSession, owner_id: str) -> list[LogbookEntry]:
    """Owner's logbook, newest first."""
    stmt = (
        select(LogbookEntry)
        .where(LogbookEntry.owner_id == owner_id)
        .order_by(LogbookEntry.created_at.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_slots_for_supervisor(session: AsyncSession, supervisor_id: str) -> list[Slot]:
    stmt = select(Slot).where(Slot.supervisor_id == supervisor_id).order_by(Slot.start, Slot.id)
    result = await session.execute(stmt)
    return list(result.scalars().all())
