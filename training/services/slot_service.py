"""
Slot publishing service - Supervisors manage their own supervision calendar.

- publish_slot: add an AVAILABLE slot to the caller's schedule
- set_slot_status: toggle one of the caller's slots between AVAILABLE and BLOCKED
- list_slots: a supervisor's calendar, earliest first

Booked slots are owned by the booking engine: they can neither be blocked
nor re-opened here.
"""

import logging
from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from database.access import (
    SlotKey,
    as_utc,
    get_slot_for_update,
    list_slots_for_supervisor,
    parse_slot_path,
)
from database.connection import get_async_session, run_in_transaction
from database.models import Slot, SlotStatus
from training.errors import Forbidden, InvalidArgument, SlotNotFound, SlotUnavailable
from training.validators.transaction_validators import validate_caller

logger = logging.getLogger(__name__)

# Statuses a supervisor may set directly
SUPERVISOR_STATUSES = (SlotStatus.AVAILABLE, SlotStatus.BLOCKED)


async def publish_slot(
    caller_email: str | None,
    start: datetime,
    end: datetime,
    location: str | None = None,
    daily_cap: int | None = None,
    slot_id: str | None = None,
) -> SlotKey:
    """
    Publish an AVAILABLE slot in the caller's schedule.

    Args:
        caller_email: Authenticated supervisor email (becomes the slot owner)
        start, end: Slot window; naive values are read as UTC
        location: Optional site label
        daily_cap: Optional per-trainee daily cap for bookings of this slot
        slot_id: Optional client-chosen id (generated when omitted)

    Returns:
        SlotKey of the new slot (its .path is the booking locator)
    """
    supervisor = validate_caller(caller_email)
    start, end = as_utc(start), as_utc(end)

    if end <= start:
        raise InvalidArgument("Slot end must be after start")
    if daily_cap is not None and daily_cap < 0:
        raise InvalidArgument("Daily cap cannot be negative")

    key = SlotKey(supervisor, slot_id or uuid4().hex)
    if parse_slot_path(key.path) != key:
        raise InvalidArgument("Invalid slot id", {"slot_id": key.slot_id})

    async def insert(session: AsyncSession) -> None:
        now = datetime.now(UTC)
        session.add(
            Slot(
                supervisor_id=key.supervisor_id,
                id=key.slot_id,
                start=start,
                end=end,
                location=location,
                daily_cap_for_trainee=daily_cap,
                status=SlotStatus.AVAILABLE,
                created_at=now,
                updated_at=now,
            )
        )
        await session.flush()

    try:
        await run_in_transaction(insert, trace_id=key.path)
    except IntegrityError as e:
        raise InvalidArgument("Slot id already in use", {"slot_path": key.path}) from e

    logger.info(f"Slot {key.path} published", extra={"slot_path": key.path})
    return key


async def set_slot_status(slot_path: str, caller_email: str | None, status: str | SlotStatus) -> None:
    """
    Block or re-open one of the caller's slots.

    Raises:
        InvalidArgument: unknown status, or BOOKED requested
        SlotNotFound: slot does not exist
        Forbidden: caller does not own the slot
        SlotUnavailable: slot is currently booked
    """
    supervisor = validate_caller(caller_email)

    key = parse_slot_path(slot_path)
    if key is None:
        raise InvalidArgument("Invalid slot path", {"slot_path": slot_path})

    try:
        target = SlotStatus(status)
    except ValueError:
        raise InvalidArgument("Invalid slot status", {"status": str(status)}) from None
    if target not in SUPERVISOR_STATUSES:
        raise InvalidArgument("Invalid slot status", {"status": target.value})

    async def apply(session: AsyncSession) -> None:
        slot = await get_slot_for_update(session, key)
        if slot is None:
            raise SlotNotFound(details={"slot_path": key.path})
        if slot.supervisor_id != supervisor:
            raise Forbidden("Only the slot owner can change it")
        if slot.status == SlotStatus.BOOKED:
            raise SlotUnavailable(details={"status": slot.status.value})

        slot.status = target
        slot.updated_at = datetime.now(UTC)

    await run_in_transaction(apply, trace_id=key.path)
    logger.info(
        f"Slot {key.path} set to {target.value}",
        extra={"slot_path": key.path, "supervisor_id": supervisor},
    )


async def list_slots(caller_email: str | None, supervisor_id: str | None = None) -> list[Slot]:
    """
    Slots in a supervisor's schedule ordered by start.

    Defaults to the caller's own schedule; trainees pass the supervisor
    they want to book with.
    """
    caller = validate_caller(caller_email)
    owner = (supervisor_id or caller).strip().lower()
    if "/" in owner:
        raise InvalidArgument("Invalid supervisor", {"supervisor_id": supervisor_id})

    async with get_async_session() as session:
        return await list_slots_for_supervisor(session, owner)
