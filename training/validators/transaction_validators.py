"""
Transaction Validators for Booking and Signing Business Rules.

Validators that check preconditions before (or inside) the atomic
transactions. Each validator raises the matching TrainingError subclass
and returns the normalized value on success.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from database.access import count_booked_for_day
from database.models import LogbookEntry, SignerRole, Slot, SlotStatus
from training.errors import (
    DailyCapExceeded,
    EntryLocked,
    InvalidRole,
    SlotUnavailable,
    Unauthenticated,
)

logger = logging.getLogger(__name__)


def validate_caller(caller_email: str | None) -> str:
    """
    Require an authenticated principal.

    Args:
        caller_email: Email injected by the identity layer (may be None/blank)

    Returns:
        The stripped email

    Raises:
        Unauthenticated: If no identity was supplied
    """
    email = (caller_email or "").strip()
    if not email:
        raise Unauthenticated()
    return email


def validate_role(role: Any) -> SignerRole:
    """
    Parse the signing role.

    Only the exact strings "mentor" and "supervisor" (or SignerRole members) are accepted.

    Raises:
        InvalidRole: For anything else
    """
    if isinstance(role, SignerRole):
        return role
    try:
        return SignerRole(role)
    except (TypeError, ValueError):
        raise InvalidRole() from None


def validate_slot_available(slot: Slot) -> None:
    """
    Require the slot to be exactly AVAILABLE.

    A slot already BOOKED by a concurrent transaction, or BLOCKED by its
    supervisor, is rejected the same way.
    """
    if slot.status != SlotStatus.AVAILABLE:
        logger.warning(
            f"Slot not available: {slot.path} is {slot.status.value}",
            extra={"slot_path": slot.path},
        )
        raise SlotUnavailable(details={"status": slot.status.value})


async def validate_daily_cap(
    session: AsyncSession,
    trainee_id: str,
    day_key: str,
    cap: int,
) -> int:
    """
    Validate that the trainee has not reached the daily booking cap.

    Business rule: a trainee may hold at most `cap` live bookings whose
    slots start on the same calendar day. Must run inside the booking
    transaction so the count takes part in conflict detection.

    Args:
        session: SQLAlchemy async session (must be in active transaction)
        trainee_id: Trainee email
        day_key: YYYY-MM-DD bucket of the target slot
        cap: Resolved per-trainee daily cap

    Returns:
        Current number of bookings in the bucket (below cap)

    Raises:
        DailyCapExceeded: If current count >= cap

    Example:
        >>> await validate_daily_cap(session, "fellow@uclh.nhs.uk", "2025-09-05", 2)
        1
    """
    current_count = await count_booked_for_day(session, trainee_id, day_key)

    if current_count >= cap:
        logger.warning(
            f"Daily cap reached: {current_count} bookings on {day_key} (max: {cap})",
            extra={"trainee_id": trainee_id},
        )
        raise DailyCapExceeded(cap)

    return current_count


def validate_entry_unlocked(entry: LogbookEntry) -> None:
    """
    Reject any write to a locked entry.

    Raises:
        EntryLocked: If a supervisor has already countersigned the entry
    """
    if entry.locked:
        logger.warning(
            f"Write rejected: entry {entry.id} is locked",
            extra={"entry_id": str(entry.id)},
        )
        raise EntryLocked()
