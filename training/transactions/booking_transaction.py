"""
Booking Transaction Handler.

This module implements the slot reservation transaction:
- Slot existence and availability check (row-locked read)
- Per-trainee daily cap check (count query inside the same transaction)
- Slot transition to BOOKED and Booking creation as a single commit

Two concurrent calls against the same slot cannot both succeed: the slot
row is locked and the transaction runs at SERIALIZABLE isolation, so the
loser either waits for or conflicts with the winner, re-runs, observes
BOOKED and fails with SlotUnavailable. The same isolation covers the
daily-cap count, so concurrent bookings by one trainee on one day cannot
both slip under the cap.

BookingTransaction.execute() is the single entry point for reserving slots.
It's called by the POST /api/booking/book-slot route.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID, uuid4
from zoneinfo import ZoneInfo

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from database.access import (
    day_key_for,
    get_slot_for_update,
    parse_slot_path,
    resolve_daily_cap,
)
from database.connection import TransactionConflictError, run_in_transaction
from database.models import Booking, BookingStatus, SlotStatus
from shared.config import get_settings
from training.errors import InvalidArgument, SlotNotFound, SlotUnavailable, TransactionAborted
from training.validators.transaction_validators import (
    validate_caller,
    validate_daily_cap,
    validate_slot_available,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingResult:
    booking_id: UUID
    slot_path: str
    day_key: str
    cap: int


class BookingTransaction:
    """
    Atomic transaction handler for booking a supervision slot.

    Flow (one transaction):
    1. Load the slot with a row lock (SlotNotFound if missing)
    2. Require status AVAILABLE (SlotUnavailable otherwise)
    3. Resolve the slot's per-trainee daily cap (default 2)
    4. Derive the day key from the slot start in the governing timezone
    5. Count the trainee's live bookings for that day (DailyCapExceeded if >= cap)
    6. Mark the slot BOOKED and insert the Booking

    Any failure rolls back both writes.
    """

    @staticmethod
    async def execute(slot_path: str, caller_email: str | None) -> BookingResult:
        """
        Execute atomic booking transaction.

        Args:
            slot_path: "schedules/{supervisorEmail}/slots/{slotId}"
            caller_email: Authenticated trainee email (from the identity layer)

        Returns:
            BookingResult with the new booking id and its day bucket

        Raises:
            Unauthenticated: caller_email missing
            InvalidArgument: slot_path malformed
            SlotNotFound: slot does not exist
            SlotUnavailable: slot booked/blocked (including lost races)
            DailyCapExceeded: trainee already holds `cap` bookings that day
            TransactionAborted: store kept reporting conflicts

        Example:
            >>> result = await BookingTransaction.execute(
            ...     "schedules/consultant@uclh.nhs.uk/slots/2025-09-05-0900",
            ...     "fellow@uclh.nhs.uk",
            ... )
            >>> result.day_key
            '2025-09-05'
        """
        trainee_id = validate_caller(caller_email)

        key = parse_slot_path(slot_path)
        if key is None:
            raise InvalidArgument("Invalid slot path", {"slot_path": slot_path})

        settings = get_settings()
        tz = ZoneInfo(settings.TIMEZONE)
        trace_id = f"{trainee_id}_{key.slot_id}"

        logger.info(
            f"[{trace_id}] Starting booking transaction",
            extra={"trainee_id": trainee_id, "slot_path": key.path},
        )

        async def reserve(session: AsyncSession) -> BookingResult:
            slot = await get_slot_for_update(session, key)
            if slot is None:
                raise SlotNotFound(details={"slot_path": key.path})

            validate_slot_available(slot)

            cap = resolve_daily_cap(slot.daily_cap_for_trainee, settings.DEFAULT_DAILY_CAP)
            day_key = day_key_for(slot.start, tz)

            await validate_daily_cap(session, trainee_id, day_key, cap)

            now = datetime.now(UTC)
            booking_id = uuid4()

            # Only booking-state fields; scheduling metadata belongs to the supervisor
            slot.status = SlotStatus.BOOKED
            slot.trainee_id = trainee_id
            slot.booking_id = booking_id
            slot.updated_at = now

            session.add(
                Booking(
                    id=booking_id,
                    supervisor_id=slot.supervisor_id,
                    slot_id=slot.id,
                    trainee_id=trainee_id,
                    status=BookingStatus.BOOKED,
                    slot_date_key=day_key,
                    created_at=now,
                    updated_at=now,
                )
            )
            await session.flush()

            return BookingResult(
                booking_id=booking_id,
                slot_path=key.path,
                day_key=day_key,
                cap=cap,
            )

        try:
            result = await run_in_transaction(reserve, trace_id=trace_id)

        except IntegrityError as e:
            # Partial unique index: another live booking already holds this slot
            logger.warning(
                f"[{trace_id}] Booking rejected by unique constraint",
                extra={"slot_path": key.path, "error": str(e.orig)},
            )
            raise SlotUnavailable(details={"slot_path": key.path}) from e

        except TransactionConflictError as e:
            logger.error(
                f"[{trace_id}] Booking aborted after repeated conflicts",
                extra={"slot_path": key.path},
            )
            raise TransactionAborted(details={"attempts": e.attempts}) from e

        except SQLAlchemyError:
            logger.error(
                f"[{trace_id}] Database error during booking",
                extra={"slot_path": key.path},
                exc_info=True,
            )
            raise

        logger.info(
            f"Booked {result.slot_path} for {trainee_id}",
            extra={
                "trainee_id": trainee_id,
                "slot_path": result.slot_path,
                "booking_id": str(result.booking_id),
            },
        )
        return result
