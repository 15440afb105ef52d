"""
Booking and schedule API endpoints.

Provides REST endpoints for:
- POST /api/booking/book-slot - Trainee reserves a supervision slot
- GET /api/schedules/slots - List a supervisor's slots (defaults to the caller)
- POST /api/schedules/slots - Supervisor publishes a slot
- POST /api/schedules/slots/{slot_id}/status - Supervisor blocks/re-opens a slot

The caller identity always comes from the bearer token, never from the body.
Domain failures propagate as TrainingError and are rendered by the
exception handler registered in api.main.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Query, status

from api.middleware.identity import CallerEmail
from api.models.training import (
    BookSlotRequest,
    OkResponse,
    PublishSlotRequest,
    PublishSlotResponse,
    SlotOut,
    SlotStatusRequest,
)
from database.access import SlotKey
from training.services.slot_service import list_slots, publish_slot, set_slot_status
from training.transactions.booking_transaction import BookingTransaction
from training.validators.transaction_validators import validate_caller

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["booking"])


@router.post("/booking/book-slot", response_model=OkResponse)
async def book_slot(payload: BookSlotRequest, caller_email: CallerEmail) -> OkResponse:
    """
    Reserve a slot for the calling trainee.

    **Errors:**
    - **401**: Unauthenticated
    - **400**: Invalid slot path
    - **404**: Slot not found
    - **409**: Slot not available / Daily booking limit reached (<cap>).
    """
    await BookingTransaction.execute(payload.slot_path, caller_email)
    return OkResponse()


@router.get("/schedules/slots", response_model=list[SlotOut])
async def read_slots(
    caller_email: CallerEmail,
    supervisor: Annotated[str | None, Query()] = None,
) -> list[SlotOut]:
    """List a supervisor's slots; defaults to the caller's own schedule."""
    slots = await list_slots(caller_email, supervisor_id=supervisor)
    return [SlotOut.model_validate(slot) for slot in slots]


@router.post(
    "/schedules/slots",
    response_model=PublishSlotResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_slot(payload: PublishSlotRequest, caller_email: CallerEmail) -> PublishSlotResponse:
    """Publish an available slot in the caller's own schedule."""
    key = await publish_slot(
        caller_email,
        start=payload.start,
        end=payload.end,
        location=payload.location,
        daily_cap=payload.daily_cap_for_trainee,
        slot_id=payload.slot_id,
    )
    return PublishSlotResponse(slot_path=key.path)


@router.post("/schedules/slots/{slot_id}/status", response_model=OkResponse)
async def update_slot_status(
    slot_id: str,
    payload: SlotStatusRequest,
    caller_email: CallerEmail,
) -> OkResponse:
    """Block or re-open one of the caller's slots (booked slots are rejected)."""
    supervisor = validate_caller(caller_email)
    await set_slot_status(SlotKey(supervisor, slot_id).path, supervisor, payload.status)
    return OkResponse()
