"""
Logbook API endpoints.

Provides REST endpoints for:
- POST /api/logbook/sign - Mentor/supervisor countersigns an entry
- GET /api/logbook/entries - Caller's own entries, newest first
- POST /api/logbook/entries - Trainee records a scan
- GET /api/logbook/entries/{entry_id} - Read an entry
- PATCH /api/logbook/entries/{entry_id} - Owner edits an unlocked entry
- DELETE /api/logbook/entries/{entry_id} - Owner deletes an unlocked entry
- GET /api/logbook/entries/{entry_id}/verification - Recheck signature digests
"""

import logging

from fastapi import APIRouter, status

from api.middleware.identity import CallerEmail
from api.models.training import (
    CreateEntryResponse,
    LogbookEntryFields,
    LogbookEntryOut,
    OkResponse,
    SignEntryRequest,
    VerificationResponse,
)
from training.services.logbook_service import (
    create_entry,
    delete_entry,
    get_entry_for_caller,
    get_verification,
    list_entries,
    update_entry,
)
from training.transactions.signing_transaction import SigningTransaction

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/logbook", tags=["logbook"])


@router.post("/sign", response_model=OkResponse)
async def sign_entry(payload: SignEntryRequest, caller_email: CallerEmail) -> OkResponse:
    """
    Attach the caller's signature to an entry; a supervisor signature locks it.

    **Errors:**
    - **401**: Unauthenticated
    - **400**: Invalid role
    - **404**: Entry not found
    - **409**: Entry is locked
    """
    await SigningTransaction.execute(
        entry_id=payload.entry_id,
        role=payload.role,
        caller_email=caller_email,
        sig_url=payload.sig_url,
        signer_name=payload.signer_name,
    )
    return OkResponse()


@router.get("/entries", response_model=list[LogbookEntryOut])
async def read_own_entries(caller_email: CallerEmail) -> list[LogbookEntryOut]:
    entries = await list_entries(caller_email)
    return [LogbookEntryOut.model_validate(entry) for entry in entries]


@router.post(
    "/entries",
    response_model=CreateEntryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_entry(payload: LogbookEntryFields, caller_email: CallerEmail) -> CreateEntryResponse:
    entry_id = await create_entry(caller_email, payload.model_dump(exclude_unset=True))
    return CreateEntryResponse(entry_id=entry_id)


@router.get("/entries/{entry_id}", response_model=LogbookEntryOut)
async def read_entry(entry_id: str, caller_email: CallerEmail) -> LogbookEntryOut:
    entry = await get_entry_for_caller(entry_id, caller_email)
    return LogbookEntryOut.model_validate(entry)


@router.patch("/entries/{entry_id}", response_model=OkResponse)
async def edit_entry(
    entry_id: str,
    payload: LogbookEntryFields,
    caller_email: CallerEmail,
) -> OkResponse:
    """Edit signable-core fields. Rejected with 409 once a supervisor has signed."""
    await update_entry(entry_id, caller_email, payload.model_dump(exclude_unset=True))
    return OkResponse()


@router.delete("/entries/{entry_id}", response_model=OkResponse)
async def remove_entry(entry_id: str, caller_email: CallerEmail) -> OkResponse:
    await delete_entry(entry_id, caller_email)
    return OkResponse()


@router.get("/entries/{entry_id}/verification", response_model=VerificationResponse)
async def verify_entry(entry_id: str, caller_email: CallerEmail) -> VerificationResponse:
    """Recompute signature digests; false means the content changed after signing."""
    report = await get_verification(entry_id, caller_email)
    return VerificationResponse(**report)
