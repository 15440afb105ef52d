"""
Logbook entry service - Owner maintenance of training scan records.

Handles the plain CRUD around the signing workflow:
- create_entry: trainee records a new scan (owner = caller)
- update_entry: owner edits signable-core fields while the entry is unlocked
- delete_entry: owner removes an unlocked entry
- get_entry / get_verification: read an entry and check its signature digests
- list_entries: the caller's own logbook, newest first

Architecture:
- Every write runs through run_in_transaction with a row-locked read, so an
  edit cannot interleave with a concurrent supervisor signature: one of
  them commits first and the other sees the committed state.
- Locked entries reject every write (EntryLocked).
- Signature records and the lock flag are never writable here; only
  SigningTransaction sets them.
"""

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from database.access import (
    as_utc,
    get_entry,
    get_entry_for_update,
    list_entries_for_owner,
    parse_entry_id,
)
from database.connection import get_async_session, run_in_transaction
from database.models import LogbookEntry, SignerRole
from training.errors import EntryNotFound, Forbidden, InvalidArgument
from training.signing.digest import SIGNABLE_CORE_FIELDS, verify_signature
from training.validators.transaction_validators import validate_caller, validate_entry_unlocked

logger = logging.getLogger(__name__)

# owner_id is fixed at creation
EDITABLE_FIELDS = frozenset(SIGNABLE_CORE_FIELDS) - {"owner_id"}


def clean_entry_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """
    Restrict a payload to editable signable-core fields.

    Raises:
        InvalidArgument: If the payload names signatures, the lock flag,
                         the owner or any unknown field
    """
    rejected = sorted(set(fields) - EDITABLE_FIELDS)
    if rejected:
        raise InvalidArgument(
            f"Fields not editable: {', '.join(rejected)}",
            {"fields": rejected},
        )
    values = dict(fields)
    if isinstance(values.get("date"), datetime):
        values["date"] = as_utc(values["date"])
    return values


def _require_entry_id(entry_id: str | UUID) -> UUID:
    entry_uuid = parse_entry_id(entry_id)
    if entry_uuid is None:
        raise EntryNotFound(details={"entry_id": str(entry_id)})
    return entry_uuid


def _require_owner(entry: LogbookEntry, caller: str) -> None:
    if entry.owner_id != caller:
        logger.warning(
            f"Entry {entry.id} write by non-owner {caller}",
            extra={"entry_id": str(entry.id)},
        )
        raise Forbidden("Only the entry owner can change it")


async def create_entry(caller_email: str | None, fields: dict[str, Any]) -> UUID:
    """
    Create a logbook entry owned by the caller.

    Args:
        caller_email: Authenticated trainee email
        fields: Signable-core fields (date, indication, views, ...)

    Returns:
        New entry id
    """
    owner = validate_caller(caller_email)
    values = clean_entry_fields(fields)

    async def insert(session: AsyncSession) -> UUID:
        now = datetime.now(UTC)
        entry = LogbookEntry(owner_id=owner, created_at=now, updated_at=now, **values)
        session.add(entry)
        await session.flush()
        return entry.id

    entry_id = await run_in_transaction(insert, trace_id=owner)
    logger.info(f"Logbook entry {entry_id} created", extra={"entry_id": str(entry_id)})
    return entry_id


async def update_entry(
    entry_id: str | UUID,
    caller_email: str | None,
    changes: dict[str, Any],
) -> None:
    """
    Apply owner edits to an unlocked entry.

    Raises:
        EntryNotFound, Forbidden (not owner), EntryLocked, InvalidArgument
    """
    caller = validate_caller(caller_email)
    entry_uuid = _require_entry_id(entry_id)
    values = clean_entry_fields(changes)

    async def apply(session: AsyncSession) -> None:
        entry = await get_entry_for_update(session, entry_uuid)
        if entry is None:
            raise EntryNotFound(details={"entry_id": str(entry_uuid)})
        _require_owner(entry, caller)
        validate_entry_unlocked(entry)

        for field, value in values.items():
            setattr(entry, field, value)
        entry.updated_at = datetime.now(UTC)

    await run_in_transaction(apply, trace_id=f"{caller}_{entry_uuid}")
    logger.info(
        f"Logbook entry {entry_uuid} updated ({', '.join(sorted(values)) or 'no fields'})",
        extra={"entry_id": str(entry_uuid)},
    )


async def delete_entry(entry_id: str | UUID, caller_email: str | None) -> None:
    """
    Delete an unlocked entry owned by the caller.

    Raises:
        EntryNotFound, Forbidden (not owner), EntryLocked
    """
    caller = validate_caller(caller_email)
    entry_uuid = _require_entry_id(entry_id)

    async def remove(session: AsyncSession) -> None:
        entry = await get_entry_for_update(session, entry_uuid)
        if entry is None:
            raise EntryNotFound(details={"entry_id": str(entry_uuid)})
        _require_owner(entry, caller)
        validate_entry_unlocked(entry)
        await session.delete(entry)

    await run_in_transaction(remove, trace_id=f"{caller}_{entry_uuid}")
    logger.info(f"Logbook entry {entry_uuid} deleted", extra={"entry_id": str(entry_uuid)})


async def get_entry_for_caller(entry_id: str | UUID, caller_email: str | None) -> LogbookEntry:
    """Load an entry for any authenticated caller (reviewers read before signing)."""
    validate_caller(caller_email)
    entry_uuid = _require_entry_id(entry_id)

    async with get_async_session() as session:
        entry = await get_entry(session, entry_uuid)

    if entry is None:
        raise EntryNotFound(details={"entry_id": str(entry_uuid)})
    return entry


async def list_entries(caller_email: str | None) -> list[LogbookEntry]:
    """Entries owned by the caller, newest first."""
    owner = validate_caller(caller_email)

    async with get_async_session() as session:
        return await list_entries_for_owner(session, owner)


async def get_verification(entry_id: str | UUID, caller_email: str | None) -> dict[str, bool | None]:
    """
    Recompute both signature digests against the current content.

    Returns:
        {"mentor": bool | None, "supervisor": bool | None}
        None means the role has not signed; False means the content changed
        after that signature.
    """
    entry = await get_entry_for_caller(entry_id, caller_email)
    report = {role.value: verify_signature(entry, role) for role in SignerRole}

    if False in report.values():
        logger.warning(
            f"Signature digest mismatch on entry {entry.id}: {report}",
            extra={"entry_id": str(entry.id)},
        )
    return report
