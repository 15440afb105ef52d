"""
Signing Transaction Handler.

Attaches a mentor or supervisor signature to a logbook entry:
- The signature record carries a SHA-256 digest of the entry's signable
  core bound to the signer and role (see training.signing.digest)
- A supervisor signature sets the terminal lock in the same write
- A locked entry rejects every further signing attempt

Mentor signatures do not freeze the core: the owner may still edit an
entry until a supervisor signs it, after which the mentor digest no longer
verifies. Only the supervisor digest is protected by the lock.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from database.access import get_entry_for_update, parse_entry_id
from database.connection import TransactionConflictError, run_in_transaction
from database.models import SignerRole
from training.errors import EntryNotFound, TransactionAborted
from training.signing.digest import compute_digest, extract_signable_core
from training.validators.transaction_validators import (
    validate_caller,
    validate_entry_unlocked,
    validate_role,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignResult:
    entry_id: UUID
    role: SignerRole
    digest: str
    locked: bool


class SigningTransaction:
    """
    Atomic transaction handler for countersigning a logbook entry.

    States (derived): draft -> mentor_signed -> locked. A supervisor may
    sign straight from draft. There is no path out of locked.
    """

    @staticmethod
    async def execute(
        entry_id: str | UUID,
        role: str | SignerRole,
        caller_email: str | None,
        sig_url: str | None = None,
        signer_name: str | None = None,
    ) -> SignResult:
        """
        Execute atomic signing transaction.

        Args:
            entry_id: LogbookEntry id
            role: "mentor" or "supervisor"
            caller_email: Authenticated signer email (from the identity layer)
            sig_url: Optional reference to the captured signature image/strokes
            signer_name: Optional display name

        Returns:
            SignResult with the stored digest and the resulting lock flag

        Raises:
            Unauthenticated: caller_email missing
            InvalidRole: role not mentor/supervisor
            EntryNotFound: entry does not exist
            EntryLocked: entry already countersigned by a supervisor
            TransactionAborted: store kept reporting conflicts
        """
        signer_email = validate_caller(caller_email)
        signer_role = validate_role(role)

        entry_uuid = parse_entry_id(entry_id)
        if entry_uuid is None:
            raise EntryNotFound(details={"entry_id": str(entry_id)})

        trace_id = f"{signer_email}_{entry_uuid}"
        logger.info(
            f"[{trace_id}] Starting signing transaction",
            extra={"entry_id": str(entry_uuid), "role": signer_role.value},
        )

        async def sign(session: AsyncSession) -> SignResult:
            entry = await get_entry_for_update(session, entry_uuid)
            if entry is None:
                raise EntryNotFound(details={"entry_id": str(entry_uuid)})

            validate_entry_unlocked(entry)

            digest = compute_digest(extract_signable_core(entry), signer_email, signer_role)
            now = datetime.now(UTC)

            entry.set_signature(
                signer_role,
                {
                    "uid": signer_email,
                    "name": signer_name or "",
                    "at": now.isoformat(),
                    "sigUrl": sig_url or None,
                    "hash": digest,
                },
            )
            if signer_role.locks_entry:
                entry.locked = True
            entry.updated_at = now

            await session.flush()

            return SignResult(
                entry_id=entry.id,
                role=signer_role,
                digest=digest,
                locked=entry.locked,
            )

        try:
            result = await run_in_transaction(sign, trace_id=trace_id)

        except TransactionConflictError as e:
            logger.error(f"[{trace_id}] Signing aborted after repeated conflicts")
            raise TransactionAborted(details={"attempts": e.attempts}) from e

        except SQLAlchemyError:
            logger.error(
                f"[{trace_id}] Database error during signing",
                extra={"entry_id": str(entry_uuid)},
                exc_info=True,
            )
            raise

        logger.info(
            f"Entry {result.entry_id} signed as {result.role.value} by {signer_email}",
            extra={
                "entry_id": str(result.entry_id),
                "role": result.role.value,
                "locked": result.locked,
            },
        )
        return result
