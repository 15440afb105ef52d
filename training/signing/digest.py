"""
Integrity digests for logbook signatures.

A signature binds the signer and role to the exact clinical content of an
entry (the signable core) at signing time:

    sha256( canonical_json(core) + "|" + signer_email + "|" + role )

The digest never covers existing signatures or the lock flag. Anyone can
recompute it from the stored core and the recorded signer/role; a mismatch
means the core was changed after signing.
"""

import hashlib
import hmac
import json
from datetime import UTC, datetime, timedelta
from typing import Any

from database.access import as_utc
from database.models import LogbookEntry, SignerRole

# Entry attribute -> key in the logbook document shape (the form digests are computed over).
# Order is documentation only; canonical_json sorts keys
CORE_DOCUMENT_KEYS = {
    "owner_id": "ownerUid",
    "date": "date",
    "indication": "indication",
    "views": "views",
    "findings": "findings",
    "summary": "summary",
    "directly_observed": "directlyObserved",
    "image_quality": "imageQuality",
    "demographics": "demographics",
    "notes": "notes",
    "diagnosis": "diagnosis",
    "comments": "comments",
}

SIGNABLE_CORE_FIELDS = tuple(CORE_DOCUMENT_KEYS)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def to_epoch_millis(value: Any) -> Any:
    """Normalize a timestamp to integer epoch milliseconds; other values pass through."""
    if isinstance(value, datetime):
        return (as_utc(value) - _EPOCH) // timedelta(milliseconds=1)
    return value


def extract_signable_core(entry: LogbookEntry) -> dict[str, Any]:
    """
    Snapshot of the clinical content covered by a signature, keyed by
    document field names (ownerUid, directlyObserved, ...).
    """
    core = {key: getattr(entry, field) for field, key in CORE_DOCUMENT_KEYS.items()}
    core["date"] = to_epoch_millis(core["date"])
    return core


def canonical_json(core: dict[str, Any]) -> str:
    # Sorted keys at every level: JSONB does not preserve key order
    return json.dumps(core, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def compute_digest(core: dict[str, Any], signer_email: str, role: SignerRole) -> str:
    """
    SHA-256 hex digest of the signable core bound to a signer and role.

    Deterministic: the same core, signer and role always give the same
    64-character hex string.
    """
    payload = f"{canonical_json(core)}|{signer_email}|{role.value}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def verify_signature(entry: LogbookEntry, role: SignerRole) -> bool | None:
    """
    Recompute the digest for a stored signature against the current core.

    Returns:
        None if the role has not signed, True if the stored hash still
        matches the entry content, False if the content was altered.
    """
    record = entry.signature_for(role)
    if not record:
        return None

    expected = compute_digest(extract_signable_core(entry), record.get("uid", ""), role)
    return hmac.compare_digest(expected, str(record.get("hash", "")))
