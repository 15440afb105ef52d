"""Signature digests for logbook entries."""

from training.signing.digest import (
    SIGNABLE_CORE_FIELDS,
    compute_digest,
    extract_signable_core,
    verify_signature,
)

__all__ = [
    "SIGNABLE_CORE_FIELDS",
    "compute_digest",
    "extract_signable_core",
    "verify_signature",
]
