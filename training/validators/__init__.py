"""
Transaction Validators.

Validators for business rules and constraints that must be checked before
or inside the atomic transactions (BookingTransaction, SigningTransaction).

Validators:
- validate_caller: Requires an authenticated principal
- validate_role: Parses mentor/supervisor
- validate_slot_available: Slot must be exactly available
- validate_daily_cap: Per-trainee per-day booking cap
- validate_entry_unlocked: Locked entries accept no writes
"""

from training.validators.transaction_validators import (
    validate_caller,
    validate_daily_cap,
    validate_entry_unlocked,
    validate_role,
    validate_slot_available,
)

__all__ = [
    "validate_caller",
    "validate_daily_cap",
    "validate_entry_unlocked",
    "validate_role",
    "validate_slot_available",
]
