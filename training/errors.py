"""
Typed failures raised by the booking, signing and logbook operations.

Every error carries a stable error_code, the human-readable message shown
to the user and a details dict. Raising one inside run_in_transaction()
rolls the transaction back with no partial writes.

Categories:
- Validation: Unauthenticated, InvalidArgument, InvalidRole, Forbidden
- State conflict: SlotUnavailable, DailyCapExceeded, EntryLocked, TransactionAborted
- Not found: SlotNotFound, EntryNotFound
"""

from typing import Any


class TrainingError(Exception):
    """Base class for all domain failures."""

    error_code = "TRAINING_ERROR"
    default_message = "Request failed"

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_code": self.error_code,
            "error_message": self.message,
            "details": self.details,
        }


# Validation errors


class ValidationFailure(TrainingError):
    pass


class Unauthenticated(ValidationFailure):
    error_code = "UNAUTHENTICATED"
    default_message = "Unauthenticated"


class InvalidArgument(ValidationFailure):
    error_code = "INVALID_ARGUMENT"
    default_message = "Invalid argument"


class InvalidRole(ValidationFailure):
    error_code = "INVALID_ROLE"
    default_message = "Invalid role"


class Forbidden(ValidationFailure):
    error_code = "FORBIDDEN"
    default_message = "Not allowed"


# Not-found errors


class NotFound(TrainingError):
    pass


class SlotNotFound(NotFound):
    error_code = "SLOT_NOT_FOUND"
    default_message = "Slot not found"


class EntryNotFound(NotFound):
    error_code = "ENTRY_NOT_FOUND"
    default_message = "Entry not found"


# State-conflict errors


class StateConflict(TrainingError):
    pass


class SlotUnavailable(StateConflict):
    error_code = "SLOT_UNAVAILABLE"
    default_message = "Slot not available"


class DailyCapExceeded(StateConflict):
    error_code = "DAILY_CAP_EXCEEDED"

    def __init__(self, cap: int):
        self.cap = cap
        super().__init__(f"Daily booking limit reached ({cap}).", {"cap": cap})


class EntryLocked(StateConflict):
    error_code = "ENTRY_LOCKED"
    default_message = "Entry is locked"


class TransactionAborted(StateConflict):
    error_code = "TRANSACTION_ABORTED"
    default_message = "Request conflicted with a concurrent update, please retry"
