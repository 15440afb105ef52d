"""
Atomic Transaction Handlers.

Transaction handlers encapsulate multi-step operations that must execute
atomically (all succeed or all rollback) against the database.

Key design principles:
1. SERIALIZABLE isolation (BEGIN IMMEDIATE on SQLite)
2. SELECT FOR UPDATE row locks on the documents being conditionally written
3. Complete rollback on any failure, surfaced as a typed TrainingError
4. Logging with a trace_id prefix for debugging

Transaction handlers:
- BookingTransaction: Reserve a slot under the per-trainee daily cap
- SigningTransaction: Countersign a logbook entry, locking it on supervisor signature
"""

from training.transactions.booking_transaction import BookingResult, BookingTransaction
from training.transactions.signing_transaction import SignResult, SigningTransaction

__all__ = ["BookingResult", "BookingTransaction", "SignResult", "SigningTransaction"]
