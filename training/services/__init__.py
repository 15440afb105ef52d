"""
Training services module.

Services:
- logbook_service: Owner maintenance of logbook entries and digest verification
- slot_service: Supervisor slot publishing, blocking and listing
"""

from training.services.logbook_service import (
    create_entry,
    delete_entry,
    get_entry_for_caller,
    get_verification,
    list_entries,
    update_entry,
)
from training.services.slot_service import list_slots, publish_slot, set_slot_status

__all__ = [
    # Logbook service
    "create_entry",
    "delete_entry",
    "get_entry_for_caller",
    "get_verification",
    "list_entries",
    "update_entry",
    # Slot service
    "list_slots",
    "publish_slot",
    "set_slot_status",
]
