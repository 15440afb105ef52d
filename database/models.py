"""
SQLAlchemy ORM models for the training records database.

This module defines the core tables:
- slots: supervision time windows published by supervisors
- bookings: a trainee's reservation of one slot
- logbook_entries: documented training scans with mentor/supervisor signatures

All models use:
- TIMESTAMP WITH TIME ZONE for datetime fields
- JSONB (JSON on non-PostgreSQL backends) for document-shaped fields
- Proper indexes and constraints
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    TIMESTAMP,
    Boolean,
    CheckConstraint,
    ForeignKeyConstraint,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
    text,
)
from sqlalchemy import (
    Enum as SQLEnum,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite dev/test databases)
JSONType = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")

SLOT_PATH_TEMPLATE = "schedules/{supervisor_id}/slots/{slot_id}"

# ============================================================================
# Base Class
# ============================================================================


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


# ============================================================================
# Enums
# ============================================================================


class SlotStatus(str, PyEnum):
    """Slot lifecycle status."""

    AVAILABLE = "available"
    BOOKED = "booked"
    BLOCKED = "blocked"

    @classmethod
    def _missing_(cls, value: object) -> "SlotStatus | None":
        # Calendar clients still send the legacy label
        if value == "unavailable":
            return cls.BLOCKED
        return None


class BookingStatus(str, PyEnum):
    """Booking lifecycle status."""

    BOOKED = "booked"
    CANCELLED = "cancelled"


class SignerRole(str, PyEnum):
    """Role under which a logbook entry is countersigned."""

    MENTOR = "mentor"
    SUPERVISOR = "supervisor"

    @property
    def signature_field(self) -> str:
        """Name of the LogbookEntry attribute holding this role's signature record."""
        return _SIGNATURE_FIELDS[self]

    @property
    def locks_entry(self) -> bool:
        return self is SignerRole.SUPERVISOR


_SIGNATURE_FIELDS = {
    SignerRole.MENTOR: "mentor_signature",
    SignerRole.SUPERVISOR: "supervisor_signature",
}


class EntryState(str, PyEnum):
    """Derived signing state of a logbook entry (never stored)."""

    DRAFT = "draft"
    MENTOR_SIGNED = "mentor_signed"
    LOCKED = "locked"


def _enum_column(enum_cls: type[PyEnum], name: str) -> SQLEnum:
    # Stored as VARCHAR + enum value ("booked"), portable across backends
    return SQLEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=16,
        values_callable=lambda x: [e.value for e in x],
    )


# ============================================================================
# Scheduling Models
# ============================================================================


class Slot(Base):
    """
    Slot model - A bookable supervision time window.

    Owned by the supervisor who published it. Identity is the pair
    (supervisor_id, id); clients address it through its slot path
    "schedules/{supervisorEmail}/slots/{slotId}".

    The booking engine only writes status, trainee_id, booking_id and
    updated_at. status is BOOKED iff trainee_id and booking_id are set.
    """

    __tablename__ = "slots"

    supervisor_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    id: Mapped[str] = mapped_column(String(128), primary_key=True)

    # Scheduling metadata (owned by the supervisor)
    start: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    end: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    location: Mapped[str | None] = mapped_column(String(100), nullable=True)
    daily_cap_for_trainee: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Booking state
    status: Mapped[SlotStatus] = mapped_column(
        _enum_column(SlotStatus, "slot_status"),
        default=SlotStatus.AVAILABLE,
        server_default=SlotStatus.AVAILABLE.value,
        nullable=False,
        index=True,
    )
    trainee_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    booking_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_slots_start", "start"),
        CheckConstraint(
            "status IN ('available', 'booked', 'blocked')",
            name="ck_slots_status",
        ),
        CheckConstraint(
            "(status = 'booked') = (trainee_id IS NOT NULL AND booking_id IS NOT NULL)",
            name="ck_slots_booked_binding",
        ),
    )

    @property
    def path(self) -> str:
        return SLOT_PATH_TEMPLATE.format(supervisor_id=self.supervisor_id, slot_id=self.id)

    def __repr__(self) -> str:
        return f"<Slot(path='{self.path}', status='{self.status.value}')>"


class Booking(Base):
    """
    Booking model - One trainee's reservation of one slot.

    Created in the same transaction that flips its slot to BOOKED.
    slot_date_key is the calendar day of the slot start in the governing
    timezone, fixed at creation.
    """

    __tablename__ = "bookings"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Slot reference (supervisor_id is denormalized from the slot)
    supervisor_id: Mapped[str] = mapped_column(String(255), nullable=False)
    slot_id: Mapped[str] = mapped_column(String(128), nullable=False)

    trainee_id: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        _enum_column(BookingStatus, "booking_status"),
        default=BookingStatus.BOOKED,
        server_default=BookingStatus.BOOKED.value,
        nullable=False,
    )
    slot_date_key: Mapped[str] = mapped_column(String(10), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('booked', 'cancelled')",
            name="ck_bookings_status",
        ),
        ForeignKeyConstraint(
            ["supervisor_id", "slot_id"],
            ["slots.supervisor_id", "slots.id"],
            ondelete="RESTRICT",
        ),
        # Daily-cap lookup
        Index("idx_bookings_trainee_status_day", "trainee_id", "status", "slot_date_key"),
        # At most one live booking per slot
        Index(
            "uq_bookings_active_slot",
            "supervisor_id",
            "slot_id",
            unique=True,
            postgresql_where=text("status = 'booked'"),
            sqlite_where=text("status = 'booked'"),
        ),
    )

    @property
    def slot_path(self) -> str:
        return SLOT_PATH_TEMPLATE.format(supervisor_id=self.supervisor_id, slot_id=self.slot_id)

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, trainee='{self.trainee_id}', day='{self.slot_date_key}')>"


# ============================================================================
# Logbook Models
# ============================================================================


class LogbookEntry(Base):
    """
    LogbookEntry model - One documented training scan.

    Signable core: owner_id, date, indication, views, findings, summary,
    directly_observed, image_quality, demographics, notes, diagnosis, comments.

    Signature records are stored as JSON documents:
        {"uid": str, "name": str, "at": ISO-8601, "sigUrl": str | None, "hash": hex}

    Once locked (supervisor signature attached) the row must never be written again.
    """

    __tablename__ = "logbook_entries"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Signable core
    date: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    indication: Mapped[str | None] = mapped_column(Text, nullable=True)
    views: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    findings: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    directly_observed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    image_quality: Mapped[str | None] = mapped_column(String(20), nullable=True)
    demographics: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    diagnosis: Mapped[str | None] = mapped_column(Text, nullable=True)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Signatures and lock
    mentor_signature: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    supervisor_signature: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    locked: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "NOT locked OR supervisor_signature IS NOT NULL",
            name="ck_logbook_entries_locked_signed",
        ),
    )

    @property
    def state(self) -> EntryState:
        if self.locked:
            return EntryState.LOCKED
        if self.mentor_signature:
            return EntryState.MENTOR_SIGNED
        return EntryState.DRAFT

    def signature_for(self, role: SignerRole) -> dict[str, Any] | None:
        return getattr(self, role.signature_field)

    def set_signature(self, role: SignerRole, record: dict[str, Any]) -> None:
        setattr(self, role.signature_field, record)

    def __repr__(self) -> str:
        return f"<LogbookEntry(id={self.id}, owner='{self.owner_id}', state='{self.state.value}')>"
