"""Pydantic models for booking, signing and logbook request/response payloads."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from database.models import EntryState, SlotStatus

View = Literal["PLAX", "PSAX", "AP4C", "SC4C", "IVC"]
ImageQuality = Literal["Good", "Acceptable", "Poor"]


class OkResponse(BaseModel):
    ok: bool = True


# =============================================================================
# Booking
# =============================================================================


class BookSlotRequest(BaseModel):
    """bookSlot payload: {"slotPath": "schedules/{supervisorEmail}/slots/{slotId}"}"""
    model_config = ConfigDict(populate_by_name=True)

    slot_path: str = Field(alias="slotPath")


class PublishSlotRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start: datetime
    end: datetime
    location: str | None = None
    daily_cap_for_trainee: int | None = Field(default=None, ge=0, alias="dailyCapForTrainee")
    slot_id: str | None = Field(default=None, alias="slotId", min_length=1, max_length=128)


class PublishSlotResponse(OkResponse):
    model_config = ConfigDict(populate_by_name=True)

    slot_path: str = Field(alias="slotPath")


class SlotStatusRequest(BaseModel):
    status: str  # "available" | "blocked" ("unavailable" accepted)


class SlotOut(BaseModel):
    """Calendar view of a slot. The booking trainee is not exposed."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    path: str = Field(alias="slotPath")
    id: str = Field(alias="slotId")
    supervisor_id: str = Field(alias="supervisorId")
    start: datetime
    end: datetime
    location: str | None = None
    daily_cap_for_trainee: int | None = Field(default=None, alias="dailyCapForTrainee")
    status: SlotStatus


# =============================================================================
# Logbook
# =============================================================================


class SignEntryRequest(BaseModel):
    """signEntry payload. role stays a plain string so bad values surface as INVALID_ROLE."""
    model_config = ConfigDict(populate_by_name=True)

    entry_id: str = Field(alias="entryId")
    role: str
    sig_url: str | None = Field(default=None, alias="sigUrl")
    signer_name: str | None = Field(default=None, alias="signerName")


class LogbookEntryFields(BaseModel):
    """Signable-core fields a trainee may set; signatures and the lock are never accepted."""
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    date: datetime | None = None
    indication: str | None = None
    views: list[View] | None = None
    findings: dict[str, Any] | None = None
    summary: str | None = None
    directly_observed: bool | None = Field(default=None, alias="directlyObserved")
    image_quality: ImageQuality | None = Field(default=None, alias="imageQuality")
    demographics: dict[str, Any] | None = None
    notes: str | None = None
    diagnosis: str | None = None
    comments: str | None = None


class CreateEntryResponse(OkResponse):
    model_config = ConfigDict(populate_by_name=True)

    entry_id: UUID = Field(alias="entryId")


class LogbookEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    owner_id: str = Field(alias="ownerUid")
    state: EntryState
    locked: bool
    date: datetime | None = None
    indication: str | None = None
    views: list[str] | None = None
    findings: dict[str, Any] | None = None
    summary: str | None = None
    directly_observed: bool | None = Field(default=None, alias="directlyObserved")
    image_quality: str | None = Field(default=None, alias="imageQuality")
    demographics: dict[str, Any] | None = None
    notes: str | None = None
    diagnosis: str | None = None
    comments: str | None = None
    mentor_signature: dict[str, Any] | None = Field(default=None, alias="mentorSignature")
    supervisor_signature: dict[str, Any] | None = Field(
        default=None, alias="supervisorSignature"
    )
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")


class VerificationResponse(BaseModel):
    mentor: bool | None
    supervisor: bool | None
