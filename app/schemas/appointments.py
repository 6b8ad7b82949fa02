"""Appointment schemas shared by the scheduling services."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from app.core.clock import ensure_aware, utc_now
from app.core.exceptions import ConflictDetected, ValidationException

if TYPE_CHECKING:
    from app.config import Settings


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

    @property
    def suppresses_reminder(self) -> bool:
        """Cancelled, completed and no-show appointments never get reminders."""
        return self is not AppointmentStatus.SCHEDULED


def _aware(v: datetime | None) -> datetime | None:
    if v is None:
        return None
    try:
        return ensure_aware(v)
    except ValidationException as e:
        raise ValueError(str(e)) from e


class Appointment(BaseModel):
    """A booked slot for one doctor and one patient."""

    id: UUID = Field(default_factory=uuid4)
    doctor_id: UUID
    patient_id: UUID
    scheduled_at: datetime
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    reminder_job_id: str | None = None
    notes: str | None = Field(None, max_length=1000)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    model_config = {"from_attributes": True, "validate_assignment": True}

    @field_validator("scheduled_at", "created_at", "updated_at")
    @classmethod
    def validate_timezone(cls, v: datetime) -> datetime:
        """Store every timestamp as aware UTC."""
        return _aware(v)  # type: ignore[return-value]


class PatientContact(BaseModel):
    """Contact details used to reach a patient."""

    id: UUID
    name: str
    email: str | None = None
    phone: str | None = None
    push_tokens: list[str] = Field(default_factory=list)


class AppointmentDetails(BaseModel):
    """Appointment with the patient and doctor data needed for a reminder."""

    appointment: Appointment
    patient: PatientContact
    doctor_name: str | None = None


class AppointmentCreate(BaseModel):
    """Schema for booking a new appointment."""

    doctor_id: UUID
    patient_id: UUID
    scheduled_at: datetime
    notes: str | None = Field(None, max_length=1000)

    @field_validator("scheduled_at")
    @classmethod
    def validate_timezone(cls, v: datetime) -> datetime:
        """Require an aware timestamp."""
        return _aware(v)  # type: ignore[return-value]

    @field_validator("notes")
    @classmethod
    def blank_notes_to_none(cls, v: str | None) -> str | None:
        """Treat whitespace-only notes as absent."""
        if v is not None and not v.strip():
            return None
        return v


class AppointmentUpdate(BaseModel):
    """Schema for updating an existing appointment."""

    patient_id: UUID | None = None
    scheduled_at: datetime | None = None
    status: AppointmentStatus | None = None
    notes: str | None = Field(None, max_length=1000)

    @field_validator("scheduled_at")
    @classmethod
    def validate_timezone(cls, v: datetime | None) -> datetime | None:
        """Require an aware timestamp."""
        return _aware(v)


class ConflictReport(BaseModel):
    """Outcome of a slot conflict check."""

    doctor_id: UUID
    requested_at: datetime
    has_conflict: bool
    conflicting_appointments: list[Appointment] = Field(default_factory=list)
    suggested_times: list[datetime] = Field(default_factory=list)

    def raise_for_conflict(self) -> None:
        """
        Raise if the requested slot is taken.

        Raises:
            ConflictDetected: With the colliding appointments and suggestions
        """
        if self.has_conflict:
            raise ConflictDetected(
                conflicting_appointments=self.conflicting_appointments,
                suggested_times=self.suggested_times,
            )


class BookingPolicy(BaseModel):
    """Business-hours and suggestion-search rules for the conflict resolver."""

    business_day_start_hour: int = Field(default=8, ge=0, le=23)
    business_day_end_hour: int = Field(default=18, ge=1, le=24)
    business_timezone: str = "UTC"
    slot_interval_minutes: int = Field(default=30, ge=1)
    max_suggestions: int = Field(default=3, ge=0)
    suggestion_search_iterations: int = Field(default=16, ge=0)

    @model_validator(mode="after")
    def validate_business_hours(self) -> BookingPolicy:
        """Business day must start before it ends."""
        if self.business_day_start_hour >= self.business_day_end_hour:
            raise ValueError("business_day_start_hour must be before business_day_end_hour")
        return self

    @classmethod
    def from_settings(cls, settings: Settings) -> BookingPolicy:
        """Build the policy from application settings."""
        return cls(
            business_day_start_hour=settings.business_day_start_hour,
            business_day_end_hour=settings.business_day_end_hour,
            business_timezone=settings.business_timezone,
            slot_interval_minutes=settings.slot_interval_minutes,
            max_suggestions=settings.max_suggestions,
            suggestion_search_iterations=settings.suggestion_search_iterations,
        )
