"""Appointment schemas for request/response validation."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from carequeue.scheduling.clock import as_utc, is_on_slot_grid, normalize_hhmm


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    RESCHEDULED = "rescheduled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Statuses that still hold a slot and can be changed
LIVE_STATUSES = frozenset(
    {AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED, AppointmentStatus.RESCHEDULED}
)
# Statuses that put an appointment on the day's queue board
QUEUEABLE_STATUSES = frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED})


def validate_slot_time(v: object) -> str:
    """Normalize an appointment time to HH:MM on the 30-minute grid."""
    normalized = normalize_hhmm(v)  # type: ignore[arg-type]
    if not is_on_slot_grid(normalized):
        raise ValueError("Appointment times must be on 30-minute boundaries")
    return normalized


class AppointmentBase(BaseModel):
    """Base appointment schema with common fields."""

    clinician_id: UUID
    patient_id: UUID = Field(..., description="Account reference of the patient")
    appointment_date: date
    appointment_time: str = Field(..., description="HH:MM, clinic wall-clock")
    reason: str = Field(..., min_length=1, max_length=500)
    notes: str | None = Field(None, max_length=1000)

    @field_validator("appointment_time", mode="before")
    @classmethod
    def validate_time(cls, v: object) -> str:
        """Validate the time is a 30-minute slot start."""
        return validate_slot_time(v)


class AppointmentCreate(AppointmentBase):
    """Schema for booking a new appointment."""


class AppointmentReschedule(BaseModel):
    """Schema for moving an appointment to another slot."""

    appointment_date: date
    appointment_time: str

    @field_validator("appointment_time", mode="before")
    @classmethod
    def validate_time(cls, v: object) -> str:
        """Validate the time is a 30-minute slot start."""
        return validate_slot_time(v)


class AppointmentStatusUpdate(BaseModel):
    """Schema for updating appointment status."""

    status: AppointmentStatus
    notes: str | None = Field(None, max_length=1000)


class AppointmentResponse(AppointmentBase):
    """Schema for appointment response."""

    id: UUID
    status: AppointmentStatus
    created_at: datetime
    updated_at: datetime
    cancelled_at: datetime | None = None

    model_config = {"from_attributes": True}

    @field_validator("created_at", "updated_at", "cancelled_at")
    @classmethod
    def validate_timestamps(cls, v: datetime | None) -> datetime | None:
        """Read stored timestamps as UTC."""
        return as_utc(v) if v else v


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    clinician_id: UUID | None = None
    patient_id: UUID | None = None
    from_date: date | None = None
    to_date: date | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)
