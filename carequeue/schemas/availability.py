"""Availability and slot schemas for request/response validation."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from carequeue.scheduling.clock import is_on_slot_grid, normalize_hhmm


class AvailabilityWindowBase(BaseModel):
    """One recurring weekly block of clinician time."""

    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday ... 6 = Saturday")
    start_time: str = Field(..., description="HH:MM, clinic wall-clock")
    end_time: str = Field(..., description="HH:MM; earlier than start_time for overnight windows")
    is_available: bool = True

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def validate_time(cls, v: object) -> str:
        """Normalize to HH:MM on the 30-minute grid."""
        normalized = normalize_hhmm(v)  # type: ignore[arg-type]
        if not is_on_slot_grid(normalized):
            raise ValueError("Times must be on 30-minute boundaries")
        return normalized

    @property
    def is_overnight(self) -> bool:
        """Window ends on the following day."""
        return self.end_time < self.start_time


class AvailabilityWindowCreate(AvailabilityWindowBase):
    """Schema for one window in a calendar replacement."""


class AvailabilityWindow(AvailabilityWindowBase):
    """Availability window as stored."""

    id: UUID | None = None
    clinician_id: UUID

    model_config = {"from_attributes": True}


class AvailabilityUpdate(BaseModel):
    """Schema for replacing a clinician's weekly calendar."""

    windows: list[AvailabilityWindowCreate] = Field(default_factory=list, max_length=100)


class AvailabilityResponse(BaseModel):
    """A clinician's weekly calendar."""

    clinician_id: UUID
    windows: list[AvailabilityWindow]


class Slot(BaseModel):
    """One bookable 30-minute start time. Derived, never stored."""

    date: date
    time: str

    model_config = {"frozen": True}


class SlotListResponse(BaseModel):
    """Bookable slots for one clinician and date."""

    clinician_id: UUID
    date: date
    generated_at: datetime
    slots: list[Slot]
