"""Patient schemas for request/response validation."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class PatientCreate(BaseModel):
    """Schema for registering a patient record."""

    user_id: UUID = Field(..., description="Account reference used by appointments")
    full_name: str = Field(..., min_length=1, max_length=200)
    phone: str | None = Field(None, max_length=20)


class PatientResponse(PatientCreate):
    """Patient response schema."""

    id: UUID
    created_at: datetime

    model_config = {"from_attributes": True}
