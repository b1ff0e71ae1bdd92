"""Patient queue schemas.

The queue board mixes two shapes: entries persisted by a check-in and
virtual entries projected from today's appointments. They form a tagged
union on ``kind`` so callers have to branch before acting on an entry.
"""

from datetime import date, datetime
from enum import Enum
from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, Field, computed_field, field_validator

from carequeue.scheduling.clock import as_utc

VIRTUAL_REF_PREFIX = "apt-"


class QueueStatus(str, Enum):
    """Queue entry status enumeration."""

    WAITING = "waiting"
    IN_CONSULTATION = "in_consultation"
    COMPLETED = "completed"


class QueuePriority(str, Enum):
    """Queue entry priority enumeration."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


PRIORITY_RANK = {
    QueuePriority.LOW: 0,
    QueuePriority.NORMAL: 1,
    QueuePriority.HIGH: 2,
    QueuePriority.URGENT: 3,
}


class GateState(str, Enum):
    """Where ``now`` falls relative to a linked appointment's slot."""

    UNGATED = "ungated"
    NOT_ARRIVED = "not_arrived"
    OPEN = "open"
    EXPIRED = "expired"


class QueueEntryBase(BaseModel):
    """Fields shared by persisted and virtual entries."""

    appointment_id: UUID | None = None
    clinician_id: UUID | None = None
    status: QueueStatus = QueueStatus.WAITING
    priority: QueuePriority = QueuePriority.NORMAL
    checked_in_at: datetime
    appointment_date: date | None = None
    appointment_time: str | None = None

    @property
    def is_appointment_linked(self) -> bool:
        """Entry belongs to a booked appointment."""
        return self.appointment_id is not None


class PersistedQueueEntry(QueueEntryBase):
    """A queue row that exists in the check-in queue."""

    kind: Literal["persisted"] = "persisted"
    id: UUID
    patient_id: UUID = Field(..., description="Patient record id")
    is_from_appointment: Literal[False] = False
    notes: str | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}

    @field_validator("checked_in_at", "updated_at")
    @classmethod
    def validate_timestamps(cls, v: datetime | None) -> datetime | None:
        """Read stored timestamps as UTC."""
        return as_utc(v) if v else v

    @computed_field  # type: ignore[prop-decorator]
    @property
    def ref(self) -> str:
        """Reference accepted by the transition endpoint."""
        return str(self.id)


class VirtualQueueEntry(QueueEntryBase):
    """An appointment due today that nobody has checked in yet."""

    kind: Literal["virtual"] = "virtual"
    id: None = None
    appointment_id: UUID
    patient_id: UUID = Field(..., description="Account reference from the appointment")
    is_from_appointment: Literal[True] = True

    @computed_field  # type: ignore[prop-decorator]
    @property
    def ref(self) -> str:
        """Reference accepted by the transition endpoint."""
        return f"{VIRTUAL_REF_PREFIX}{self.appointment_id}"


QueueEntry = Annotated[PersistedQueueEntry | VirtualQueueEntry, Field(discriminator="kind")]


class QueueEntryRef(BaseModel):
    """Parsed form of an entry reference."""

    entry_id: UUID | None = None
    appointment_id: UUID | None = None

    @property
    def is_virtual(self) -> bool:
        """Reference names an appointment that has no queue row yet."""
        return self.appointment_id is not None

    @classmethod
    def parse(cls, ref: str) -> "QueueEntryRef":
        """Parse a queue entry UUID or an ``apt-<appointment uuid>`` reference."""
        if ref.startswith(VIRTUAL_REF_PREFIX):
            return cls(appointment_id=UUID(ref[len(VIRTUAL_REF_PREFIX) :]))
        return cls(entry_id=UUID(ref))


class CheckInRequest(BaseModel):
    """Schema for an explicit front-desk check-in."""

    patient_id: UUID = Field(..., description="Patient record id")
    appointment_id: UUID | None = None
    clinician_id: UUID | None = None
    priority: QueuePriority = QueuePriority.NORMAL
    notes: str | None = Field(None, max_length=1000)


class QueueTransitionRequest(BaseModel):
    """Schema for moving a queue entry to another status."""

    status: QueueStatus


class QueueBoardResponse(BaseModel):
    """Merged, ordered queue view."""

    clinician_id: UUID | None
    generated_at: datetime
    total: int
    entries: list[QueueEntry]


class QueueListResponse(BaseModel):
    """Persisted queue rows."""

    total: int
    items: list[PersistedQueueEntry]


class QueueActionsResponse(BaseModel):
    """Transitions an operator may trigger on an entry right now."""

    ref: str
    status: QueueStatus
    gate: GateState
    appointment_start: datetime | None = None
    allowed: list[QueueStatus]
