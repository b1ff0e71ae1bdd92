"""Collaborators the scheduling engine reads from and writes to.

The database-backed services in ``carequeue.services`` implement these.
"""

from datetime import date
from typing import Protocol
from uuid import UUID

from carequeue.schemas.appointments import (
    AppointmentCreate,
    AppointmentReschedule,
    AppointmentResponse,
)
from carequeue.schemas.availability import AvailabilityWindow
from carequeue.schemas.queue import PersistedQueueEntry, QueuePriority, QueueStatus


class AvailabilityReader(Protocol):
    """Clinician -> weekly windows."""

    async def get_windows(self, clinician_id: UUID, day_of_week: int) -> list[AvailabilityWindow]:
        """Available windows of a clinician on one weekday."""
        ...


class AppointmentReader(Protocol):
    """Read side of the booking ledger."""

    async def get_booked_times(self, clinician_id: UUID, on_date: date) -> set[str]:
        """HH:MM times held by non-cancelled appointments."""
        ...

    async def get_appointments_for_day(
        self,
        on_date: date,
        clinician_id: UUID | None = None,
    ) -> list[AppointmentResponse]:
        """Appointments on a date, for one clinician or all of them."""
        ...

    async def get_appointment_by_id(self, appointment_id: UUID) -> AppointmentResponse | None:
        """Single appointment lookup."""
        ...


class BookingLedger(AppointmentReader, Protocol):
    """Booking ledger including the slot-taking writes."""

    async def create_appointment(self, data: AppointmentCreate) -> AppointmentResponse:
        """Book a slot; raises ConflictException if it is taken."""
        ...

    async def reschedule(
        self,
        appointment_id: UUID,
        data: AppointmentReschedule,
    ) -> AppointmentResponse:
        """Move a live appointment to another slot."""
        ...


class PatientResolver(Protocol):
    """Appointment patient reference -> persisted patient id."""

    async def resolve_patient_id(self, patient_ref: UUID) -> UUID | None:
        """Patient record id, or None when no record exists."""
        ...


class QueueStore(Protocol):
    """Persisted check-in queue with atomic conditional writes."""

    async def get_entry(self, entry_id: UUID) -> PersistedQueueEntry | None:
        """Single entry lookup."""
        ...

    async def get_entry_for_appointment(self, appointment_id: UUID) -> PersistedQueueEntry | None:
        """Entry linked to an appointment, if any."""
        ...

    async def list_entries(
        self,
        clinician_id: UUID | None = None,
        status: QueueStatus | None = None,
    ) -> list[PersistedQueueEntry]:
        """Entries in scope."""
        ...

    async def get_linked_appointment_ids(self, appointment_ids: list[UUID]) -> set[UUID]:
        """Subset of ``appointment_ids`` that already have a queue entry."""
        ...

    async def create_entry(
        self,
        patient_id: UUID,
        clinician_id: UUID | None,
        appointment_id: UUID | None = None,
        priority: QueuePriority = QueuePriority.NORMAL,
        notes: str | None = None,
    ) -> PersistedQueueEntry:
        """Insert a waiting entry; raises DuplicateQueueEntryError if the appointment is taken."""
        ...

    async def update_status_if(
        self,
        entry_id: UUID,
        expected: QueueStatus,
        new: QueueStatus,
    ) -> PersistedQueueEntry | None:
        """Set ``new`` only while the stored status is ``expected``."""
        ...
