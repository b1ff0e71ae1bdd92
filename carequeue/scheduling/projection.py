"""Queue board projection.

Merges the persisted check-in queue with today's appointments that have
not been checked in yet. Safe to run on every poll: it only reads its
inputs.
"""

from collections.abc import Iterable
from datetime import date, datetime, tzinfo
from uuid import UUID

from carequeue.scheduling.clock import combine
from carequeue.schemas.appointments import QUEUEABLE_STATUSES, AppointmentResponse
from carequeue.schemas.queue import (
    PersistedQueueEntry,
    QueueEntry,
    QueueStatus,
    VirtualQueueEntry,
)


def to_virtual_entry(appointment: AppointmentResponse, tz: tzinfo) -> VirtualQueueEntry:
    """Project an appointment as a waiting entry keyed on its start time."""
    return VirtualQueueEntry(
        appointment_id=appointment.id,
        patient_id=appointment.patient_id,
        clinician_id=appointment.clinician_id,
        status=QueueStatus.WAITING,
        checked_in_at=combine(appointment.appointment_date, appointment.appointment_time, tz),
        appointment_date=appointment.appointment_date,
        appointment_time=appointment.appointment_time,
    )


def _sort_key(entry: QueueEntry) -> tuple[datetime, str]:
    # Ties fall back to the ref so repeated polls order identically
    return entry.checked_in_at, entry.ref


def project_queue(
    entries: Iterable[PersistedQueueEntry],
    appointments: Iterable[AppointmentResponse],
    today: date,
    tz: tzinfo,
    linked_appointment_ids: Iterable[UUID] = (),
) -> list[QueueEntry]:
    """
    Build the merged queue board.

    Args:
        entries: Persisted queue rows in scope
        appointments: Appointments in scope; only today's scheduled or
            confirmed ones are projected
        today: Clinic-local date of the board
        tz: Clinic timezone used to place appointment times
        linked_appointment_ids: Appointments referenced by queue rows that
            are not part of ``entries`` (for instance already completed)

    Returns:
        Waiting entries, newest check-in or appointment time first
    """
    entries = list(entries)
    linked: set[UUID] = {e.appointment_id for e in entries if e.appointment_id is not None}
    linked.update(linked_appointment_ids)

    board: list[QueueEntry] = []
    seen: set[UUID] = set()

    for entry in entries:
        if entry.status != QueueStatus.WAITING:
            continue
        if entry.appointment_id is not None:
            if entry.appointment_id in seen:
                continue
            seen.add(entry.appointment_id)
        board.append(entry)

    for appointment in appointments:
        if appointment.appointment_date != today:
            continue
        if appointment.status not in QUEUEABLE_STATUSES:
            continue
        if appointment.id in linked or appointment.id in seen:
            continue
        seen.add(appointment.id)
        board.append(to_virtual_entry(appointment, tz))

    board.sort(key=_sort_key, reverse=True)
    return board
