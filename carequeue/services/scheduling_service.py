"""Scheduling engine: slot generation, queue board and queue actions.

The engine owns no state. It reads through its collaborators under a
per-call timeout, runs the pure rules in ``carequeue.scheduling`` and
writes back through single conditional statements.
"""

import asyncio
from collections.abc import Awaitable
from datetime import date, datetime, tzinfo
from typing import TypeVar
from uuid import UUID

import structlog
from sqlalchemy.exc import SQLAlchemyError

from carequeue.config import settings
from carequeue.core.exceptions import (
    BadRequestException,
    ConflictException,
    InvalidTransitionError,
    NotFoundException,
    PatientNotFoundError,
    UpstreamUnavailableError,
)
from carequeue.scheduling.clock import combine, js_day_of_week, localize
from carequeue.scheduling.ports import (
    AvailabilityReader,
    BookingLedger,
    PatientResolver,
    QueueStore,
)
from carequeue.scheduling.projection import project_queue as build_queue_board
from carequeue.scheduling.slots import generate_slots as compute_slots
from carequeue.scheduling.transitions import allowed_transitions, gate_state, validate_transition
from carequeue.schemas.appointments import (
    LIVE_STATUSES,
    QUEUEABLE_STATUSES,
    AppointmentCreate,
    AppointmentReschedule,
    AppointmentResponse,
)
from carequeue.schemas.availability import Slot
from carequeue.schemas.queue import (
    CheckInRequest,
    PersistedQueueEntry,
    QueueActionsResponse,
    QueueEntry,
    QueueEntryRef,
    QueueStatus,
)

logger = structlog.get_logger()

T = TypeVar("T")


class SchedulingEngine:
    """Availability and queue coordination over pluggable readers and stores."""

    def __init__(
        self,
        availability: AvailabilityReader,
        appointments: BookingLedger,
        patients: PatientResolver,
        queue: QueueStore,
        tz: tzinfo | None = None,
        timeout: float | None = None,
    ):
        """
        Initialize the engine.

        Args:
            availability: Clinician availability reader
            appointments: Booking ledger
            patients: Patient reference resolver
            queue: Check-in queue store
            tz: Clinic timezone; defaults to the configured one
            timeout: Default per-call timeout in seconds
        """
        self.availability = availability
        self.appointments = appointments
        self.patients = patients
        self.queue = queue
        self.tz = tz or settings.clinic_tz
        self.timeout = settings.upstream_timeout_seconds if timeout is None else timeout

    async def _call(self, operation: str, awaitable: Awaitable[T], timeout: float | None) -> T:
        """Await a collaborator under a timeout, surfacing failures as upstream errors."""
        limit = self.timeout if timeout is None else timeout
        try:
            async with asyncio.timeout(limit):
                return await awaitable
        except TimeoutError:
            logger.error("upstream_unavailable", operation=operation, reason="timeout", timeout=limit)
            raise UpstreamUnavailableError(f"{operation} timed out")
        except SQLAlchemyError as e:
            logger.error("upstream_unavailable", operation=operation, reason="error", error=str(e))
            raise UpstreamUnavailableError(f"{operation} failed")

    # ------------------------------------------------------------------
    # Slots
    # ------------------------------------------------------------------

    async def generate_slots(
        self,
        clinician_id: UUID,
        on_date: date,
        today: date | None = None,
        timeout: float | None = None,
    ) -> list[Slot]:
        """
        Compute the bookable slots of a clinician on a date.

        Args:
            clinician_id: Clinician ID
            on_date: Requested date
            today: Dates before it have no slots; None disables the check
            timeout: Per-call timeout in seconds; None uses the engine default

        Returns:
            Free slots in time order

        Raises:
            UpstreamUnavailableError: If a reader fails or times out
        """
        if today is not None and on_date < today:
            return []

        windows = await self._call(
            "availability_reader",
            self.availability.get_windows(clinician_id, js_day_of_week(on_date)),
            timeout,
        )
        if not windows:
            return []

        booked = await self._call(
            "appointment_reader",
            self.appointments.get_booked_times(clinician_id, on_date),
            timeout,
        )
        return compute_slots(on_date, windows, booked)

    async def _require_free_slot(
        self,
        clinician_id: UUID,
        on_date: date,
        hhmm: str,
        today: date,
        timeout: float | None,
    ) -> None:
        if on_date < today:
            raise BadRequestException("Cannot book an appointment in the past")

        slots = await self.generate_slots(clinician_id, on_date, today=today, timeout=timeout)
        if hhmm not in {slot.time for slot in slots}:
            raise ConflictException("Requested time is not an available slot")

    async def book_appointment(
        self,
        data: AppointmentCreate,
        today: date,
        timeout: float | None = None,
    ) -> AppointmentResponse:
        """
        Book one of the clinician's generated slots.

        Raises:
            BadRequestException: If the date is in the past
            ConflictException: If the time is not a free slot
        """
        await self._require_free_slot(
            data.clinician_id, data.appointment_date, data.appointment_time, today, timeout
        )
        return await self._call(
            "booking_ledger", self.appointments.create_appointment(data), timeout
        )

    async def reschedule_appointment(
        self,
        appointment_id: UUID,
        data: AppointmentReschedule,
        today: date,
        timeout: float | None = None,
    ) -> AppointmentResponse:
        """
        Move an appointment to another generated slot.

        Raises:
            NotFoundException: If the appointment does not exist
            BadRequestException: If the appointment is terminal or the date is past
            ConflictException: If the time is not a free slot
        """
        appointment = await self._get_appointment(appointment_id, timeout)
        if appointment.status not in LIVE_STATUSES:
            raise BadRequestException(f"Cannot reschedule a {appointment.status.value} appointment")

        await self._require_free_slot(
            appointment.clinician_id, data.appointment_date, data.appointment_time, today, timeout
        )
        return await self._call(
            "booking_ledger", self.appointments.reschedule(appointment_id, data), timeout
        )

    # ------------------------------------------------------------------
    # Queue board
    # ------------------------------------------------------------------

    async def project_queue(
        self,
        now: datetime,
        clinician_id: UUID | None = None,
        timeout: float | None = None,
    ) -> list[QueueEntry]:
        """
        Build the merged queue board for today.

        Args:
            now: Current time; its clinic-local date selects the appointments
            clinician_id: Restrict to one clinician; None for all
            timeout: Per-call timeout in seconds; None uses the engine default

        Returns:
            Waiting persisted entries and virtual appointment entries,
            newest first

        Raises:
            UpstreamUnavailableError: If a reader fails or times out
        """
        today = localize(now, self.tz).date()

        entries = await self._call(
            "queue_store",
            self.queue.list_entries(clinician_id=clinician_id, status=QueueStatus.WAITING),
            timeout,
        )
        appointments = await self._call(
            "appointment_reader",
            self.appointments.get_appointments_for_day(today, clinician_id),
            timeout,
        )
        linked = await self._call(
            "queue_store",
            self.queue.get_linked_appointment_ids([a.id for a in appointments]),
            timeout,
        )
        return build_queue_board(entries, appointments, today, self.tz, linked_appointment_ids=linked)

    # ------------------------------------------------------------------
    # Queue actions
    # ------------------------------------------------------------------

    async def check_in(
        self,
        request: CheckInRequest,
        timeout: float | None = None,
    ) -> PersistedQueueEntry:
        """
        Explicitly check a patient in (walk-in or for an appointment).

        Raises:
            PatientNotFoundError: If the patient record does not exist
            NotFoundException: If the appointment does not exist
            BadRequestException: If the appointment is completed or cancelled
            DuplicateQueueEntryError: If the appointment is already queued
        """
        clinician_id = request.clinician_id
        if request.appointment_id is not None:
            appointment = await self._get_appointment(request.appointment_id, timeout)
            if appointment.status not in LIVE_STATUSES:
                raise BadRequestException(
                    f"Cannot check in a {appointment.status.value} appointment"
                )
            clinician_id = clinician_id or appointment.clinician_id

        patient_id = await self._call(
            "patient_resolver", self.patients.resolve_patient_id(request.patient_id), timeout
        )
        if patient_id is None:
            raise PatientNotFoundError()

        return await self._call(
            "queue_store",
            self.queue.create_entry(
                patient_id=patient_id,
                clinician_id=clinician_id,
                appointment_id=request.appointment_id,
                priority=request.priority,
                notes=request.notes,
            ),
            timeout,
        )

    async def available_actions(
        self,
        entry_ref: str,
        now: datetime,
        timeout: float | None = None,
    ) -> QueueActionsResponse:
        """Describe the time gate and permitted targets of an entry at ``now``."""
        ref = self._parse_ref(entry_ref)
        now = localize(now, self.tz)

        if ref.is_virtual:
            appointment = await self._get_appointment(ref.appointment_id, timeout)
            start = combine(appointment.appointment_date, appointment.appointment_time, self.tz)
            existing = await self._call(
                "queue_store", self.queue.get_entry_for_appointment(appointment.id), timeout
            )
            status = existing.status if existing else QueueStatus.WAITING
            # The reference only acts while the appointment is still projected
            if existing or self._queue_refusal(appointment, now):
                allowed = frozenset()
            else:
                allowed = allowed_transitions(status, start, now)
        else:
            entry = await self._get_entry(ref.entry_id, timeout)
            status = entry.status
            start = await self._appointment_start(entry, timeout)
            allowed = allowed_transitions(status, start, now)

        return QueueActionsResponse(
            ref=entry_ref,
            status=status,
            gate=gate_state(start, now),
            appointment_start=start,
            allowed=sorted(allowed, key=lambda s: s.value),
        )

    async def apply_queue_transition(
        self,
        entry_ref: str,
        target_status: QueueStatus,
        now: datetime,
        timeout: float | None = None,
    ) -> PersistedQueueEntry:
        """
        Move a queue entry to ``target_status``.

        Virtual entries (``apt-<appointment id>``) are materialized first;
        asking for ``waiting`` on one only checks the patient in.

        Args:
            entry_ref: Queue entry ID or virtual reference
            target_status: Requested status
            now: Current time, used by the appointment time gate
            timeout: Per-call timeout in seconds; None uses the engine default

        Returns:
            Updated persisted entry

        Raises:
            NotFoundException: If the entry or appointment does not exist
            BadRequestException: If a virtual entry's appointment is not queueable today
            PatientNotFoundError: If a virtual entry's patient has no record
            InvalidTransitionError: If status order or time gate forbids it
            DuplicateQueueEntryError: If another operator materialized it first
            UpstreamUnavailableError: If a reader or store fails or times out
        """
        ref = self._parse_ref(entry_ref)
        now = localize(now, self.tz)

        if ref.is_virtual:
            entry = await self._materialize(ref.appointment_id, target_status, now, timeout)
            if target_status == QueueStatus.WAITING:
                return entry
        else:
            entry = await self._get_entry(ref.entry_id, timeout)

        start = await self._appointment_start(entry, timeout)
        try:
            validate_transition(entry.status, target_status, start, now)
        except InvalidTransitionError as e:
            logger.info(
                "queue_transition_rejected",
                entry_id=str(entry.id),
                current=entry.status.value,
                target=target_status.value,
                reason=e.message,
            )
            raise

        updated = await self._call(
            "queue_store",
            self.queue.update_status_if(entry.id, entry.status, target_status),
            timeout,
        )
        if updated is None:
            raise InvalidTransitionError("Queue entry changed concurrently; refresh and retry")

        logger.info(
            "queue_transition_applied",
            entry_id=str(updated.id),
            appointment_id=str(updated.appointment_id) if updated.appointment_id else None,
            previous=entry.status.value,
            status=updated.status.value,
        )
        return updated

    async def _materialize(
        self,
        appointment_id: UUID,
        target_status: QueueStatus,
        now: datetime,
        timeout: float | None,
    ) -> PersistedQueueEntry:
        """Persist the virtual entry of an appointment as a waiting queue row."""
        appointment = await self._get_appointment(appointment_id, timeout)
        refusal = self._queue_refusal(appointment, now)
        if refusal:
            raise BadRequestException(refusal)

        # Reject before writing so a refused action leaves no queue row behind
        if target_status != QueueStatus.WAITING:
            start = combine(appointment.appointment_date, appointment.appointment_time, self.tz)
            validate_transition(QueueStatus.WAITING, target_status, start, now)

        patient_id = await self._call(
            "patient_resolver", self.patients.resolve_patient_id(appointment.patient_id), timeout
        )
        if patient_id is None:
            logger.warning(
                "queue_materialization_failed",
                appointment_id=str(appointment_id),
                reason="patient_not_found",
            )
            raise PatientNotFoundError(
                "Patient record not found for this appointment; register the patient and retry"
            )

        entry = await self._call(
            "queue_store",
            self.queue.create_entry(
                patient_id=patient_id,
                clinician_id=appointment.clinician_id,
                appointment_id=appointment.id,
            ),
            timeout,
        )
        logger.info(
            "queue_entry_materialized",
            entry_id=str(entry.id),
            appointment_id=str(appointment_id),
        )
        return entry

    def _queue_refusal(self, appointment: AppointmentResponse, now: datetime) -> str | None:
        """Why an appointment cannot be queued at ``now``, or None when it can."""
        if appointment.status not in QUEUEABLE_STATUSES:
            return f"Cannot queue a {appointment.status.value} appointment"
        if appointment.appointment_date != localize(now, self.tz).date():
            return "Only today's appointments can be queued"
        return None

    async def _appointment_start(
        self,
        entry: PersistedQueueEntry,
        timeout: float | None,
    ) -> datetime | None:
        """Aware start of the entry's appointment; None for walk-ins."""
        if entry.appointment_id is None:
            return None
        if entry.appointment_date is not None and entry.appointment_time is not None:
            return combine(entry.appointment_date, entry.appointment_time, self.tz)
        appointment = await self._get_appointment(entry.appointment_id, timeout)
        return combine(appointment.appointment_date, appointment.appointment_time, self.tz)

    async def _get_appointment(self, appointment_id: UUID, timeout: float | None) -> AppointmentResponse:
        appointment = await self._call(
            "appointment_reader", self.appointments.get_appointment_by_id(appointment_id), timeout
        )
        if appointment is None:
            raise NotFoundException("Appointment not found")
        return appointment

    async def _get_entry(self, entry_id: UUID, timeout: float | None) -> PersistedQueueEntry:
        entry = await self._call("queue_store", self.queue.get_entry(entry_id), timeout)
        if entry is None:
            raise NotFoundException("Queue entry not found")
        return entry

    @staticmethod
    def _parse_ref(entry_ref: str) -> QueueEntryRef:
        try:
            return QueueEntryRef.parse(entry_ref)
        except ValueError:
            raise NotFoundException("Queue entry not found")
