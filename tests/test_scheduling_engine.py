"""Tests for the scheduling engine over the database-backed services."""

import asyncio
from datetime import UTC, date, datetime
from uuid import uuid4

import pytest
from conftest import CLINIC_TZ, TODAY, book, build_engine
from sqlalchemy.exc import OperationalError

from carequeue.core.exceptions import (
    BadRequestException,
    ConflictException,
    DuplicateQueueEntryError,
    InvalidTransitionError,
    NotFoundException,
    PatientNotFoundError,
    UpstreamUnavailableError,
)
from carequeue.schemas.appointments import AppointmentCreate, AppointmentReschedule
from carequeue.schemas.queue import (
    CheckInRequest,
    GateState,
    PersistedQueueEntry,
    QueuePriority,
    QueueStatus,
    VirtualQueueEntry,
)
from carequeue.services.appointment_service import AppointmentService
from carequeue.services.patient_service import PatientService
from carequeue.services.queue_service import QueueService
from carequeue.services.scheduling_service import SchedulingEngine


def at(hour: int, minute: int) -> datetime:
    return datetime(TODAY.year, TODAY.month, TODAY.day, hour, minute, tzinfo=UTC)


# ----------------------------------------------------------------------
# Slots and booking
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_generate_slots_excludes_booked(engine, db_session, clinician_id, weekday_calendar):
    """Booked times disappear from the clinician's slots."""
    await book(db_session, clinician_id, uuid4(), hhmm="10:00")

    slots = await engine.generate_slots(clinician_id, TODAY, today=TODAY)

    times = [s.time for s in slots]
    assert "10:00" not in times
    assert times[0] == "09:00"
    assert times[-1] == "16:30"


@pytest.mark.asyncio
async def test_cancelled_appointment_frees_slot(engine, db_session, clinician_id, weekday_calendar):
    """Cancelling releases the slot."""
    appointment = await book(db_session, clinician_id, uuid4(), hhmm="10:00")
    await AppointmentService(db_session).cancel(appointment.id)

    slots = await engine.generate_slots(clinician_id, TODAY, today=TODAY)

    assert "10:00" in [s.time for s in slots]


@pytest.mark.asyncio
async def test_overnight_slots_from_database(engine, clinician_id, weekday_calendar):
    """Friday's overnight window is read back and walked past midnight."""
    friday = date(2026, 10, 23)

    slots = await engine.generate_slots(clinician_id, friday, today=TODAY)

    assert {s.time for s in slots} == {
        "22:00",
        "22:30",
        "23:00",
        "23:30",
        "00:00",
        "00:30",
        "01:00",
        "01:30",
    }


@pytest.mark.asyncio
async def test_past_dates_have_no_slots(engine, clinician_id, weekday_calendar):
    assert await engine.generate_slots(clinician_id, date(2026, 10, 12), today=TODAY) == []


@pytest.mark.asyncio
async def test_clinician_without_calendar_has_no_slots(engine):
    assert await engine.generate_slots(uuid4(), TODAY, today=TODAY) == []


@pytest.mark.asyncio
async def test_book_appointment_takes_slot(engine, clinician_id, weekday_calendar):
    """Booking a generated slot removes it from the list."""
    data = AppointmentCreate(
        clinician_id=clinician_id,
        patient_id=uuid4(),
        appointment_date=TODAY,
        appointment_time="11:30",
        reason="Annual check-up",
    )

    appointment = await engine.book_appointment(data, today=TODAY)

    assert appointment.status == "scheduled"
    slots = await engine.generate_slots(clinician_id, TODAY, today=TODAY)
    assert "11:30" not in [s.time for s in slots]

    with pytest.raises(ConflictException):
        await engine.book_appointment(data, today=TODAY)


@pytest.mark.asyncio
async def test_book_outside_availability_rejected(engine, clinician_id, weekday_calendar):
    data = AppointmentCreate(
        clinician_id=clinician_id,
        patient_id=uuid4(),
        appointment_date=TODAY,
        appointment_time="18:00",
        reason="Evening visit",
    )

    with pytest.raises(ConflictException):
        await engine.book_appointment(data, today=TODAY)


@pytest.mark.asyncio
async def test_book_in_past_rejected(engine, clinician_id, weekday_calendar):
    data = AppointmentCreate(
        clinician_id=clinician_id,
        patient_id=uuid4(),
        appointment_date=date(2026, 10, 12),
        appointment_time="09:00",
        reason="Too late",
    )

    with pytest.raises(BadRequestException):
        await engine.book_appointment(data, today=TODAY)


@pytest.mark.asyncio
async def test_reschedule_moves_to_free_slot(engine, db_session, clinician_id, weekday_calendar):
    """Rescheduling frees the old time and takes the new one."""
    appointment = await book(db_session, clinician_id, uuid4(), hhmm="09:00")

    moved = await engine.reschedule_appointment(
        appointment.id,
        AppointmentReschedule(appointment_date=TODAY, appointment_time="15:00"),
        today=TODAY,
    )

    assert moved.status == "rescheduled"
    assert moved.appointment_time == "15:00"
    times = [s.time for s in await engine.generate_slots(clinician_id, TODAY, today=TODAY)]
    assert "09:00" in times
    assert "15:00" not in times


@pytest.mark.asyncio
async def test_reschedule_cancelled_rejected(engine, db_session, clinician_id, weekday_calendar):
    appointment = await book(db_session, clinician_id, uuid4(), hhmm="09:00")
    await AppointmentService(db_session).cancel(appointment.id)

    with pytest.raises(BadRequestException):
        await engine.reschedule_appointment(
            appointment.id,
            AppointmentReschedule(appointment_date=TODAY, appointment_time="15:00"),
            today=TODAY,
        )


# ----------------------------------------------------------------------
# Queue board and transitions
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_before_appointment_time(engine, db_session, appointment):
    """At 13:55 the 14:00 appointment is on the board but cannot start."""
    board = await engine.project_queue(at(13, 55))

    assert len(board) == 1
    assert isinstance(board[0], VirtualQueueEntry)
    assert board[0].appointment_id == appointment.id

    with pytest.raises(InvalidTransitionError, match="not arrived"):
        await engine.apply_queue_transition(
            f"apt-{appointment.id}", QueueStatus.IN_CONSULTATION, at(13, 55)
        )

    # A refused action leaves no queue row behind
    assert await QueueService(db_session).list_entries() == []


@pytest.mark.asyncio
async def test_start_consultation_in_window(engine, db_session, appointment):
    """At 14:05 starting the consultation materializes a linked entry."""
    entry = await engine.apply_queue_transition(
        f"apt-{appointment.id}", QueueStatus.IN_CONSULTATION, at(14, 5)
    )

    assert isinstance(entry, PersistedQueueEntry)
    assert entry.status == QueueStatus.IN_CONSULTATION
    assert entry.appointment_id == appointment.id

    stored = await QueueService(db_session).get_entry_for_appointment(appointment.id)
    assert stored.id == entry.id

    # The appointment is no longer projected as a virtual entry
    assert await engine.project_queue(at(14, 6)) == []


@pytest.mark.asyncio
async def test_after_window_only_completion(engine, appointment):
    """At 14:35 a still-waiting appointment can only be completed."""
    ref = f"apt-{appointment.id}"

    with pytest.raises(InvalidTransitionError, match="slot has passed"):
        await engine.apply_queue_transition(ref, QueueStatus.IN_CONSULTATION, at(14, 35))

    entry = await engine.apply_queue_transition(ref, QueueStatus.COMPLETED, at(14, 35))
    assert entry.status == QueueStatus.COMPLETED


@pytest.mark.asyncio
async def test_concurrent_materialization(session_factory, appointment):
    """Two consoles checking in the same appointment: exactly one wins."""
    async with session_factory() as first, session_factory() as second:
        results = await asyncio.gather(
            build_engine(first).apply_queue_transition(
                f"apt-{appointment.id}", QueueStatus.WAITING, at(13, 55)
            ),
            build_engine(second).apply_queue_transition(
                f"apt-{appointment.id}", QueueStatus.WAITING, at(13, 55)
            ),
            return_exceptions=True,
        )

    created = [r for r in results if isinstance(r, PersistedQueueEntry)]
    duplicates = [r for r in results if isinstance(r, DuplicateQueueEntryError)]
    assert len(created) == 1
    assert len(duplicates) == 1


@pytest.mark.asyncio
async def test_waiting_target_checks_patient_in(engine, appointment):
    """Asking for waiting on a virtual entry only persists it."""
    entry = await engine.apply_queue_transition(
        f"apt-{appointment.id}", QueueStatus.WAITING, at(13, 0)
    )

    assert entry.status == QueueStatus.WAITING
    board = await engine.project_queue(at(13, 1))
    assert [e.ref for e in board] == [str(entry.id)]

    with pytest.raises(DuplicateQueueEntryError):
        await engine.apply_queue_transition(f"apt-{appointment.id}", QueueStatus.WAITING, at(13, 2))


@pytest.mark.asyncio
async def test_persisted_linked_entry_is_gated(engine, appointment):
    """Once materialized, the entry keeps its appointment's time gate."""
    entry = await engine.apply_queue_transition(
        f"apt-{appointment.id}", QueueStatus.WAITING, at(13, 0)
    )

    with pytest.raises(InvalidTransitionError):
        await engine.apply_queue_transition(str(entry.id), QueueStatus.IN_CONSULTATION, at(13, 30))

    started = await engine.apply_queue_transition(
        str(entry.id), QueueStatus.IN_CONSULTATION, at(14, 0)
    )
    finished = await engine.apply_queue_transition(
        str(started.id), QueueStatus.COMPLETED, at(16, 0)
    )
    assert finished.status == QueueStatus.COMPLETED

    with pytest.raises(InvalidTransitionError):
        await engine.apply_queue_transition(str(entry.id), QueueStatus.WAITING, at(16, 1))


@pytest.mark.asyncio
async def test_materialization_without_patient_record(engine, db_session, clinician_id):
    """An appointment whose patient has no record cannot be queued."""
    appointment = await book(db_session, clinician_id, uuid4())

    with pytest.raises(PatientNotFoundError):
        await engine.apply_queue_transition(
            f"apt-{appointment.id}", QueueStatus.IN_CONSULTATION, at(14, 5)
        )

    assert await QueueService(db_session).list_entries() == []


@pytest.mark.asyncio
async def test_patient_resolved_by_record_id(engine, db_session, clinician_id, patient):
    """Appointments may reference the patient record directly."""
    appointment = await book(db_session, clinician_id, patient.id)

    entry = await engine.apply_queue_transition(
        f"apt-{appointment.id}", QueueStatus.WAITING, at(13, 0)
    )

    assert entry.patient_id == patient.id


@pytest.mark.asyncio
async def test_cancelled_appointment_cannot_be_queued(engine, db_session, appointment):
    await AppointmentService(db_session).cancel(appointment.id)

    assert await engine.project_queue(at(14, 0)) == []
    actions = await engine.available_actions(f"apt-{appointment.id}", at(14, 5))
    assert actions.allowed == []
    with pytest.raises(BadRequestException):
        await engine.apply_queue_transition(
            f"apt-{appointment.id}", QueueStatus.IN_CONSULTATION, at(14, 5)
        )


@pytest.mark.asyncio
async def test_unknown_refs(engine):
    with pytest.raises(NotFoundException):
        await engine.apply_queue_transition(str(uuid4()), QueueStatus.COMPLETED, at(14, 0))
    with pytest.raises(NotFoundException):
        await engine.apply_queue_transition(f"apt-{uuid4()}", QueueStatus.WAITING, at(14, 0))
    with pytest.raises(NotFoundException):
        await engine.apply_queue_transition("not-a-ref", QueueStatus.WAITING, at(14, 0))


@pytest.mark.asyncio
async def test_walk_in_check_in_and_transitions(engine, clinician_id, patient):
    """Walk-ins are ungated but must start a consultation before completing."""
    entry = await engine.check_in(
        CheckInRequest(
            patient_id=patient.id, clinician_id=clinician_id, priority=QueuePriority.URGENT
        )
    )

    assert entry.appointment_id is None
    assert entry.priority == QueuePriority.URGENT

    actions = await engine.available_actions(str(entry.id), at(3, 0))
    assert actions.gate == GateState.UNGATED
    assert actions.allowed == [QueueStatus.IN_CONSULTATION]

    with pytest.raises(InvalidTransitionError):
        await engine.apply_queue_transition(str(entry.id), QueueStatus.COMPLETED, at(3, 0))

    await engine.apply_queue_transition(str(entry.id), QueueStatus.IN_CONSULTATION, at(3, 0))
    done = await engine.apply_queue_transition(str(entry.id), QueueStatus.COMPLETED, at(3, 5))
    assert done.status == QueueStatus.COMPLETED


@pytest.mark.asyncio
async def test_check_in_unknown_patient(engine, clinician_id):
    with pytest.raises(PatientNotFoundError):
        await engine.check_in(CheckInRequest(patient_id=uuid4(), clinician_id=clinician_id))


@pytest.mark.asyncio
async def test_check_in_for_appointment_twice(engine, patient, appointment):
    request = CheckInRequest(patient_id=patient.id, appointment_id=appointment.id)

    entry = await engine.check_in(request)
    assert entry.clinician_id == appointment.clinician_id

    with pytest.raises(DuplicateQueueEntryError):
        await engine.check_in(request)


@pytest.mark.asyncio
async def test_available_actions_for_virtual_entry(engine, appointment):
    ref = f"apt-{appointment.id}"

    before = await engine.available_actions(ref, at(13, 55))
    during = await engine.available_actions(ref, at(14, 10))
    after = await engine.available_actions(ref, at(14, 40))

    assert (before.gate, before.allowed) == (GateState.NOT_ARRIVED, [])
    assert (during.gate, during.allowed) == (GateState.OPEN, [QueueStatus.IN_CONSULTATION])
    assert (after.gate, after.allowed) == (GateState.EXPIRED, [QueueStatus.COMPLETED])


@pytest.mark.asyncio
async def test_other_day_appointment_cannot_be_queued(engine, db_session, clinician_id, patient):
    """Only today's appointments are projected, so only they can be acted on."""
    last_week = await book(db_session, clinician_id, patient.user_id, on_date=date(2026, 10, 12))
    next_week = await book(db_session, clinician_id, patient.user_id, on_date=date(2026, 10, 26))
    assert await engine.project_queue(at(14, 0)) == []

    for appointment in (last_week, next_week):
        ref = f"apt-{appointment.id}"
        actions = await engine.available_actions(ref, at(14, 0))
        assert actions.allowed == []

        with pytest.raises(BadRequestException, match="today"):
            await engine.apply_queue_transition(ref, QueueStatus.COMPLETED, at(14, 0))

    assert await QueueService(db_session).list_entries() == []


@pytest.mark.asyncio
async def test_actions_on_already_queued_appointment(engine, appointment):
    """An outdated virtual reference reports the queued entry's status and no actions."""
    ref = f"apt-{appointment.id}"
    entry = await engine.apply_queue_transition(ref, QueueStatus.IN_CONSULTATION, at(14, 5))

    actions = await engine.available_actions(ref, at(14, 10))

    assert actions.status == QueueStatus.IN_CONSULTATION
    assert actions.allowed == []
    with pytest.raises(DuplicateQueueEntryError):
        await engine.apply_queue_transition(ref, QueueStatus.IN_CONSULTATION, at(14, 10))

    assert (await engine.available_actions(str(entry.id), at(14, 10))).allowed == [
        QueueStatus.COMPLETED
    ]


@pytest.mark.asyncio
async def test_stale_status_reports_concurrent_change(engine, db_session, clinician_id, patient):
    """A transition computed against an outdated status is refused."""
    entry = await engine.check_in(CheckInRequest(patient_id=patient.id, clinician_id=clinician_id))
    await QueueService(db_session).update_status_if(
        entry.id, QueueStatus.WAITING, QueueStatus.IN_CONSULTATION
    )

    class StaleQueue(QueueService):
        async def get_entry(self, entry_id):
            return entry

    stale_engine = SchedulingEngine(
        availability=engine.availability,
        appointments=engine.appointments,
        patients=engine.patients,
        queue=StaleQueue(db_session),
        tz=CLINIC_TZ,
    )

    with pytest.raises(InvalidTransitionError, match="changed concurrently"):
        await stale_engine.apply_queue_transition(
            str(entry.id), QueueStatus.IN_CONSULTATION, at(9, 0)
        )


# ----------------------------------------------------------------------
# Upstream failures
# ----------------------------------------------------------------------


class SlowAvailability:
    async def get_windows(self, clinician_id, day_of_week):
        await asyncio.sleep(5)
        return []


class BrokenPatients:
    async def resolve_patient_id(self, patient_ref):
        raise OperationalError("SELECT 1", {}, Exception("connection reset"))


@pytest.mark.asyncio
async def test_slow_reader_times_out(db_session):
    engine = SchedulingEngine(
        availability=SlowAvailability(),
        appointments=AppointmentService(db_session),
        patients=PatientService(db_session),
        queue=QueueService(db_session),
        tz=CLINIC_TZ,
        timeout=0.05,
    )

    with pytest.raises(UpstreamUnavailableError, match="timed out"):
        await engine.generate_slots(uuid4(), TODAY)


@pytest.mark.asyncio
async def test_per_call_timeout_overrides_default(db_session):
    engine = SchedulingEngine(
        availability=SlowAvailability(),
        appointments=AppointmentService(db_session),
        patients=PatientService(db_session),
        queue=QueueService(db_session),
        tz=CLINIC_TZ,
        timeout=60,
    )

    with pytest.raises(UpstreamUnavailableError):
        await engine.generate_slots(uuid4(), TODAY, timeout=0.05)


@pytest.mark.asyncio
async def test_database_error_surfaces_as_upstream(db_session, appointment):
    engine = SchedulingEngine(
        availability=None,
        appointments=AppointmentService(db_session),
        patients=BrokenPatients(),
        queue=QueueService(db_session),
        tz=CLINIC_TZ,
    )

    with pytest.raises(UpstreamUnavailableError):
        await engine.apply_queue_transition(f"apt-{appointment.id}", QueueStatus.WAITING, at(13, 0))
