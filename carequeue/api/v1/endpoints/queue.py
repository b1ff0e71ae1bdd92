"""Patient queue endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from carequeue.config import settings
from carequeue.dependencies import ClockDep, DatabaseSession, SchedulingEngineDep
from carequeue.scheduling.clock import localize
from carequeue.schemas.queue import (
    CheckInRequest,
    PersistedQueueEntry,
    QueueActionsResponse,
    QueueBoardResponse,
    QueueListResponse,
    QueueStatus,
    QueueTransitionRequest,
)
from carequeue.services.queue_service import QueueService

router = APIRouter()


@router.post(
    "/check-in",
    response_model=PersistedQueueEntry,
    status_code=status.HTTP_201_CREATED,
    tags=["Queue"],
    summary="Check a patient in",
)
async def check_in(
    data: CheckInRequest,
    engine: SchedulingEngineDep,
) -> PersistedQueueEntry:
    """
    Add a walk-in or an arriving appointment patient to the queue.

    Args:
        data: Check-in data
        engine: Scheduling engine

    Returns:
        Created waiting entry

    Raises:
        PatientNotFoundError: If the patient record does not exist
        DuplicateQueueEntryError: If the appointment is already queued
    """
    return await engine.check_in(data)


@router.get(
    "/",
    response_model=QueueListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Queue"],
    summary="List queue entries",
)
async def list_queue_entries(
    db: DatabaseSession,
    clinician_id: UUID | None = Query(None),
    status_filter: QueueStatus | None = Query(None, alias="status"),
) -> QueueListResponse:
    """
    List persisted queue entries, most urgent first.

    Args:
        db: Database session
        clinician_id: Filter by clinician ID
        status_filter: Filter by status

    Returns:
        Queue entries
    """
    service = QueueService(db)
    items = await service.list_entries(clinician_id=clinician_id, status=status_filter)
    return QueueListResponse(total=len(items), items=items)


@router.get(
    "/board",
    response_model=QueueBoardResponse,
    status_code=status.HTTP_200_OK,
    tags=["Queue"],
    summary="Get today's queue board",
)
async def get_queue_board(
    engine: SchedulingEngineDep,
    clock: ClockDep,
    clinician_id: UUID | None = Query(None),
) -> QueueBoardResponse:
    """
    Get the merged queue board: waiting check-ins plus today's booked
    appointments nobody has checked in yet.

    Args:
        engine: Scheduling engine
        clock: Wall clock
        clinician_id: Restrict to one clinician

    Returns:
        Board entries, newest first
    """
    now = localize(clock(), settings.clinic_tz)
    entries = await engine.project_queue(now, clinician_id=clinician_id)
    return QueueBoardResponse(
        clinician_id=clinician_id,
        generated_at=now,
        total=len(entries),
        entries=entries,
    )


@router.get(
    "/{entry_ref}/actions",
    response_model=QueueActionsResponse,
    status_code=status.HTTP_200_OK,
    tags=["Queue"],
    summary="Get permitted queue actions",
)
async def get_queue_actions(
    entry_ref: str,
    engine: SchedulingEngineDep,
    clock: ClockDep,
) -> QueueActionsResponse:
    """
    Get the statuses an entry may move to right now.

    Args:
        entry_ref: Queue entry ID or ``apt-<appointment id>``
        engine: Scheduling engine
        clock: Wall clock

    Returns:
        Time gate state and allowed target statuses
    """
    return await engine.available_actions(entry_ref, clock())


@router.post(
    "/{entry_ref}/transition",
    response_model=PersistedQueueEntry,
    status_code=status.HTTP_200_OK,
    tags=["Queue"],
    summary="Change queue entry status",
)
async def transition_queue_entry(
    entry_ref: str,
    data: QueueTransitionRequest,
    engine: SchedulingEngineDep,
    clock: ClockDep,
) -> PersistedQueueEntry:
    """
    Move a queue entry to another status.

    Virtual entries are checked in first; the appointment's time gate
    decides whether a consultation can start or be closed.

    Args:
        entry_ref: Queue entry ID or ``apt-<appointment id>``
        data: Target status
        engine: Scheduling engine
        clock: Wall clock

    Returns:
        Updated entry

    Raises:
        InvalidTransitionError: If the status order or time gate forbids it
    """
    return await engine.apply_queue_transition(entry_ref, data.status, clock())
