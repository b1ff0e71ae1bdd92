"""Appointment endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from carequeue.config import settings
from carequeue.dependencies import ClockDep, DatabaseSession, SchedulingEngineDep
from carequeue.scheduling.clock import localize
from carequeue.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
)
from carequeue.services.appointment_service import AppointmentService

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Book an appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    engine: SchedulingEngineDep,
    clock: ClockDep,
) -> AppointmentResponse:
    """
    Book one of the clinician's free slots.

    Args:
        data: Appointment creation data
        engine: Scheduling engine
        clock: Wall clock

    Returns:
        Created appointment

    Raises:
        ConflictException: If the time is not a free slot
    """
    today = localize(clock(), settings.clinic_tz).date()
    return await engine.book_appointment(data, today=today)


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments",
)
async def list_appointments(
    db: DatabaseSession,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    clinician_id: UUID | None = Query(None),
    patient_id: UUID | None = Query(None),
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """
    List appointments with filtering.

    Args:
        db: Database session
        status_filter: Filter by status
        clinician_id: Filter by clinician ID
        patient_id: Filter by patient account ID
        from_date: First date to include
        to_date: Last date to include
        page: Page number
        page_size: Items per page

    Returns:
        Paginated list of appointments
    """
    filters = AppointmentFilters(
        status=status_filter,
        clinician_id=clinician_id,
        patient_id=patient_id,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
    )

    service = AppointmentService(db)
    return await service.list_appointments(filters)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Get a specific appointment by ID.

    Raises:
        NotFoundException: If appointment not found
    """
    service = AppointmentService(db)
    return await service.get_appointment(appointment_id)


@router.post(
    "/{appointment_id}/reschedule",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Reschedule appointment",
)
async def reschedule_appointment(
    appointment_id: UUID,
    data: AppointmentReschedule,
    engine: SchedulingEngineDep,
    clock: ClockDep,
) -> AppointmentResponse:
    """
    Move an appointment to another free slot of the same clinician.

    Args:
        appointment_id: Appointment ID
        data: New date and time
        engine: Scheduling engine
        clock: Wall clock

    Returns:
        Rescheduled appointment
    """
    today = localize(clock(), settings.clinic_tz).date()
    return await engine.reschedule_appointment(appointment_id, data, today=today)


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Cancel an appointment and release its slot."""
    service = AppointmentService(db)
    return await service.cancel(appointment_id)


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment status",
)
async def update_appointment_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Confirm or complete an appointment.

    Args:
        appointment_id: Appointment ID
        data: Status update data
        db: Database session

    Returns:
        Updated appointment
    """
    service = AppointmentService(db)
    return await service.update_status(appointment_id, data)
