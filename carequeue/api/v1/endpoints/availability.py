"""Clinician availability and slot endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from carequeue.config import settings
from carequeue.dependencies import AvailabilityServiceDep, ClockDep, SchedulingEngineDep
from carequeue.scheduling.clock import localize
from carequeue.schemas.availability import (
    AvailabilityResponse,
    AvailabilityUpdate,
    SlotListResponse,
)

router = APIRouter()


@router.get(
    "/{clinician_id}/availability",
    response_model=AvailabilityResponse,
    status_code=status.HTTP_200_OK,
    tags=["Availability"],
    summary="Get clinician weekly availability",
)
async def get_availability(
    clinician_id: UUID,
    service: AvailabilityServiceDep,
) -> AvailabilityResponse:
    """
    Get a clinician's recurring weekly calendar.

    Args:
        clinician_id: Clinician ID
        service: Availability service

    Returns:
        All windows, including ones marked unavailable
    """
    windows = await service.list_windows(clinician_id)
    return AvailabilityResponse(clinician_id=clinician_id, windows=windows)


@router.put(
    "/{clinician_id}/availability",
    response_model=AvailabilityResponse,
    status_code=status.HTTP_200_OK,
    tags=["Availability"],
    summary="Replace clinician weekly availability",
)
async def replace_availability(
    clinician_id: UUID,
    data: AvailabilityUpdate,
    service: AvailabilityServiceDep,
) -> AvailabilityResponse:
    """
    Replace a clinician's weekly calendar.

    Args:
        clinician_id: Clinician ID
        data: New windows
        service: Availability service

    Returns:
        Stored calendar
    """
    windows = await service.replace_windows(clinician_id, data.windows)
    return AvailabilityResponse(clinician_id=clinician_id, windows=windows)


@router.get(
    "/{clinician_id}/slots",
    response_model=SlotListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Availability"],
    summary="List bookable slots",
)
async def list_slots(
    clinician_id: UUID,
    engine: SchedulingEngineDep,
    clock: ClockDep,
    on_date: date = Query(..., alias="date"),
) -> SlotListResponse:
    """
    List the free 30-minute slots of a clinician on a date.

    Args:
        clinician_id: Clinician ID
        engine: Scheduling engine
        clock: Wall clock
        on_date: Requested date

    Returns:
        Free slots in time order; empty for past dates
    """
    now = localize(clock(), settings.clinic_tz)
    slots = await engine.generate_slots(clinician_id, on_date, today=now.date())
    return SlotListResponse(
        clinician_id=clinician_id,
        date=on_date,
        generated_at=now,
        slots=slots,
    )
