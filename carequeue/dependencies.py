"""FastAPI dependencies."""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from carequeue.config import settings
from carequeue.core.redis_client import CacheManager, get_redis_client
from carequeue.database import get_db
from carequeue.services.appointment_service import AppointmentService
from carequeue.services.availability_service import AvailabilityService
from carequeue.services.patient_service import PatientService
from carequeue.services.queue_service import QueueService
from carequeue.services.scheduling_service import SchedulingEngine

Clock = Callable[[], datetime]


def get_cache_manager() -> CacheManager | None:
    """
    Get the Redis cache manager.

    Returns:
        Cache manager, or None when caching is disabled
    """
    if not settings.cache_enabled:
        return None
    return CacheManager(redis_client=get_redis_client())


def get_clock() -> Clock:
    """
    Get the wall clock used to stamp queue actions.

    Returns:
        Callable returning the current aware time
    """
    return lambda: datetime.now(UTC)


def get_availability_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    cache_manager: Annotated[CacheManager | None, Depends(get_cache_manager)],
) -> AvailabilityService:
    """Build the availability service."""
    return AvailabilityService(db, cache_manager=cache_manager)


def get_scheduling_engine(
    db: Annotated[AsyncSession, Depends(get_db)],
    availability: Annotated[AvailabilityService, Depends(get_availability_service)],
) -> SchedulingEngine:
    """Build the scheduling engine over the database-backed services."""
    return SchedulingEngine(
        availability=availability,
        appointments=AppointmentService(db),
        patients=PatientService(db),
        queue=QueueService(db),
    )


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CacheManagerDep = Annotated[CacheManager | None, Depends(get_cache_manager)]
ClockDep = Annotated[Clock, Depends(get_clock)]
AvailabilityServiceDep = Annotated[AvailabilityService, Depends(get_availability_service)]
SchedulingEngineDep = Annotated[SchedulingEngine, Depends(get_scheduling_engine)]
