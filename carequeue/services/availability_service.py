"""Availability service: clinicians' recurring weekly calendars."""

from uuid import UUID

import structlog
from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from carequeue.config import settings
from carequeue.core.redis_client import CacheManager
from carequeue.models.availability import availability_windows
from carequeue.schemas.availability import AvailabilityWindow, AvailabilityWindowCreate

logger = structlog.get_logger()


class AvailabilityService:
    """Service for clinician availability windows."""

    def __init__(self, db: AsyncSession, cache_manager: CacheManager | None = None):
        """Initialize service with database session and optional cache manager."""
        self.db = db
        self.cache = cache_manager

    @staticmethod
    def _get_cache_key(clinician_id: UUID) -> str:
        """Generate cache key for a clinician's calendar."""
        return f"availability:{clinician_id}"

    async def list_windows(self, clinician_id: UUID) -> list[AvailabilityWindow]:
        """
        Get every window of a clinician, available or not.

        Args:
            clinician_id: Clinician ID

        Returns:
            Windows ordered by weekday and start time
        """
        if self.cache:
            cached = self.cache.get_json(self._get_cache_key(clinician_id))
            if cached is not None:
                return [AvailabilityWindow.model_validate(item) for item in cached]

        stmt = (
            select(availability_windows)
            .where(availability_windows.c.clinician_id == clinician_id)
            .order_by(availability_windows.c.day_of_week, availability_windows.c.start_time)
        )
        result = await self.db.execute(stmt)
        windows = [AvailabilityWindow.model_validate(dict(row)) for row in result.mappings().all()]

        if self.cache:
            self.cache.set_json(
                self._get_cache_key(clinician_id),
                [w.model_dump(mode="json") for w in windows],
                ttl=settings.availability_cache_ttl,
            )

        return windows

    async def get_windows(self, clinician_id: UUID, day_of_week: int) -> list[AvailabilityWindow]:
        """Get the available windows of a clinician on one weekday (0 = Sunday)."""
        windows = await self.list_windows(clinician_id)
        return [w for w in windows if w.day_of_week == day_of_week and w.is_available]

    async def replace_windows(
        self,
        clinician_id: UUID,
        windows: list[AvailabilityWindowCreate],
    ) -> list[AvailabilityWindow]:
        """
        Replace a clinician's weekly calendar.

        Args:
            clinician_id: Clinician ID
            windows: New windows; an empty list clears the calendar

        Returns:
            Stored windows
        """
        await self.db.execute(
            delete(availability_windows).where(availability_windows.c.clinician_id == clinician_id)
        )
        if windows:
            await self.db.execute(
                insert(availability_windows),
                [
                    {
                        "clinician_id": clinician_id,
                        "day_of_week": w.day_of_week,
                        "start_time": w.start_time,
                        "end_time": w.end_time,
                        "is_available": w.is_available,
                    }
                    for w in windows
                ],
            )
        await self.db.commit()

        if self.cache:
            self.cache.delete(self._get_cache_key(clinician_id))

        logger.info(
            "availability_replaced",
            clinician_id=str(clinician_id),
            windows=len(windows),
        )
        return await self.list_windows(clinician_id)
