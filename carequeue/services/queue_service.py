"""Queue service: the persisted patient check-in queue."""

from datetime import UTC, datetime
from uuid import UUID

import structlog
from sqlalchemy import Select, case, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from carequeue.core.exceptions import ConflictException, DuplicateQueueEntryError
from carequeue.models.appointments import appointments
from carequeue.models.patient_queue import patient_queue
from carequeue.schemas.queue import (
    PRIORITY_RANK,
    PersistedQueueEntry,
    QueuePriority,
    QueueStatus,
)

logger = structlog.get_logger()


def _entries_query() -> Select:
    """Queue rows joined with the time of their appointment, if any."""
    return select(
        patient_queue,
        appointments.c.appointment_date,
        appointments.c.appointment_time,
    ).select_from(
        patient_queue.outerjoin(appointments, patient_queue.c.appointment_id == appointments.c.id)
    )


class QueueService:
    """Service for the check-in queue.

    Every write is a single conditional statement so two consoles acting
    on the same entry cannot both win.
    """

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def get_entry(self, entry_id: UUID) -> PersistedQueueEntry | None:
        """Get queue entry by ID, or None."""
        result = await self.db.execute(_entries_query().where(patient_queue.c.id == entry_id))
        row = result.mappings().first()
        if not row:
            return None
        return PersistedQueueEntry.model_validate(dict(row))

    async def get_entry_for_appointment(self, appointment_id: UUID) -> PersistedQueueEntry | None:
        """Get the queue entry linked to an appointment, or None."""
        result = await self.db.execute(
            _entries_query().where(patient_queue.c.appointment_id == appointment_id)
        )
        row = result.mappings().first()
        if not row:
            return None
        return PersistedQueueEntry.model_validate(dict(row))

    async def list_entries(
        self,
        clinician_id: UUID | None = None,
        status: QueueStatus | None = None,
    ) -> list[PersistedQueueEntry]:
        """
        List queue entries.

        Args:
            clinician_id: Restrict to one clinician; None for all
            status: Restrict to one status

        Returns:
            Entries, most urgent first, then by check-in time
        """
        stmt = _entries_query()
        if clinician_id is not None:
            stmt = stmt.where(patient_queue.c.clinician_id == clinician_id)
        if status is not None:
            stmt = stmt.where(patient_queue.c.status == status.value)

        priority_rank = case(
            {p.value: rank for p, rank in PRIORITY_RANK.items()},
            value=patient_queue.c.priority,
            else_=0,
        )
        stmt = stmt.order_by(priority_rank.desc(), patient_queue.c.checked_in_at.asc())

        result = await self.db.execute(stmt)
        return [PersistedQueueEntry.model_validate(dict(row)) for row in result.mappings().all()]

    async def create_entry(
        self,
        patient_id: UUID,
        clinician_id: UUID | None,
        appointment_id: UUID | None = None,
        priority: QueuePriority = QueuePriority.NORMAL,
        notes: str | None = None,
    ) -> PersistedQueueEntry:
        """
        Insert a waiting queue entry.

        Args:
            patient_id: Patient record ID
            clinician_id: Clinician the patient waits for
            appointment_id: Linked appointment; None for walk-ins
            priority: Queue priority
            notes: Free-text notes

        Returns:
            Created entry

        Raises:
            DuplicateQueueEntryError: If the appointment already has an entry
        """
        now = datetime.now(UTC)
        stmt = (
            insert(patient_queue)
            .values(
                patient_id=patient_id,
                clinician_id=clinician_id,
                appointment_id=appointment_id,
                status=QueueStatus.WAITING.value,
                priority=priority.value,
                notes=notes,
                checked_in_at=now,
                updated_at=now,
            )
            .returning(patient_queue.c.id)
        )
        try:
            result = await self.db.execute(stmt)
            entry_id = result.scalar_one()
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            if appointment_id is not None and await self.get_entry_for_appointment(appointment_id):
                raise DuplicateQueueEntryError()
            raise ConflictException("Queue entry could not be created")

        logger.info(
            "queue_entry_created",
            entry_id=str(entry_id),
            appointment_id=str(appointment_id) if appointment_id else None,
            clinician_id=str(clinician_id) if clinician_id else None,
        )
        entry = await self.get_entry(entry_id)
        if not entry:
            raise ValueError("Failed to create queue entry")
        return entry

    async def update_status_if(
        self,
        entry_id: UUID,
        expected: QueueStatus,
        new: QueueStatus,
    ) -> PersistedQueueEntry | None:
        """
        Set a new status only while the stored status is still ``expected``.

        Returns:
            Updated entry, or None when the entry is missing or its status moved
        """
        stmt = (
            update(patient_queue)
            .where(
                patient_queue.c.id == entry_id,
                patient_queue.c.status == expected.value,
            )
            .values(status=new.value, updated_at=datetime.now(UTC))
            .returning(patient_queue.c.id)
        )
        result = await self.db.execute(stmt)
        updated_id = result.scalar_one_or_none()
        await self.db.commit()

        if updated_id is None:
            return None
        return await self.get_entry(updated_id)

    async def get_linked_appointment_ids(self, appointment_ids: list[UUID]) -> set[UUID]:
        """Subset of ``appointment_ids`` that already have a queue entry."""
        if not appointment_ids:
            return set()
        stmt = select(patient_queue.c.appointment_id).where(
            patient_queue.c.appointment_id.in_(appointment_ids)
        )
        result = await self.db.execute(stmt)
        return set(result.scalars().all())
