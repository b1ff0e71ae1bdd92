"""Appointment service: the booking ledger."""

from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from carequeue.core.exceptions import BadRequestException, ConflictException, NotFoundException
from carequeue.models.appointments import appointments
from carequeue.schemas.appointments import (
    LIVE_STATUSES,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
)

logger = structlog.get_logger()

_LIVE_VALUES = [s.value for s in LIVE_STATUSES]


class AppointmentService:
    """Service for managing appointments."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def create_appointment(self, data: AppointmentCreate) -> AppointmentResponse:
        """
        Create a new appointment.

        The caller is expected to have checked the slot against the
        clinician's generated slots; the unique slot index still rejects a
        concurrent booking of the same time.

        Args:
            data: Appointment creation data

        Returns:
            Created appointment

        Raises:
            ConflictException: If the slot is already booked
        """
        now = datetime.now(UTC)
        values = {
            **data.model_dump(),
            "status": AppointmentStatus.SCHEDULED.value,
            "created_at": now,
            "updated_at": now,
        }

        stmt = insert(appointments).values(**values).returning(appointments)
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictException("This time slot is already booked")

        row = result.mappings().first()
        appointment = AppointmentResponse.model_validate(dict(row))
        logger.info(
            "appointment_booked",
            appointment_id=str(appointment.id),
            clinician_id=str(appointment.clinician_id),
            date=appointment.appointment_date.isoformat(),
            time=appointment.appointment_time,
        )
        return appointment

    async def get_appointment_by_id(self, appointment_id: UUID) -> AppointmentResponse | None:
        """Get appointment by ID, or None."""
        result = await self.db.execute(select(appointments).where(appointments.c.id == appointment_id))
        row = result.mappings().first()
        if not row:
            return None
        return AppointmentResponse.model_validate(dict(row))

    async def get_appointment(self, appointment_id: UUID) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
        """
        appointment = await self.get_appointment_by_id(appointment_id)
        if appointment is None:
            raise NotFoundException("Appointment not found")
        return appointment

    async def list_appointments(self, filters: AppointmentFilters) -> AppointmentListResponse:
        """
        List appointments with filtering and pagination.

        Args:
            filters: Filter and pagination parameters

        Returns:
            Paginated list of appointments
        """
        conditions: list[Any] = []

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.clinician_id:
            conditions.append(appointments.c.clinician_id == filters.clinician_id)

        if filters.patient_id:
            conditions.append(appointments.c.patient_id == filters.patient_id)

        if filters.from_date:
            conditions.append(appointments.c.appointment_date >= filters.from_date)

        if filters.to_date:
            conditions.append(appointments.c.appointment_date <= filters.to_date)

        # Count total
        count_stmt = select(func.count()).select_from(appointments).where(and_(True, *conditions))
        total_result = await self.db.execute(count_stmt)
        total = total_result.scalar() or 0

        # Get paginated results
        offset = (filters.page - 1) * filters.page_size

        stmt = (
            select(appointments)
            .where(and_(True, *conditions))
            .order_by(appointments.c.appointment_date.desc(), appointments.c.appointment_time.desc())
            .limit(filters.page_size)
            .offset(offset)
        )

        result = await self.db.execute(stmt)
        items = [AppointmentResponse.model_validate(dict(row)) for row in result.mappings().all()]

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=items,
        )

    async def get_booked_times(self, clinician_id: UUID, on_date: date) -> set[str]:
        """
        Get the times a clinician is booked on a date.

        Args:
            clinician_id: Clinician ID
            on_date: Date

        Returns:
            HH:MM times of non-cancelled appointments
        """
        stmt = select(appointments.c.appointment_time).where(
            appointments.c.clinician_id == clinician_id,
            appointments.c.appointment_date == on_date,
            appointments.c.status != AppointmentStatus.CANCELLED.value,
        )
        result = await self.db.execute(stmt)
        return set(result.scalars().all())

    async def get_appointments_for_day(
        self,
        on_date: date,
        clinician_id: UUID | None = None,
    ) -> list[AppointmentResponse]:
        """
        Get appointments on a date.

        Args:
            on_date: Date
            clinician_id: Restrict to one clinician; None for all

        Returns:
            Appointments ordered by time
        """
        stmt = select(appointments).where(appointments.c.appointment_date == on_date)
        if clinician_id is not None:
            stmt = stmt.where(appointments.c.clinician_id == clinician_id)
        stmt = stmt.order_by(appointments.c.appointment_time)

        result = await self.db.execute(stmt)
        return [AppointmentResponse.model_validate(dict(row)) for row in result.mappings().all()]

    async def _update_live(
        self,
        appointment_id: UUID,
        values: dict[str, Any],
        action: str,
    ) -> AppointmentResponse:
        """Apply ``values`` only while the appointment is still live."""
        values["updated_at"] = datetime.now(UTC)
        stmt = (
            update(appointments)
            .where(
                appointments.c.id == appointment_id,
                appointments.c.status.in_(_LIVE_VALUES),
            )
            .values(**values)
            .returning(appointments)
        )
        try:
            result = await self.db.execute(stmt)
            row = result.mappings().first()
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictException("This time slot is already booked")

        if row is None:
            current = await self.get_appointment(appointment_id)
            raise BadRequestException(f"Cannot {action} a {current.status.value} appointment")

        return AppointmentResponse.model_validate(dict(row))

    async def reschedule(
        self,
        appointment_id: UUID,
        data: AppointmentReschedule,
    ) -> AppointmentResponse:
        """
        Move an appointment to another slot.

        Raises:
            NotFoundException: If appointment not found
            BadRequestException: If the appointment is completed or cancelled
            ConflictException: If the new slot is taken
        """
        appointment = await self._update_live(
            appointment_id,
            {
                "appointment_date": data.appointment_date,
                "appointment_time": data.appointment_time,
                "status": AppointmentStatus.RESCHEDULED.value,
            },
            "reschedule",
        )
        logger.info(
            "appointment_rescheduled",
            appointment_id=str(appointment_id),
            date=data.appointment_date.isoformat(),
            time=data.appointment_time,
        )
        return appointment

    async def cancel(self, appointment_id: UUID) -> AppointmentResponse:
        """
        Cancel an appointment, releasing its slot.

        Cancelling an already cancelled appointment returns it unchanged.

        Raises:
            NotFoundException: If appointment not found
            BadRequestException: If the appointment is completed
        """
        current = await self.get_appointment(appointment_id)
        if current.status == AppointmentStatus.CANCELLED:
            return current

        now = datetime.now(UTC)
        appointment = await self._update_live(
            appointment_id,
            {"status": AppointmentStatus.CANCELLED.value, "cancelled_at": now},
            "cancel",
        )
        logger.info("appointment_cancelled", appointment_id=str(appointment_id))
        return appointment

    async def update_status(
        self,
        appointment_id: UUID,
        data: AppointmentStatusUpdate,
    ) -> AppointmentResponse:
        """
        Confirm or complete an appointment.

        Raises:
            BadRequestException: For other target statuses or a terminal appointment
        """
        if data.status not in (AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED):
            raise BadRequestException(
                "Use the reschedule or cancel operations for this status change"
            )

        values: dict[str, Any] = {"status": data.status.value}
        if data.notes:
            values["notes"] = data.notes

        return await self._update_live(appointment_id, values, f"mark as {data.status.value}")
