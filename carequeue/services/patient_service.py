"""Patient service: minimal patient records and reference resolution."""

from uuid import UUID

from sqlalchemy import insert, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from carequeue.core.exceptions import ConflictException, NotFoundException
from carequeue.models.patients import patients
from carequeue.schemas.patients import PatientCreate, PatientResponse


class PatientService:
    """Service for patient records."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def register_patient(self, data: PatientCreate) -> PatientResponse:
        """
        Create a patient record for an account.

        Raises:
            ConflictException: If the account already has a patient record
        """
        stmt = insert(patients).values(**data.model_dump()).returning(patients)
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictException("Patient record already exists for this account")

        row = result.mappings().first()
        return PatientResponse.model_validate(dict(row))

    async def get_patient(self, patient_id: UUID) -> PatientResponse:
        """
        Get patient by record ID.

        Raises:
            NotFoundException: If the patient does not exist
        """
        result = await self.db.execute(select(patients).where(patients.c.id == patient_id))
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Patient not found")
        return PatientResponse.model_validate(dict(row))

    async def resolve_patient_id(self, patient_ref: UUID) -> UUID | None:
        """
        Resolve an appointment's patient reference to a patient record ID.

        Appointments carry the patient's account ID; a record ID is accepted
        as well.

        Args:
            patient_ref: Account ID or patient record ID

        Returns:
            Patient record ID, or None if no record matches
        """
        stmt = (
            select(patients.c.id, patients.c.user_id)
            .where(or_(patients.c.user_id == patient_ref, patients.c.id == patient_ref))
            .limit(2)
        )
        result = await self.db.execute(stmt)
        rows = result.all()
        if not rows:
            return None
        # Prefer the account match when both columns hit
        for row in rows:
            if row.user_id == patient_ref:
                return row.id
        return rows[0].id
