"""Patient record endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from carequeue.dependencies import DatabaseSession
from carequeue.schemas.patients import PatientCreate, PatientResponse
from carequeue.services.patient_service import PatientService

router = APIRouter()


@router.post(
    "/",
    response_model=PatientResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Patients"],
    summary="Register patient record",
)
async def register_patient(
    data: PatientCreate,
    db: DatabaseSession,
) -> PatientResponse:
    """
    Register the patient record of an account.

    Appointments for the account can only be queued once it exists.

    Raises:
        ConflictException: If the account already has a record
    """
    service = PatientService(db)
    return await service.register_patient(data)


@router.get(
    "/{patient_id}",
    response_model=PatientResponse,
    status_code=status.HTTP_200_OK,
    tags=["Patients"],
    summary="Get patient record",
)
async def get_patient(
    patient_id: UUID,
    db: DatabaseSession,
) -> PatientResponse:
    """Get a patient record by ID."""
    service = PatientService(db)
    return await service.get_patient(patient_id)
