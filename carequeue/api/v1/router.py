"""API v1 router configuration."""

from fastapi import APIRouter

from carequeue.api.v1.endpoints import (
    appointments,
    availability,
    health,
    patients,
    queue,
)

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(availability.router, prefix="/clinicians", tags=["Availability"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(patients.router, prefix="/patients", tags=["Patients"])
api_router.include_router(queue.router, prefix="/queue", tags=["Queue"])
