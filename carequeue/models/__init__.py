"""Database models."""

from carequeue.models.appointments import appointments
from carequeue.models.availability import availability_windows
from carequeue.models.metadata import metadata
from carequeue.models.patient_queue import patient_queue
from carequeue.models.patients import patients

__all__ = [
    "appointments",
    "availability_windows",
    "metadata",
    "patient_queue",
    "patients",
]
