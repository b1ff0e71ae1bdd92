"""Appointments table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    String,
    Table,
    Text,
    Uuid,
    func,
    text,
)

from carequeue.models.metadata import metadata

# Appointments table
appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Ownership / references
    Column("clinician_id", Uuid, nullable=False, index=True),
    # Account reference of the patient; resolved to patients.id at check-in
    Column("patient_id", Uuid, nullable=False, index=True),
    # Appointment details (clinic wall-clock)
    Column("appointment_date", Date, nullable=False),
    Column("appointment_time", String(5), nullable=False),
    Column("reason", Text, nullable=False),
    # Status management
    Column(
        "status",
        Text,
        nullable=False,
        server_default="scheduled",
    ),
    # Metadata
    Column("notes", Text, nullable=True),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("cancelled_at", DateTime(timezone=True), nullable=True),
    # Constraints
    CheckConstraint(
        "status IN ('scheduled', 'confirmed', 'rescheduled', 'cancelled', 'completed')",
        name="appointments_status_check",
    ),
    Index("idx_appointments_clinician_date", "clinician_id", "appointment_date"),
    # One live booking per clinician slot
    Index(
        "uq_appointments_active_slot",
        "clinician_id",
        "appointment_date",
        "appointment_time",
        unique=True,
        postgresql_where=text("status <> 'cancelled'"),
        sqlite_where=text("status <> 'cancelled'"),
    ),
)
