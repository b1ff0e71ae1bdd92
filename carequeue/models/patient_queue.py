"""Patient check-in queue table using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Table,
    Text,
    Uuid,
    func,
)

from carequeue.models.metadata import metadata

patient_queue = Table(
    "patient_queue",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column(
        "patient_id",
        Uuid,
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    # NULL for walk-ins; at most one entry per appointment
    Column(
        "appointment_id",
        Uuid,
        ForeignKey("appointments.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    ),
    Column("clinician_id", Uuid, nullable=True),
    Column("status", Text, nullable=False, server_default="waiting"),
    Column("priority", Text, nullable=False, server_default="normal"),
    Column("notes", Text, nullable=True),
    Column("checked_in_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "status IN ('waiting', 'in_consultation', 'completed')",
        name="patient_queue_status_check",
    ),
    CheckConstraint(
        "priority IN ('low', 'normal', 'high', 'urgent')",
        name="patient_queue_priority_check",
    ),
    Index("idx_patient_queue_clinician_status", "clinician_id", "status"),
)
