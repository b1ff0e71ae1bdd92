"""Create patients, appointments, availability and queue tables.

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False
    )


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        postgresql.TIMESTAMP(timezone=True),
        server_default=sa.text("NOW()"),
        nullable=False,
    )


def upgrade() -> None:
    """Upgrade database schema."""
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # Patients
    op.create_table(
        "patients",
        _uuid_pk(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("phone", sa.VARCHAR(length=20), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_patients_user_id", "patients", ["user_id"], unique=True)

    # Appointments
    op.create_table(
        "appointments",
        _uuid_pk(),
        sa.Column("clinician_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("patient_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("appointment_date", sa.Date(), nullable=False),
        sa.Column("appointment_time", sa.VARCHAR(length=5), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), server_default="scheduled", nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.Column("cancelled_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('scheduled', 'confirmed', 'rescheduled', 'cancelled', 'completed')",
            name="appointments_status_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_appointments_clinician_id", "appointments", ["clinician_id"])
    op.create_index("ix_appointments_patient_id", "appointments", ["patient_id"])
    op.create_index(
        "idx_appointments_clinician_date", "appointments", ["clinician_id", "appointment_date"]
    )
    op.create_index(
        "uq_appointments_active_slot",
        "appointments",
        ["clinician_id", "appointment_date", "appointment_time"],
        unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
    )

    # Weekly availability
    op.create_table(
        "availability_windows",
        _uuid_pk(),
        sa.Column("clinician_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("day_of_week", sa.SmallInteger(), nullable=False),
        sa.Column("start_time", sa.VARCHAR(length=5), nullable=False),
        sa.Column("end_time", sa.VARCHAR(length=5), nullable=False),
        sa.Column("is_available", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        _timestamp("created_at"),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="availability_windows_day_check"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_availability_clinician_day", "availability_windows", ["clinician_id", "day_of_week"]
    )

    # Check-in queue
    op.create_table(
        "patient_queue",
        _uuid_pk(),
        sa.Column("patient_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("appointment_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("clinician_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("status", sa.Text(), server_default="waiting", nullable=False),
        sa.Column("priority", sa.Text(), server_default="normal", nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        _timestamp("checked_in_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "status IN ('waiting', 'in_consultation', 'completed')",
            name="patient_queue_status_check",
        ),
        sa.CheckConstraint(
            "priority IN ('low', 'normal', 'high', 'urgent')",
            name="patient_queue_priority_check",
        ),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("appointment_id", name="uq_patient_queue_appointment_id"),
    )
    op.create_index("ix_patient_queue_patient_id", "patient_queue", ["patient_id"])
    op.create_index(
        "idx_patient_queue_clinician_status", "patient_queue", ["clinician_id", "status"]
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("idx_patient_queue_clinician_status", table_name="patient_queue")
    op.drop_index("ix_patient_queue_patient_id", table_name="patient_queue")
    op.drop_table("patient_queue")

    op.drop_index("idx_availability_clinician_day", table_name="availability_windows")
    op.drop_table("availability_windows")

    op.drop_index("uq_appointments_active_slot", table_name="appointments")
    op.drop_index("idx_appointments_clinician_date", table_name="appointments")
    op.drop_index("ix_appointments_patient_id", table_name="appointments")
    op.drop_index("ix_appointments_clinician_id", table_name="appointments")
    op.drop_table("appointments")

    op.drop_index("ix_patients_user_id", table_name="patients")
    op.drop_table("patients")
