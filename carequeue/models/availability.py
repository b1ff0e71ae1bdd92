"""Clinician weekly availability table using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    SmallInteger,
    String,
    Table,
    Uuid,
    func,
    text,
)

from carequeue.models.metadata import metadata

availability_windows = Table(
    "availability_windows",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("clinician_id", Uuid, nullable=False),
    # 0 = Sunday ... 6 = Saturday
    Column("day_of_week", SmallInteger, nullable=False),
    Column("start_time", String(5), nullable=False),
    Column("end_time", String(5), nullable=False),
    Column("is_available", Boolean, nullable=False, server_default=text("true")),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "day_of_week BETWEEN 0 AND 6",
        name="availability_windows_day_check",
    ),
    Index("idx_availability_clinician_day", "clinician_id", "day_of_week"),
)
