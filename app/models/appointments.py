"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Index,
    MetaData,
    String,
    Table,
    Text,
    Uuid,
    text,
)

# Metadata for all tables
metadata = MetaData()

ACTIVE_SLOT_PREDICATE = text("status <> 'cancelled'")

# Appointments table
appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True),
    # Ownership / references
    Column("doctor_id", Uuid, nullable=False, index=True),
    Column("patient_id", Uuid, nullable=False, index=True),
    # Booked slot start, compared by exact equality
    Column("scheduled_at", DateTime(timezone=True), nullable=False),
    # Status management
    Column("status", String(20), nullable=False, server_default="scheduled"),
    # Pending reminder job handle
    Column("reminder_job_id", String(64), nullable=True),
    Column("notes", Text, nullable=True),
    # Audit fields
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    Column(
        "updated_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    # Constraints
    CheckConstraint(
        "status IN ('scheduled', 'completed', 'cancelled', 'no_show')",
        name="appointments_status_check",
    ),
    # One active appointment per doctor and slot
    Index(
        "uq_appointments_doctor_slot_active",
        "doctor_id",
        "scheduled_at",
        unique=True,
        postgresql_where=ACTIVE_SLOT_PREDICATE,
        sqlite_where=ACTIVE_SLOT_PREDICATE,
    ),
)
