"""Patient model definition using SQLAlchemy Core."""

from sqlalchemy import (
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    Text,
    Uuid,
    text,
)

metadata = MetaData()

patients = Table(
    "patients",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("full_name", Text, nullable=False),
    # Contact details used for reminders
    Column("email", String(255), nullable=True),
    Column("phone", String(20), nullable=True),
    Column("notes", Text, nullable=True),
    # Metadata
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
)
