"""Push tokens model definition using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    Text,
    Uuid,
    text,
    true,
)

metadata = MetaData()

push_tokens = Table(
    "push_tokens",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("patient_id", Uuid, nullable=False, index=True),
    Column("fcm_token", Text, nullable=False),
    Column("platform", String(10), nullable=False),
    Column("is_active", Boolean, nullable=False, server_default=true(), index=True),
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    CheckConstraint(
        "platform IN ('android', 'ios', 'web')",
        name="push_tokens_platform_check",
    ),
)
