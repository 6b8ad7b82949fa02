"""Database models."""

from sqlalchemy import MetaData

from app.models.appointments import appointments
from app.models.appointments import metadata as appointments_metadata
from app.models.doctors import doctors
from app.models.doctors import metadata as doctors_metadata
from app.models.patients import metadata as patients_metadata
from app.models.patients import patients
from app.models.push_tokens import metadata as push_tokens_metadata
from app.models.push_tokens import push_tokens


def combined_metadata() -> MetaData:
    """Collect every table into one MetaData for create_all/drop_all."""
    metadata = MetaData()
    for source in (
        appointments_metadata,
        doctors_metadata,
        patients_metadata,
        push_tokens_metadata,
    ):
        for table in source.tables.values():
            table.to_metadata(metadata)
    return metadata


__all__ = [
    "appointments",
    "combined_metadata",
    "doctors",
    "patients",
    "push_tokens",
]
