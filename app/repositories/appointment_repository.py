"""SQLAlchemy Core implementation of the appointment repository."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, delete, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.clock import ensure_aware, utc_now
from app.core.exceptions import RepositoryUnavailable, SlotAlreadyBooked
from app.models.appointments import appointments
from app.models.doctors import doctors
from app.models.patients import patients
from app.models.push_tokens import push_tokens
from app.schemas.appointments import (
    Appointment,
    AppointmentDetails,
    AppointmentStatus,
    PatientContact,
)

logger = structlog.get_logger(__name__)


def _as_utc(value: datetime) -> datetime:
    # Backends without timezone support hand back naive UTC values
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _row_to_appointment(mapping: Any) -> Appointment:
    return Appointment(
        id=mapping["id"],
        doctor_id=mapping["doctor_id"],
        patient_id=mapping["patient_id"],
        scheduled_at=_as_utc(mapping["scheduled_at"]),
        status=AppointmentStatus(mapping["status"]),
        reminder_job_id=mapping["reminder_job_id"],
        notes=mapping["notes"],
        created_at=_as_utc(mapping["created_at"]),
        updated_at=_as_utc(mapping["updated_at"]),
    )


class SqlAppointmentRepository:
    """Appointment repository backed by an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize repository with a session factory."""
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_factory() as session:
                yield session
        except IntegrityError as e:
            logger.warning("appointment_slot_constraint_violated", error=str(e.orig))
            raise SlotAlreadyBooked() from e
        except (SQLAlchemyError, OSError) as e:
            logger.error("appointment_repository_error", error=str(e))
            raise RepositoryUnavailable(f"Appointment repository error: {e}") from e

    async def find_appointments_at(
        self,
        doctor_id: UUID,
        at: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> list[Appointment]:
        """
        Find active appointments occupying an exact slot.

        Args:
            doctor_id: Doctor whose calendar is checked
            at: Slot start
            exclude_appointment_id: Appointment to ignore (the one being updated)

        Returns:
            Non-cancelled appointments at the slot, oldest first
        """
        conditions = [
            appointments.c.doctor_id == doctor_id,
            appointments.c.scheduled_at == ensure_aware(at, "at"),
            appointments.c.status != AppointmentStatus.CANCELLED.value,
        ]
        if exclude_appointment_id is not None:
            conditions.append(appointments.c.id != exclude_appointment_id)

        stmt = (
            select(appointments)
            .where(and_(*conditions))
            .order_by(appointments.c.created_at)
        )

        async with self._session() as session:
            result = await session.execute(stmt)
            rows = result.fetchall()

        return [_row_to_appointment(row._mapping) for row in rows]

    async def get_appointment(self, appointment_id: UUID) -> Appointment | None:
        """Get appointment by ID, or None."""
        stmt = select(appointments).where(appointments.c.id == appointment_id)

        async with self._session() as session:
            result = await session.execute(stmt)
            row = result.fetchone()

        if not row:
            return None
        return _row_to_appointment(row._mapping)

    async def get_appointment_details(self, appointment_id: UUID) -> AppointmentDetails | None:
        """
        Load an appointment together with what a reminder needs.

        Args:
            appointment_id: Appointment ID

        Returns:
            Appointment, patient contact and doctor name, or None if not found
        """
        stmt = (
            select(
                appointments,
                patients.c.full_name.label("patient_name"),
                patients.c.email.label("patient_email"),
                patients.c.phone.label("patient_phone"),
                doctors.c.full_name.label("doctor_name"),
            )
            .select_from(
                appointments.outerjoin(
                    patients, patients.c.id == appointments.c.patient_id
                ).outerjoin(doctors, doctors.c.id == appointments.c.doctor_id)
            )
            .where(appointments.c.id == appointment_id)
        )

        async with self._session() as session:
            result = await session.execute(stmt)
            row = result.fetchone()
            if not row:
                return None

            mapping = row._mapping
            token_result = await session.execute(
                select(push_tokens.c.fcm_token).where(
                    push_tokens.c.patient_id == mapping["patient_id"],
                    push_tokens.c.is_active == True,  # noqa: E712
                )
            )
            tokens = [token for (token,) in token_result.fetchall()]

        appointment = _row_to_appointment(mapping)
        return AppointmentDetails(
            appointment=appointment,
            patient=PatientContact(
                id=appointment.patient_id,
                name=mapping["patient_name"] or "Patient",
                email=mapping["patient_email"],
                phone=mapping["patient_phone"],
                push_tokens=tokens,
            ),
            doctor_name=mapping["doctor_name"],
        )

    async def save_appointment(self, appointment: Appointment) -> Appointment:
        """
        Insert or update an appointment.

        Args:
            appointment: Appointment state to persist

        Returns:
            The stored appointment with a refreshed ``updated_at``

        Raises:
            SlotAlreadyBooked: If another active appointment holds the slot
            RepositoryUnavailable: On any other storage failure
        """
        stored = appointment.model_copy(update={"updated_at": utc_now()})
        values = {
            "doctor_id": stored.doctor_id,
            "patient_id": stored.patient_id,
            "scheduled_at": stored.scheduled_at,
            "status": stored.status.value,
            "reminder_job_id": stored.reminder_job_id,
            "notes": stored.notes,
            "updated_at": stored.updated_at,
        }

        async with self._session() as session:
            async with session.begin():
                result = await session.execute(
                    update(appointments)
                    .where(appointments.c.id == stored.id)
                    .values(**values)
                )
                if result.rowcount == 0:
                    await session.execute(
                        insert(appointments).values(
                            id=stored.id,
                            created_at=stored.created_at,
                            **values,
                        )
                    )

        return stored

    async def delete_appointment(self, appointment_id: UUID) -> bool:
        """Permanently delete an appointment."""
        async with self._session() as session:
            async with session.begin():
                result = await session.execute(
                    delete(appointments).where(appointments.c.id == appointment_id)
                )

        return result.rowcount > 0
