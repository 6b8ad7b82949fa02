"""Appointment service for booking workflows."""

from datetime import datetime
from typing import Any
from uuid import UUID

import structlog

from app.core.exceptions import ConflictDetected, NotFoundException, SlotAlreadyBooked
from app.repositories.base import AppointmentRepository
from app.schemas.appointments import (
    Appointment,
    AppointmentCreate,
    AppointmentStatus,
    AppointmentUpdate,
    ConflictReport,
)
from app.services.conflict_resolver import ConflictResolver
from app.services.reminder_scheduler import ReminderScheduler

logger = structlog.get_logger(__name__)


class AppointmentCoordinator:
    """
    Creates, updates and deletes appointments.

    Keeps three things consistent: the stored appointment, the absence of
    double bookings, and the appointment's pending reminder job. Reminder
    problems never fail a booking; they are logged and the appointment is
    kept.
    """

    def __init__(
        self,
        repository: AppointmentRepository,
        resolver: ConflictResolver,
        reminders: ReminderScheduler,
    ):
        """Initialize service with its collaborators."""
        self.repository = repository
        self.resolver = resolver
        self.reminders = reminders

    async def check_conflict(
        self,
        doctor_id: UUID,
        requested_at: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> ConflictReport:
        """Check a slot without booking it."""
        return await self.resolver.check_conflict(doctor_id, requested_at, exclude_appointment_id)

    async def create_appointment(self, data: AppointmentCreate) -> Appointment:
        """
        Book a new appointment and schedule its reminder.

        Args:
            data: Appointment creation data

        Returns:
            Created appointment, carrying the reminder handle when one was scheduled

        Raises:
            ConflictDetected: If the doctor is already booked at that time
            RepositoryUnavailable: If the appointment cannot be checked or stored
        """
        report = await self.resolver.check_conflict(data.doctor_id, data.scheduled_at)
        report.raise_for_conflict()

        appointment = Appointment(
            doctor_id=data.doctor_id,
            patient_id=data.patient_id,
            scheduled_at=data.scheduled_at,
            notes=data.notes,
        )
        appointment = await self._save_or_conflict(appointment)

        logger.info(
            "appointment_created",
            appointment_id=str(appointment.id),
            doctor_id=str(appointment.doctor_id),
            scheduled_at=appointment.scheduled_at.isoformat(),
        )

        try:
            job_id = await self.reminders.schedule_reminder(appointment)
            if job_id:
                appointment = await self._store_reminder_handle(appointment, job_id)
        except Exception as e:
            logger.warning(
                "failed_to_schedule_reminder",
                appointment_id=str(appointment.id),
                error=str(e),
            )

        return appointment

    async def update_appointment(
        self,
        appointment_id: UUID,
        data: AppointmentUpdate,
    ) -> Appointment:
        """
        Update an existing appointment and keep its reminder in step.

        Args:
            appointment_id: Appointment ID
            data: Update data; unset fields are left unchanged

        Returns:
            Updated appointment

        Raises:
            NotFoundException: If appointment not found
            ConflictDetected: If the new or reactivated slot is already booked; nothing is changed
            RepositoryUnavailable: If the appointment cannot be checked or stored
        """
        current = await self.repository.get_appointment(appointment_id)
        if current is None:
            raise NotFoundException("Appointment not found")

        update_values: dict[str, Any] = {}
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is not None or field == "notes":
                update_values[field] = value

        if not update_values:
            # No changes, return current state
            return current

        time_changed = (
            "scheduled_at" in update_values
            and update_values["scheduled_at"] != current.scheduled_at
        )
        reactivated = (
            current.status is AppointmentStatus.CANCELLED
            and update_values.get("status", current.status) is not AppointmentStatus.CANCELLED
        )
        if time_changed or reactivated:
            report = await self.resolver.check_conflict(
                current.doctor_id,
                update_values.get("scheduled_at", current.scheduled_at),
                appointment_id,
            )
            report.raise_for_conflict()

        updated = Appointment.model_validate({**current.model_dump(), **update_values})
        updated = await self._save_or_conflict(updated, exclude_appointment_id=appointment_id)

        logger.info(
            "appointment_updated",
            appointment_id=str(appointment_id),
            fields=sorted(update_values),
            status=updated.status.value,
        )

        try:
            updated = await self._sync_reminder(current, updated, time_changed)
        except Exception as e:
            logger.warning(
                "failed_to_update_reminder",
                appointment_id=str(appointment_id),
                error=str(e),
            )

        return updated

    async def cancel_appointment(self, appointment_id: UUID) -> Appointment:
        """Mark an appointment cancelled and drop its pending reminder."""
        return await self.update_appointment(
            appointment_id, AppointmentUpdate(status=AppointmentStatus.CANCELLED)
        )

    async def delete_appointment(self, appointment_id: UUID) -> bool:
        """
        Permanently delete an appointment.

        Args:
            appointment_id: Appointment ID

        Returns:
            False if the appointment did not exist
        """
        current = await self.repository.get_appointment(appointment_id)
        if current is None:
            return False

        if current.reminder_job_id:
            try:
                await self.reminders.cancel_reminder(current.reminder_job_id)
            except Exception as e:
                logger.warning(
                    "failed_to_cancel_reminder",
                    appointment_id=str(appointment_id),
                    job_id=current.reminder_job_id,
                    error=str(e),
                )

        deleted = await self.repository.delete_appointment(appointment_id)
        logger.info("appointment_deleted", appointment_id=str(appointment_id), deleted=deleted)
        return deleted

    async def _sync_reminder(
        self, previous: Appointment, updated: Appointment, time_changed: bool
    ) -> Appointment:
        handle = updated.reminder_job_id

        if updated.status.suppresses_reminder:
            if handle:
                await self.reminders.cancel_reminder(handle)
                return await self._store_reminder_handle(updated, None)
            return updated

        if time_changed and handle:
            try:
                job_id = await self.reminders.reschedule_reminder(handle, updated)
            except Exception as e:
                # The old job is gone or stale either way
                logger.warning(
                    "failed_to_reschedule_reminder",
                    appointment_id=str(updated.id),
                    job_id=handle,
                    error=str(e),
                )
                return await self._store_reminder_handle(updated, None)
            return await self._store_reminder_handle(updated, job_id)

        if time_changed or (previous.status is not AppointmentStatus.SCHEDULED and not handle):
            job_id = await self.reminders.schedule_reminder(updated)
            return await self._store_reminder_handle(updated, job_id)

        return updated

    async def _store_reminder_handle(
        self, appointment: Appointment, job_id: str | None
    ) -> Appointment:
        if appointment.reminder_job_id == job_id:
            return appointment
        return await self.repository.save_appointment(
            appointment.model_copy(update={"reminder_job_id": job_id})
        )

    async def _save_or_conflict(
        self, appointment: Appointment, exclude_appointment_id: UUID | None = None
    ) -> Appointment:
        try:
            return await self.repository.save_appointment(appointment)
        except SlotAlreadyBooked:
            report = await self.resolver.check_conflict(
                appointment.doctor_id, appointment.scheduled_at, exclude_appointment_id
            )
            logger.info(
                "appointment_slot_race_lost",
                appointment_id=str(appointment.id),
                doctor_id=str(appointment.doctor_id),
            )
            raise ConflictDetected(
                conflicting_appointments=report.conflicting_appointments,
                suggested_times=report.suggested_times,
            ) from None
