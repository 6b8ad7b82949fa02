"""Reminder scheduling and fire-time processing."""

from datetime import timedelta
from uuid import UUID

import structlog

from app.core.clock import Clock, utc_now
from app.core.exceptions import ReminderDeliveryFailed, SchedulingFailure
from app.repositories.base import AppointmentRepository
from app.schemas.appointments import Appointment, AppointmentStatus
from app.schemas.reminders import ReminderOutcome, ReminderState, reminder_state_for
from app.services.job_scheduler import JobScheduler
from app.services.notification_dispatcher import NotificationDispatcher

logger = structlog.get_logger(__name__)

PROCESS_REMINDER_TASK = "process_reminder_task"


class ReminderScheduler:
    """Owns the reminder job of each appointment."""

    def __init__(
        self,
        repository: AppointmentRepository,
        job_scheduler: JobScheduler,
        dispatcher: NotificationDispatcher,
        lead_time: timedelta = timedelta(hours=24),
        clock: Clock = utc_now,
    ):
        """Initialize scheduler with its collaborators."""
        self.repository = repository
        self.job_scheduler = job_scheduler
        self.dispatcher = dispatcher
        self.lead_time = lead_time
        self._clock = clock

    async def schedule_reminder(self, appointment: Appointment) -> str | None:
        """
        Register a reminder job ahead of the appointment.

        Args:
            appointment: Appointment to remind the patient about

        Returns:
            Job handle, or None when the reminder time has already passed

        Raises:
            SchedulingFailure: If the job scheduler rejects the job
        """
        fire_at = appointment.scheduled_at - self.lead_time
        if fire_at <= self._clock():
            logger.info(
                "reminder_not_scheduled_past_fire_time",
                appointment_id=str(appointment.id),
                fire_at=fire_at.isoformat(),
            )
            return None

        job_id = await self.job_scheduler.schedule_at(
            PROCESS_REMINDER_TASK,
            fire_at,
            appointment_id=str(appointment.id),
        )
        logger.info(
            "reminder_scheduled",
            appointment_id=str(appointment.id),
            job_id=job_id,
            fire_at=fire_at.isoformat(),
            state=ReminderState.SCHEDULED.value,
        )
        return job_id

    async def cancel_reminder(self, job_id: str | None) -> bool:
        """
        Cancel a pending reminder job.

        Args:
            job_id: Handle returned by ``schedule_reminder``

        Returns:
            True only if a pending job was removed
        """
        if not job_id:
            return False

        try:
            cancelled = await self.job_scheduler.cancel(job_id)
        except SchedulingFailure as e:
            logger.warning("reminder_cancel_failed", job_id=job_id, error=e.message)
            return False

        logger.info(
            "reminder_cancelled" if cancelled else "reminder_cancel_noop",
            job_id=job_id,
            state=ReminderState.CANCELLED.value if cancelled else None,
        )
        return cancelled

    async def reschedule_reminder(
        self, old_job_id: str | None, appointment: Appointment
    ) -> str | None:
        """Cancel the old job if it is still pending, then schedule a new one."""
        await self.cancel_reminder(old_job_id)
        return await self.schedule_reminder(appointment)

    async def process_reminder(
        self, appointment_id: UUID | str, job_id: str | None = None
    ) -> ReminderOutcome:
        """
        Send the reminder for an appointment if it is still due.

        Safe to run more than once for the same appointment: the appointment
        is reloaded and re-checked every time.

        Args:
            appointment_id: Appointment the job was scheduled for
            job_id: Handle of the firing job; a job that is no longer the
                appointment's current reminder is suppressed

        Returns:
            SENT, or one of the SUPPRESSED_* outcomes

        Raises:
            ReminderDeliveryFailed: If every channel and retry failed
            RepositoryUnavailable: If the appointment cannot be loaded
        """
        if isinstance(appointment_id, str):
            appointment_id = UUID(appointment_id)

        details = await self.repository.get_appointment_details(appointment_id)

        if details is None:
            outcome = ReminderOutcome.SUPPRESSED_NOT_FOUND
        elif details.appointment.status is not AppointmentStatus.SCHEDULED:
            outcome = ReminderOutcome.SUPPRESSED_STATUS
        elif job_id is not None and details.appointment.reminder_job_id != job_id:
            outcome = ReminderOutcome.SUPPRESSED_SUPERSEDED
        elif details.appointment.scheduled_at <= self._clock():
            outcome = ReminderOutcome.SUPPRESSED_STALE
        else:
            result = await self.dispatcher.send_appointment_reminder(details)
            outcome = ReminderOutcome.SENT if result.is_success else ReminderOutcome.FAILED

            if not result.is_success:
                logger.error(
                    "reminder_delivery_failed",
                    appointment_id=str(appointment_id),
                    state=reminder_state_for(outcome).value,
                    **result.log_fields(),
                )
                raise ReminderDeliveryFailed(appointment_id, result.error_message)

        logger.info(
            "reminder_processed",
            appointment_id=str(appointment_id),
            outcome=outcome.value,
            job_id=job_id,
            state=reminder_state_for(outcome).value,
            status=details.appointment.status.value if details else None,
        )
        return outcome
