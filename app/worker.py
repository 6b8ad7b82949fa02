"""arq worker that fires appointment reminders."""

from typing import Any

import structlog
from arq import Retry

from app.config import settings
from app.core.exceptions import ReminderDeliveryFailed, RepositoryUnavailable
from app.core.logging import configure_logging
from app.core.redis_client import get_redis_settings
from app.database import (
    check_database_connection,
    create_engine_from_settings,
    create_session_factory,
)
from app.dependencies import (
    build_channel_senders,
    build_dispatcher,
    build_reminder_scheduler,
    create_http_client,
)
from app.repositories.appointment_repository import SqlAppointmentRepository
from app.services.job_scheduler import ArqJobScheduler

logger = structlog.get_logger(__name__)


def retry_delay_seconds(job_try: int, base_seconds: int | None = None) -> int:
    """Exponential delay before the next try of a failed reminder job."""
    base = settings.reminder_job_retry_base_seconds if base_seconds is None else base_seconds
    return base * 2 ** (max(job_try, 1) - 1)


async def process_reminder_task(ctx: dict[str, Any], appointment_id: str) -> str:
    """
    Send the reminder for one appointment.

    Args:
        ctx: arq context holding the reminder scheduler and the job id
        appointment_id: Appointment the job was scheduled for

    Returns:
        The reminder outcome value, stored as the job result

    Raises:
        Retry: If delivery or the repository failed and the job should run again
    """
    job_try = ctx.get("job_try", 1)
    structlog.contextvars.bind_contextvars(job_id=ctx.get("job_id"), job_try=job_try)

    try:
        outcome = await ctx["reminder_scheduler"].process_reminder(
            appointment_id, job_id=ctx.get("job_id")
        )
    except (ReminderDeliveryFailed, RepositoryUnavailable) as e:
        defer = retry_delay_seconds(job_try)
        logger.warning(
            "reminder_job_retry",
            appointment_id=appointment_id,
            error=e.message,
            defer_seconds=defer,
            max_tries=settings.reminder_job_max_tries,
        )
        raise Retry(defer=defer) from e
    finally:
        structlog.contextvars.unbind_contextvars("job_id", "job_try")

    return outcome.value


async def startup(ctx: dict[str, Any]) -> None:
    """Wire the reminder pipeline into the worker context."""
    configure_logging()

    engine = create_engine_from_settings(settings)
    if not await check_database_connection(engine):
        logger.error("database_unreachable_at_startup")

    http_client = create_http_client(settings)
    repository = SqlAppointmentRepository(create_session_factory(engine))
    dispatcher = build_dispatcher(build_channel_senders(settings, http_client), settings)
    job_scheduler = ArqJobScheduler(ctx["redis"], queue_name=settings.arq_queue_name)

    ctx["engine"] = engine
    ctx["http_client"] = http_client
    ctx["reminder_scheduler"] = build_reminder_scheduler(
        repository, job_scheduler, dispatcher, settings
    )

    logger.info(
        "reminder_worker_started",
        queue=settings.arq_queue_name,
        max_jobs=settings.worker_max_jobs,
        channels=[c.value for c in dispatcher.channels],
    )


async def shutdown(ctx: dict[str, Any]) -> None:
    """Release connections opened at startup."""
    if http_client := ctx.get("http_client"):
        await http_client.aclose()
    if engine := ctx.get("engine"):
        await engine.dispose()
    logger.info("reminder_worker_stopped")


class WorkerSettings:
    """arq worker settings."""

    functions = [process_reminder_task]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = get_redis_settings(settings)
    queue_name = settings.arq_queue_name

    max_jobs = settings.worker_max_jobs
    job_timeout = settings.worker_job_timeout
    keep_result = 3600

    # Retry settings for failed reminders
    max_tries = settings.reminder_job_max_tries
