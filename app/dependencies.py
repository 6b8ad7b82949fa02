"""Service wiring from application settings."""

from datetime import timedelta

import httpx
import structlog

from app.config import Settings, settings
from app.core.firebase import initialize_firebase
from app.repositories.base import AppointmentRepository
from app.schemas.appointments import BookingPolicy
from app.schemas.notifications import NotificationChannel, NotificationPolicy
from app.services.appointment_coordinator import AppointmentCoordinator
from app.services.channels.base import ChannelSender
from app.services.channels.email import ResendEmailSender
from app.services.channels.push import FcmPushSender
from app.services.channels.twilio import TwilioMessageSender
from app.services.conflict_resolver import ConflictResolver
from app.services.job_scheduler import JobScheduler
from app.services.notification_dispatcher import NotificationDispatcher
from app.services.reminder_scheduler import ReminderScheduler

logger = structlog.get_logger(__name__)


def create_http_client(config: Settings = settings) -> httpx.AsyncClient:
    """HTTP client shared by the REST-based channel senders."""
    return httpx.AsyncClient(timeout=config.twilio_timeout_seconds)


def build_channel_senders(
    config: Settings = settings, http_client: httpx.AsyncClient | None = None
) -> dict[NotificationChannel, ChannelSender]:
    """
    Create a sender for every channel whose provider is configured.

    Args:
        config: Application settings
        http_client: Client for the Twilio senders; required if Twilio is configured

    Returns:
        Channel table for the notification dispatcher
    """
    senders: dict[NotificationChannel, ChannelSender] = {}

    if config.email_configured:
        senders[NotificationChannel.EMAIL] = ResendEmailSender(
            api_key=config.resend_api_key,
            from_address=config.email_from_address,
            from_name=config.email_from_name,
        )

    if (config.sms_configured or config.whatsapp_configured) and http_client is None:
        raise ValueError("An HTTP client is required for Twilio channels")

    if config.sms_configured and http_client is not None:
        senders[NotificationChannel.SMS] = TwilioMessageSender(
            client=http_client,
            account_sid=config.twilio_account_sid,
            auth_token=config.twilio_auth_token,
            from_number=config.twilio_sms_from,
            channel=NotificationChannel.SMS,
        )

    if config.whatsapp_configured and http_client is not None:
        senders[NotificationChannel.WHATSAPP] = TwilioMessageSender(
            client=http_client,
            account_sid=config.twilio_account_sid,
            auth_token=config.twilio_auth_token,
            from_number=config.twilio_whatsapp_from,
            channel=NotificationChannel.WHATSAPP,
        )

    if config.push_configured:
        app = initialize_firebase(config.firebase_credentials_path, config.firebase_config_json)
        senders[NotificationChannel.PUSH] = FcmPushSender(app)

    logger.info("channel_senders_configured", channels=[c.value for c in senders])
    return senders


def build_dispatcher(
    senders: dict[NotificationChannel, ChannelSender], config: Settings = settings
) -> NotificationDispatcher:
    """Notification dispatcher using the configured channel policy."""
    policy = NotificationPolicy.from_settings(config)
    for channel in {policy.primary_channel, policy.fallback_channel} - set(senders):
        logger.warning("notification_channel_not_configured", channel=channel.value)
    return NotificationDispatcher(
        senders, policy=policy, display_timezone=config.business_timezone
    )


def build_conflict_resolver(
    repository: AppointmentRepository, config: Settings = settings
) -> ConflictResolver:
    """Conflict resolver using the configured booking policy."""
    return ConflictResolver(repository, BookingPolicy.from_settings(config))


def build_reminder_scheduler(
    repository: AppointmentRepository,
    job_scheduler: JobScheduler,
    dispatcher: NotificationDispatcher,
    config: Settings = settings,
) -> ReminderScheduler:
    """Reminder scheduler using the configured lead time."""
    return ReminderScheduler(
        repository,
        job_scheduler,
        dispatcher,
        lead_time=timedelta(hours=config.reminder_lead_time_hours),
    )


def build_coordinator(
    repository: AppointmentRepository,
    job_scheduler: JobScheduler,
    dispatcher: NotificationDispatcher,
    config: Settings = settings,
) -> AppointmentCoordinator:
    """Appointment coordinator wired from settings."""
    return AppointmentCoordinator(
        repository,
        build_conflict_resolver(repository, config),
        build_reminder_scheduler(repository, job_scheduler, dispatcher, config),
    )
