"""Notification dispatch with per-channel retry and fallback."""

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Mapping
from zoneinfo import ZoneInfo

import structlog

from app.core.exceptions import ChannelUnsupported, DeliveryFailure
from app.schemas.appointments import AppointmentDetails
from app.schemas.notifications import (
    NotificationChannel,
    NotificationPolicy,
    NotificationRequest,
    NotificationResult,
    NotificationType,
)
from app.services.channels.base import ChannelSender
from app.services.notification_templates import build_notification_request

logger = structlog.get_logger(__name__)

Sleep = Callable[[float], Awaitable[object]]


class NotificationDispatcher:
    """Delivers notifications over the configured channels."""

    def __init__(
        self,
        senders: Mapping[NotificationChannel, ChannelSender] | Iterable[ChannelSender],
        policy: NotificationPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
        display_timezone: str = "UTC",
    ):
        """
        Initialize dispatcher.

        Args:
            senders: Channel table, or senders keyed by their ``channel``
            policy: Channel selection and retry settings
            sleep: Awaitable used for backoff waits
            display_timezone: Zone used to render appointment times
        """
        if isinstance(senders, Mapping):
            self.senders: dict[NotificationChannel, ChannelSender] = dict(senders)
        else:
            self.senders = {sender.channel: sender for sender in senders}
        self.policy = policy or NotificationPolicy()
        self._sleep = sleep
        self.display_timezone = ZoneInfo(display_timezone)

    @property
    def channels(self) -> list[NotificationChannel]:
        """Channels with a registered sender."""
        return list(self.senders)

    async def send(self, request: NotificationRequest) -> NotificationResult:
        """
        Send a notification on the primary channel, then the fallback.

        Args:
            request: Message and recipient contact details

        Returns:
            Result of the last attempt made
        """
        result = await self._send_with_retry(request, self.policy.primary_channel)
        if result.is_success or not self.policy.has_fallback:
            return result

        logger.info(
            "notification_fallback",
            primary_channel=self.policy.primary_channel.value,
            fallback_channel=self.policy.fallback_channel.value,
            error=result.error_message,
        )
        return await self._send_with_retry(request, self.policy.fallback_channel)

    async def send_appointment_reminder(self, details: AppointmentDetails) -> NotificationResult:
        """Render and send the reminder for an appointment."""
        return await self.send_appointment_notification(
            NotificationType.APPOINTMENT_REMINDER, details
        )

    async def send_appointment_notification(
        self, notification_type: NotificationType, details: AppointmentDetails
    ) -> NotificationResult:
        """Render and send a confirmation, cancellation, reschedule or reminder."""
        request = build_notification_request(notification_type, details, self.display_timezone)
        result = await self.send(request)

        log = logger.info if result.is_success else logger.error
        log(
            "appointment_notification_dispatched",
            notification_type=notification_type.value,
            appointment_id=str(details.appointment.id),
            patient_id=str(details.patient.id),
            **result.log_fields(),
        )
        return result

    async def send_via_channel(
        self, request: NotificationRequest, channel: NotificationChannel
    ) -> NotificationResult:
        """
        Make a single delivery attempt on one channel.

        Args:
            request: Message and recipient contact details
            channel: Channel to use

        Returns:
            Outcome of the attempt; provider errors never propagate
        """
        result, _ = await self._attempt(request, channel)
        return result

    async def _send_with_retry(
        self, request: NotificationRequest, channel: NotificationChannel
    ) -> NotificationResult:
        max_attempts = self.policy.max_retry_attempts
        result = NotificationResult.failure("No delivery attempted", channel)

        for attempt in range(max_attempts + 1):
            if attempt > 0:
                delay = self.policy.backoff_delay(attempt)
                logger.info(
                    "notification_retry_backoff",
                    channel=channel.value,
                    attempt=attempt,
                    delay_seconds=delay,
                )
                await self._sleep(delay)

            result, retryable = await self._attempt(request, channel)
            result.retry_count = attempt

            if result.is_success:
                logger.info(
                    "notification_sent",
                    channel=channel.value,
                    attempt=attempt,
                    message_id=result.message_id,
                )
                return result

            logger.warning(
                "notification_attempt_failed",
                channel=channel.value,
                attempt=attempt,
                max_attempts=max_attempts + 1,
                error=result.error_message,
            )
            if not retryable:
                break

        logger.error(
            "notification_channel_exhausted",
            channel=channel.value,
            retry_count=result.retry_count,
            error=result.error_message,
        )
        return result

    async def _attempt(
        self, request: NotificationRequest, channel: NotificationChannel
    ) -> tuple[NotificationResult, bool]:
        """Run one attempt; the flag says whether retrying could help."""
        sender = self.senders.get(channel)
        if sender is None:
            error = ChannelUnsupported(channel.value)
            return NotificationResult.failure(error.message, channel), False

        recipient = sender.recipient_for(request)
        if not recipient:
            return (
                NotificationResult.failure(
                    f"Recipient has no contact details for {channel.value}", channel
                ),
                False,
            )

        try:
            sent = await sender.send(
                recipient,
                request.subject,
                request.body,
                html=request.html_body,
                data=request.data,
            )
        except Exception as e:
            failure = DeliveryFailure(f"{channel.value} sender raised: {e}")
            logger.warning(
                "notification_sender_error",
                channel=channel.value,
                error_type=type(e).__name__,
                error=str(e),
            )
            return NotificationResult.failure(failure.message, channel), True

        if sent.success:
            return NotificationResult.success(sent.message_id or "unknown", channel), True
        return NotificationResult.failure(sent.error or "Unknown delivery error", channel), True
