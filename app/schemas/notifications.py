"""Notification schemas."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from app.core.clock import utc_now

if TYPE_CHECKING:
    from app.config import Settings


class NotificationChannel(str, Enum):
    """Transports a notification can be delivered over."""

    EMAIL = "email"
    WHATSAPP = "whatsapp"
    SMS = "sms"
    PUSH = "push"


class NotificationType(str, Enum):
    """Kinds of appointment notifications."""

    APPOINTMENT_REMINDER = "appointment_reminder"
    APPOINTMENT_CONFIRMATION = "appointment_confirmation"
    APPOINTMENT_CANCELLATION = "appointment_cancellation"
    APPOINTMENT_RESCHEDULED = "appointment_rescheduled"


class NotificationRequest(BaseModel):
    """A message to deliver to one recipient, independent of channel."""

    recipient_name: str
    recipient_email: str | None = None
    recipient_phone: str | None = None
    push_tokens: list[str] = Field(default_factory=list)
    notification_type: NotificationType = NotificationType.APPOINTMENT_REMINDER
    subject: str
    body: str
    html_body: str | None = None
    data: dict[str, str] = Field(default_factory=dict)


class ChannelSendResult(BaseModel):
    """Raw outcome reported by a channel sender."""

    success: bool
    message_id: str | None = None
    error: str | None = None

    @classmethod
    def ok(cls, message_id: str | None) -> ChannelSendResult:
        """Successful send."""
        return cls(success=True, message_id=message_id or "unknown")

    @classmethod
    def failed(cls, error: str) -> ChannelSendResult:
        """Failed send."""
        return cls(success=False, error=error)


class NotificationResult(BaseModel):
    """Outcome of one delivery attempt, or of a whole dispatch."""

    is_success: bool
    channel: NotificationChannel
    message_id: str | None = None
    error_message: str | None = None
    retry_count: int = 0
    sent_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def success(
        cls,
        message_id: str,
        channel: NotificationChannel,
        retry_count: int = 0,
    ) -> NotificationResult:
        """Build a successful result."""
        return cls(
            is_success=True,
            message_id=message_id,
            channel=channel,
            retry_count=retry_count,
        )

    @classmethod
    def failure(
        cls,
        error_message: str,
        channel: NotificationChannel,
        retry_count: int = 0,
    ) -> NotificationResult:
        """Build a failed result."""
        return cls(
            is_success=False,
            error_message=error_message,
            channel=channel,
            retry_count=retry_count,
        )

    def log_fields(self) -> dict[str, Any]:
        """Fields worth attaching to a log event."""
        return {
            "channel": self.channel.value,
            "success": self.is_success,
            "message_id": self.message_id,
            "error": self.error_message,
            "retry_count": self.retry_count,
        }


class NotificationPolicy(BaseModel):
    """Channel selection and retry configuration for the dispatcher."""

    primary_channel: NotificationChannel = NotificationChannel.EMAIL
    fallback_channel: NotificationChannel = NotificationChannel.EMAIL
    max_retry_attempts: int = Field(default=3, ge=0)
    retry_base_delay_seconds: float = Field(default=5, ge=0)

    @property
    def has_fallback(self) -> bool:
        """A fallback equal to the primary channel means no fallback."""
        return self.fallback_channel != self.primary_channel

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait before zero-indexed ``attempt``; none before the first."""
        if attempt <= 0:
            return 0.0
        return self.retry_base_delay_seconds * 2 ** (attempt - 1)

    @classmethod
    def from_settings(cls, settings: Settings) -> NotificationPolicy:
        """Build the policy from application settings."""
        return cls(
            primary_channel=NotificationChannel(settings.notification_primary_channel.lower()),
            fallback_channel=NotificationChannel(settings.notification_fallback_channel.lower()),
            max_retry_attempts=settings.notification_max_retry_attempts,
            retry_base_delay_seconds=settings.notification_retry_base_delay_seconds,
        )
