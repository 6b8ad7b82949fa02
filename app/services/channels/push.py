"""Push notification delivery via Firebase Cloud Messaging."""

import asyncio

import firebase_admin
import structlog
from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging

from app.schemas.notifications import ChannelSendResult, NotificationChannel, NotificationRequest
from app.services.channels.base import Recipient

logger = structlog.get_logger(__name__)


class FcmPushSender:
    """Sends push notifications to every registered device of a patient."""

    channel = NotificationChannel.PUSH

    def __init__(self, app: firebase_admin.App | None = None):
        """Initialize sender with an optional Firebase app (default app otherwise)."""
        self.app = app

    def recipient_for(self, request: NotificationRequest) -> Recipient | None:
        """Active FCM tokens of the patient, if any."""
        return list(request.push_tokens) or None

    async def send(
        self,
        recipient: Recipient,
        subject: str,
        body: str,
        html: str | None = None,
        data: dict[str, str] | None = None,
    ) -> ChannelSendResult:
        """
        Send push notification to multiple devices.

        Args:
            recipient: FCM token or list of tokens
            subject: Notification title
            body: Notification body
            html: Ignored
            data: Optional data payload

        Returns:
            Success if at least one device accepted the message
        """
        tokens = [recipient] if isinstance(recipient, str) else recipient

        message = messaging.MulticastMessage(
            notification=messaging.Notification(
                title=subject,
                body=body,
            ),
            data=data or {},
            tokens=tokens,
            apns=messaging.APNSConfig(
                payload=messaging.APNSPayload(
                    aps=messaging.Aps(
                        sound="default",
                        badge=1,
                    ),
                ),
            ),
            android=messaging.AndroidConfig(
                priority="high",
                notification=messaging.AndroidNotification(
                    sound="default",
                    priority="high",
                ),
            ),
        )

        try:
            response = await asyncio.to_thread(
                messaging.send_each_for_multicast, message, app=self.app
            )
        except (firebase_exceptions.FirebaseError, ValueError) as e:
            logger.warning("push_notification_failed", error=str(e), title=subject)
            return ChannelSendResult.failed(f"FCM error: {e}")

        logger.info(
            "push_notification_sent",
            title=subject,
            success_count=response.success_count,
            failure_count=response.failure_count,
        )

        if response.success_count == 0:
            return ChannelSendResult.failed(
                f"FCM delivered to 0 of {len(tokens)} devices"
            )

        message_id = next(
            (r.message_id for r in response.responses if r.success and r.message_id),
            None,
        )
        return ChannelSendResult.ok(message_id)
