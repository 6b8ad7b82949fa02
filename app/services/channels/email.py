"""Email delivery through Resend."""

import asyncio

import resend
import structlog

from app.schemas.notifications import ChannelSendResult, NotificationChannel, NotificationRequest
from app.services.channels.base import Recipient

logger = structlog.get_logger(__name__)


class ResendEmailSender:
    """Sends email via the Resend API."""

    channel = NotificationChannel.EMAIL

    def __init__(self, api_key: str, from_address: str, from_name: str | None = None):
        """Initialize sender and set the Resend API key."""
        resend.api_key = api_key
        self.from_address = from_address
        self.from_name = from_name

    @property
    def sender(self) -> str:
        """Formatted From header."""
        if self.from_name:
            return f"{self.from_name} <{self.from_address}>"
        return self.from_address

    def recipient_for(self, request: NotificationRequest) -> Recipient | None:
        """Patient email address, if any."""
        return request.recipient_email or None

    async def send(
        self,
        recipient: Recipient,
        subject: str,
        body: str,
        html: str | None = None,
        data: dict[str, str] | None = None,
    ) -> ChannelSendResult:
        """
        Send a single email.

        Args:
            recipient: Email address(es)
            subject: Subject line
            body: Plain text content
            html: Optional HTML content
            data: Unused for email

        Returns:
            Result carrying the Resend email id or the API error
        """
        params: dict = {
            "from": self.sender,
            "to": [recipient] if isinstance(recipient, str) else recipient,
            "subject": subject,
            "text": body,
        }
        if html:
            params["html"] = html

        try:
            response = await asyncio.to_thread(resend.Emails.send, params)
        except resend.exceptions.ResendError as e:
            logger.warning("resend_api_error", to=recipient, error=str(e))
            return ChannelSendResult.failed(f"Resend API error: {e}")

        message_id = response.get("id") if isinstance(response, dict) else None
        logger.info("email_sent", to=recipient, message_id=message_id)
        return ChannelSendResult.ok(message_id)
