"""SMS and WhatsApp delivery through the Twilio Messages API."""

import httpx
import structlog

from app.schemas.notifications import ChannelSendResult, NotificationChannel, NotificationRequest
from app.services.channels.base import Recipient

logger = structlog.get_logger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class TwilioMessageSender:
    """
    Sends text messages with Twilio.

    The same API serves SMS and WhatsApp; WhatsApp addresses carry a
    ``whatsapp:`` prefix on both ends.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        account_sid: str,
        auth_token: str,
        from_number: str,
        channel: NotificationChannel = NotificationChannel.SMS,
    ):
        """Initialize sender with a shared HTTP client and account credentials."""
        if channel not in (NotificationChannel.SMS, NotificationChannel.WHATSAPP):
            raise ValueError(f"Twilio cannot send over {channel.value}")
        self.client = client
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.channel = channel

    @property
    def messages_url(self) -> str:
        """Messages resource for the account."""
        return f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/Messages.json"

    def recipient_for(self, request: NotificationRequest) -> Recipient | None:
        """Patient phone number, if any."""
        return request.recipient_phone or None

    def _address(self, number: str) -> str:
        if self.channel is NotificationChannel.WHATSAPP and not number.startswith("whatsapp:"):
            return f"whatsapp:{number}"
        return number

    async def send(
        self,
        recipient: Recipient,
        subject: str,
        body: str,
        html: str | None = None,
        data: dict[str, str] | None = None,
    ) -> ChannelSendResult:
        """
        Send a text message.

        Args:
            recipient: Phone number in E.164 format
            subject: Prepended to the body as a first line
            body: Message text
            html: Ignored
            data: Ignored

        Returns:
            Result carrying the Twilio message SID or the API error
        """
        if isinstance(recipient, list):
            recipient = recipient[0]

        if not recipient.removeprefix("whatsapp:").startswith("+"):
            return ChannelSendResult.failed(
                "Phone number must be in E.164 format (e.g., +1234567890)"
            )

        payload = {
            "From": self._address(self.from_number),
            "To": self._address(recipient),
            "Body": f"{subject}\n\n{body}" if subject else body,
        }

        try:
            response = await self.client.post(
                self.messages_url,
                data=payload,
                auth=(self.account_sid, self.auth_token),
            )
        except httpx.HTTPError as e:
            logger.warning("twilio_request_failed", channel=self.channel.value, error=str(e))
            return ChannelSendResult.failed(f"Twilio request failed: {e}")

        if response.status_code >= 400:
            try:
                detail = response.json().get("message", response.text)
            except ValueError:
                detail = response.text
            logger.warning(
                "twilio_api_error",
                channel=self.channel.value,
                status_code=response.status_code,
                detail=detail,
            )
            return ChannelSendResult.failed(f"Twilio API error: {response.status_code} - {detail}")

        message_sid = response.json().get("sid")
        logger.info("twilio_message_sent", channel=self.channel.value, message_sid=message_sid)
        return ChannelSendResult.ok(message_sid)
