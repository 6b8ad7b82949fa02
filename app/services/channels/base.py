"""Channel sender contract."""

from typing import Protocol

from app.schemas.notifications import ChannelSendResult, NotificationChannel, NotificationRequest

Recipient = str | list[str]


class ChannelSender(Protocol):
    """Delivers a message over one transport."""

    channel: NotificationChannel

    def recipient_for(self, request: NotificationRequest) -> Recipient | None:
        """Address this channel should use for the request, or None if the contact is missing."""
        ...

    async def send(
        self,
        recipient: Recipient,
        subject: str,
        body: str,
        html: str | None = None,
        data: dict[str, str] | None = None,
    ) -> ChannelSendResult:
        """Send one message; provider errors come back as a failed result."""
        ...
