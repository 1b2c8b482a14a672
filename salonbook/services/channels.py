"""Notification channel strategies.

The channels are a closed set (email, SMS, WhatsApp). Each is one
``ChannelStrategy`` value pairing a transport with its destination rule; they
are looked up by ``NotificationChannel`` rather than subclassed.
"""
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from salonbook.models.notification import NotificationChannel
from salonbook.models.user import User
from salonbook.services import email_service, twilio_service

logger = logging.getLogger(__name__)

Transport = Callable[[str, str, str], Awaitable[bool]]

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PHONE_DIGITS = 8


def is_valid_email(destination: str) -> bool:
    return bool(destination) and EMAIL_RE.match(destination) is not None


def is_valid_phone(destination: str) -> bool:
    if not destination:
        return False
    return len(re.sub(r"\D", "", destination)) >= MIN_PHONE_DIGITS


@dataclass(frozen=True)
class ChannelStrategy:
    channel: NotificationChannel
    transport: Transport
    validator: Callable[[str], bool]

    def channel_id(self) -> NotificationChannel:
        return self.channel

    def validate_destination(self, destination: str) -> bool:
        return self.validator(destination)

    async def send(self, destination: str, subject: str, body: str) -> bool:
        """Attempt one delivery. Transport errors are logged and reported as False."""
        try:
            logger.info("Sending %s to %s", self.channel.value, destination)
            return bool(await self.transport(destination, subject, body))
        except Exception as e:
            logger.error("Error sending %s to %s: %s", self.channel.value, destination, e, exc_info=True)
            return False


async def _email_transport(destination: str, subject: str, body: str) -> bool:
    return await email_service.send_email(destination, subject, body)


async def _sms_transport(destination: str, subject: str, body: str) -> bool:
    return await twilio_service.send_sms(destination, body)


async def _whatsapp_transport(destination: str, subject: str, body: str) -> bool:
    return await twilio_service.send_whatsapp(destination, body)


def default_strategies() -> dict[NotificationChannel, ChannelStrategy]:
    return {
        NotificationChannel.EMAIL: ChannelStrategy(NotificationChannel.EMAIL, _email_transport, is_valid_email),
        NotificationChannel.SMS: ChannelStrategy(NotificationChannel.SMS, _sms_transport, is_valid_phone),
        NotificationChannel.WHATSAPP: ChannelStrategy(
            NotificationChannel.WHATSAPP, _whatsapp_transport, is_valid_phone
        ),
    }


def destination_for(channel: NotificationChannel, user: User) -> str:
    """The contact string a channel delivers to."""
    if channel == NotificationChannel.EMAIL:
        return user.email or ""
    return user.phone or ""
