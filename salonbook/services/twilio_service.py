"""
Twilio transport for SMS and WhatsApp messages.
Talks to the Twilio REST API directly over httpx.
"""

import logging
import re

import httpx

from salonbook.core.config import settings

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


def normalize_phone(phone: str) -> str:
    """Return ``phone`` in E.164, prefixing the default country code when missing."""
    cleaned = re.sub(r"[\s()\-.]", "", phone)
    if cleaned.startswith("+"):
        return cleaned
    code = settings.sms_default_country_code
    if cleaned.startswith(code):
        return f"+{cleaned}"
    return f"+{code}{cleaned}"


async def _create_message(to: str, sender: str, body: str) -> bool:
    if not settings.twilio_enabled or not sender:
        logger.warning("Twilio not configured, not sending to %s", to)
        return False
    sid = settings.twilio_account_sid
    async with httpx.AsyncClient(timeout=settings.transport_timeout_seconds) as client:
        resp = await client.post(
            TWILIO_MESSAGES_URL.format(sid=sid),
            auth=(sid, settings.twilio_auth_token),
            data={"To": to, "From": sender, "Body": body},
        )
    if resp.status_code in (200, 201):
        logger.info("Twilio message %s queued for %s", resp.json().get("sid"), to)
        return True
    logger.warning(
        "Twilio send failed: status=%s body=%s to=%s",
        resp.status_code,
        resp.text[:500],
        to,
    )
    return False


async def send_sms(to_phone: str, body: str) -> bool:
    return await _create_message(normalize_phone(to_phone), settings.twilio_from_number, body)


async def send_whatsapp(to_phone: str, body: str) -> bool:
    sender = settings.twilio_whatsapp_from
    if sender and not sender.startswith("whatsapp:"):
        sender = f"whatsapp:{sender}"
    return await _create_message(f"whatsapp:{normalize_phone(to_phone)}", sender, body)
