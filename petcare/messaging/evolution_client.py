"""HTTP clients for the WhatsApp gateway (Evolution API) and the internal
cancellation webhook.

Both are fire-and-forget from the dialogue's point of view: failures are
logged and reported as ``False`` / swallowed after logging, never retried.
"""

from __future__ import annotations

import logging

import httpx

from petcare.config import settings
from petcare.messaging.base import CancellationNotifier, MessagingError, Messenger
from petcare.schemas.booking_schema import Appointment
from petcare.utils import normalize_phone

logger = logging.getLogger(__name__)

_msg = settings.messaging

MIN_PHONE_DIGITS = 10


def to_whatsapp_jid(phone: str, country_code: str = _msg.country_code) -> str:
    """``(11) 99999-0000`` -> ``5511999990000@s.whatsapp.net``.

    Raises:
        MessagingError: fewer than 10 digits.
    """
    digits = normalize_phone(phone)
    if len(digits) < MIN_PHONE_DIGITS:
        raise MessagingError(f"Invalid phone number: {phone!r}")
    if not digits.startswith(country_code):
        digits = country_code + digits
    return f"{digits}@s.whatsapp.net"


class EvolutionMessenger(Messenger):
    """Sends plain-text WhatsApp messages through an Evolution API instance."""

    def __init__(
        self,
        base_url: str | None = None,
        instance: str | None = None,
        api_key: str | None = None,
        *,
        delay_ms: int = _msg.send_delay_ms,
        client: httpx.AsyncClient | None = None,
    ):
        self._instance = instance or _msg.evolution_instance
        self._delay_ms = delay_ms
        self._client = client or httpx.AsyncClient(
            base_url=base_url or _msg.evolution_api_url,
            headers={
                "apikey": api_key or _msg.evolution_api_key,
                "Content-Type": "application/json",
            },
            timeout=_msg.request_timeout_sec,
        )

    async def send(self, phone: str, text: str) -> bool:
        try:
            payload = {
                "number": to_whatsapp_jid(phone),
                "text": text.strip(),
                "delay": self._delay_ms,
            }
        except MessagingError as exc:
            logger.error("Not sending to %s: %s", phone, exc)
            return False

        try:
            response = await self._client.post(
                f"/message/sendText/{self._instance}", json=payload
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Evolution API rejected message to %s: %s %s",
                phone, exc.response.status_code, exc.response.text,
            )
            return False
        except httpx.HTTPError as exc:
            logger.error("Network error sending message to %s: %s", phone, exc)
            return False

        logger.debug("Message delivered to %s", phone)
        return True

    async def aclose(self) -> None:
        await self._client.aclose()


class WebhookCancellationNotifier(CancellationNotifier):
    """POSTs ``{"type": "cancellation", "appointment": {...}}`` to the admin frontend."""

    def __init__(
        self,
        url: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ):
        self._url = url or _msg.cancellation_webhook_url
        self._client = client or httpx.AsyncClient(timeout=_msg.request_timeout_sec)

    async def notify_cancellation(self, appointment: Appointment) -> None:
        body = {"type": "cancellation", "appointment": appointment.model_dump(mode="json")}
        try:
            response = await self._client.post(self._url, json=body)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Error sending cancellation webhook for #%d: %s", appointment.id, exc)

    async def aclose(self) -> None:
        await self._client.aclose()
