"""
Messaging collaborator interfaces.

``Messenger.send`` reports success as a bool and never raises: delivery
failures are logged by the implementation and do not roll back a dialogue
transition that has already been applied.
"""

import logging
from abc import ABC, abstractmethod

from petcare.schemas.booking_schema import Appointment

logger = logging.getLogger(__name__)


class MessagingError(Exception):
    """Raised by transports for a delivery that cannot be attempted (e.g. a bad number)."""


class Messenger(ABC):
    @abstractmethod
    async def send(self, phone: str, text: str) -> bool:
        raise NotImplementedError


class CancellationNotifier(ABC):
    @abstractmethod
    async def notify_cancellation(self, appointment: Appointment) -> None:
        raise NotImplementedError


class OutboxMessenger(Messenger):
    """Keeps sent messages in memory. Used by the console demo and tests."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.fail = False

    async def send(self, phone: str, text: str) -> bool:
        if self.fail:
            logger.error("Outbox delivery to %s failed", phone)
            return False
        self.sent.append((phone, text))
        return True

    def messages_for(self, phone: str) -> list[str]:
        return [text for to, text in self.sent if to == phone]


class LoggingNotifier(CancellationNotifier):
    """Only logs cancellations; the default when no webhook is configured."""

    def __init__(self) -> None:
        self.notified: list[int] = []

    async def notify_cancellation(self, appointment: Appointment) -> None:
        self.notified.append(appointment.id)
        logger.info("Appointment #%d canceled by customer", appointment.id)
