"""
Reminder trigger.

Periodically looks for confirmed appointments whose start is within the
reminder interval, messages the customer and switches their dialogue to
``awaiting_reminder_response`` so the next "1"/"2" reply confirms or
cancels. A reminder whose delivery fails is not marked as sent and is
retried on the next tick. A delivered reminder is never resent by the same
process, even when marking it sent fails.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from petcare.business_calendar import format_br_date, parse_iso_date
from petcare.config import settings
from petcare.conversation.state_machine import DialogueController
from petcare.logging_context import set_phone
from petcare.messaging.base import Messenger
from petcare.prompts.messages import reminder_message
from petcare.schemas.booking_schema import Appointment
from petcare.storage.base import BookingStore, StorageError
from petcare.tools.availability import AvailabilityEngine

logger = logging.getLogger(__name__)

_rem = settings.reminders


class ReminderService:
    def __init__(
        self,
        store: BookingStore,
        controller: DialogueController,
        engine: AvailabilityEngine,
        messenger: Messenger,
        default_interval_hours: int = _rem.default_interval_hours,
        cache_seconds: float = _rem.interval_cache_seconds,
        check_interval_seconds: float = _rem.check_interval_seconds,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._controller = controller
        self._engine = engine
        self._messenger = messenger
        self.default_interval_hours = default_interval_hours
        self.cache_seconds = cache_seconds
        self.check_interval_seconds = check_interval_seconds
        self._monotonic = monotonic
        self._cached_interval: Optional[tuple[int, float]] = None
        # delivered this process, in case marking them sent failed
        self._delivered: set[int] = set()

    async def get_reminder_interval(self) -> int:
        """Hours before the appointment to send the reminder, cached for ``cache_seconds``."""
        now = self._monotonic()
        if self._cached_interval is not None:
            hours, fetched_at = self._cached_interval
            if now - fetched_at < self.cache_seconds:
                return hours

        try:
            hours = await self._store.get_reminder_interval()
        except StorageError:
            logger.error(
                "Error loading reminder interval, using %dh", self.default_interval_hours
            )
            return self.default_interval_hours

        if not hours or hours < 1:
            hours = self.default_interval_hours
        self._cached_interval = (hours, now)
        return hours

    def when_text(self, appointment: Appointment) -> str:
        day = parse_iso_date(appointment.date)
        calendar = self._engine.calendar
        if day == calendar.today():
            return "hoje"
        if day == calendar.offset(1):
            return "amanhã"
        return f"em {format_br_date(day)}"

    async def due_reminders(self) -> list[Appointment]:
        interval = await self.get_reminder_interval()
        today = self._engine.calendar.today()
        window_end = self._engine.reminder_window_end(interval)
        try:
            candidates = await self._store.list_reminder_candidates(
                today.isoformat(), window_end.isoformat()
            )
        except StorageError:
            logger.error("Error fetching reminder candidates")
            return []
        return [
            a for a in candidates
            if a.id not in self._delivered and self._engine.is_reminder_due(a, interval)
        ]

    async def _send_reminder(self, appointment: Appointment) -> bool:
        set_phone(appointment.phone)
        text = reminder_message(appointment, self.when_text(appointment))
        if not await self._messenger.send(appointment.phone, text):
            logger.warning("Reminder for appointment #%d not delivered, will retry", appointment.id)
            return False

        self._delivered.add(appointment.id)
        sent_at = self._engine.calendar.now()
        try:
            await self._store.mark_reminder_sent(appointment.id, sent_at)
        except StorageError:
            logger.exception("Error marking reminder sent for appointment #%d", appointment.id)

        await self._controller.begin_reminder(appointment.phone, appointment.id, sent_at)
        logger.info("Reminder sent for appointment #%d", appointment.id)
        return True

    async def run_once(self) -> int:
        """Send every due reminder. Returns how many were delivered."""
        sent = 0
        for appointment in await self.due_reminders():
            if await self._send_reminder(appointment):
                sent += 1
        return sent

    async def run_forever(self, stop: Optional[asyncio.Event] = None) -> None:
        stop = stop or asyncio.Event()
        logger.info("Reminder worker started (every %.0fs)", self.check_interval_seconds)
        while not stop.is_set():
            await self.run_once()
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.check_interval_seconds)
            except asyncio.TimeoutError:
                pass
        logger.info("Reminder worker stopped")
