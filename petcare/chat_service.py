"""
Inbound chat pipeline and component wiring.

``ChatService.handle_inbound`` is what a webhook receiver calls for every
customer message: normalize the phone, run one dialogue turn, deliver the
reply. Delivery failures are logged; the dialogue state has already been
advanced and is not rolled back.

``build_app`` wires the store, calendar, availability engine, session
registry, dialogue controller, reminder trigger and messenger together.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from petcare.business_calendar import BusinessCalendar
from petcare.config import settings
from petcare.conversation.session_store import SessionStore
from petcare.conversation.state_machine import DialogueController
from petcare.logging_context import get_chat_logger, set_phone
from petcare.messaging.base import CancellationNotifier, Messenger, OutboxMessenger
from petcare.storage.base import BookingStore
from petcare.storage.memory_store import InMemoryBookingStore
from petcare.tools.availability import AvailabilityEngine
from petcare.tools.reminders import ReminderService
from petcare.utils import normalize_phone

logger = get_chat_logger(__name__)


class ChatService:
    def __init__(self, controller: DialogueController, messenger: Messenger) -> None:
        self._controller = controller
        self._messenger = messenger

    async def handle_inbound(self, sender: str, text: str) -> Optional[str]:
        """Process one inbound message and send the reply. Returns the reply text."""
        phone = normalize_phone(sender)
        if not phone:
            logger.warning("Ignoring message without a usable sender: %r", sender)
            return None
        set_phone(phone)

        reply = await self._controller.handle_message(phone, text)
        if not reply:
            return None

        if not await self._messenger.send(phone, reply):
            logger.error("Reply not delivered; dialogue state already advanced")
        return reply


@dataclass
class BookingApp:
    store: BookingStore
    calendar: BusinessCalendar
    engine: AvailabilityEngine
    sessions: SessionStore
    controller: DialogueController
    messenger: Messenger
    chat: ChatService
    reminders: ReminderService


def build_app(
    store: Optional[BookingStore] = None,
    messenger: Optional[Messenger] = None,
    notifier: Optional[CancellationNotifier] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> BookingApp:
    """Wire all components. Defaults to the in-memory store and the outbox messenger."""
    store = store or InMemoryBookingStore.with_defaults()
    messenger = messenger or OutboxMessenger()
    calendar = BusinessCalendar(settings.business.timezone, clock)
    engine = AvailabilityEngine(store, calendar)
    sessions = SessionStore(store)
    controller = DialogueController(store, sessions, engine, notifier)
    return BookingApp(
        store=store,
        calendar=calendar,
        engine=engine,
        sessions=sessions,
        controller=controller,
        messenger=messenger,
        chat=ChatService(controller, messenger),
        reminders=ReminderService(store, controller, engine, messenger),
    )
