"""
Dialogue controller: the per-phone booking conversation.

Each inbound message runs one deterministic transition:

    (state, normalized input, availability results) -> (next state, temp data, reply)

Every ``DialogueState`` has exactly one handler in ``_handlers``; the
controller refuses to start if a state is left unhandled. Input that fails
validation re-prompts and leaves both the state and the temp data untouched.

Two rules run before any handler: a session paused for human handoff
produces no reply at all, and the ``voltar`` keyword resets to the menu
from anywhere.

Usage:
    controller = DialogueController(store, SessionStore(store), engine)
    reply = await controller.handle_message("5511999990000", "1")
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional, Union

from petcare.business_calendar import BusinessCalendar, format_br_date
from petcare.config import settings
from petcare.conversation.session_store import SessionStore
from petcare.logging_context import get_chat_logger, set_phone
from petcare.messaging.base import CancellationNotifier, LoggingNotifier
from petcare.prompts import messages
from petcare.schemas.booking_schema import (
    AppointmentStatus,
    AppointmentSummary,
    BookingRequest,
)
from petcare.schemas.catalog_schema import Professional, Service
from petcare.schemas.customer_schema import Customer, Pet
from petcare.schemas.session_schema import (
    BookingDraft,
    CancellationData,
    DialogueState,
    EmptyData,
    IntakeData,
    ReminderData,
    Session,
)
from petcare.storage.base import BookingStore, StorageError
from petcare.tools.availability import (
    AvailabilityEngine,
    InvalidManualDateError,
    SlotUnavailableError,
)
from petcare.utils import capitalize_first_letter, normalize_input, parse_option

logger = get_chat_logger(__name__)

BACK_KEYWORDS = frozenset({"voltar", "back"})

DEFAULT_PET_NAME = "Não informado"
DEFAULT_OWNER_NAME = "Cliente"

TempData = Union[EmptyData, IntakeData, BookingDraft, CancellationData, ReminderData]

_MANUAL_DATE_ERRORS = {
    "format": messages.MANUAL_DATE_BAD_FORMAT,
    "past": messages.MANUAL_DATE_PAST,
    "excluded_weekday": messages.MANUAL_DATE_EXCLUDED,
}


@dataclass
class Reply:
    """Outcome of one transition."""
    state: DialogueState
    data: TempData
    text: str
    paused_until: Optional[datetime] = None


Handler = Callable[[str, str, Session], Awaitable[Reply]]


def _stay(session: Session, text: str) -> Reply:
    """Re-prompt without changing state or temp data."""
    return Reply(session.state, session.temp_data, text)


def _menu(text: str) -> Reply:
    return Reply(DialogueState.MENU, EmptyData(), text)


class DialogueController:
    def __init__(
        self,
        store: BookingStore,
        sessions: SessionStore,
        engine: AvailabilityEngine,
        notifier: Optional[CancellationNotifier] = None,
        pause_minutes: int = settings.booking.handoff_pause_minutes,
        manual_date_option: int = settings.booking.manual_date_option,
    ) -> None:
        self._store = store
        self._sessions = sessions
        self._engine = engine
        self._notifier = notifier or LoggingNotifier()
        self.pause_minutes = pause_minutes
        self.manual_date_option = manual_date_option
        self._services: list[Service] = []
        self._professionals: list[Professional] = []

        self._handlers: dict[DialogueState, Handler] = {
            DialogueState.MENU: self._on_menu,
            DialogueState.NEW_CUSTOMER: self._on_new_customer,
            DialogueState.ADD_PET: self._on_add_pet,
            DialogueState.SELECT_PET: self._on_select_pet,
            DialogueState.BOOKING_SERVICE: self._on_booking_service,
            DialogueState.BOOKING_PET_NAME: self._on_booking_pet_name,
            DialogueState.BOOKING_PROFESSIONAL: self._on_booking_professional,
            DialogueState.BOOKING_DATE: self._on_booking_date,
            DialogueState.BOOKING_MANUAL_DATE: self._on_booking_manual_date,
            DialogueState.BOOKING_TIME: self._on_booking_time,
            DialogueState.BOOKING_CONFIRM: self._on_booking_confirm,
            DialogueState.CANCEL_CODE: self._on_cancellation_choice,
            DialogueState.AWAITING_CANCELLATION_CHOICE: self._on_cancellation_choice,
            DialogueState.AWAITING_CANCELLATION_CONFIRMATION: self._on_cancellation_confirmation,
            DialogueState.AWAITING_REMINDER_RESPONSE: self._on_reminder_response,
        }
        missing = set(DialogueState) - set(self._handlers)
        if missing:
            raise RuntimeError(f"Unhandled dialogue states: {sorted(s.value for s in missing)}")

    @property
    def calendar(self) -> BusinessCalendar:
        return self._engine.calendar

    @property
    def handled_states(self) -> frozenset[DialogueState]:
        return frozenset(self._handlers)

    # ------------------------------------------------------------------ #
    # Entry points
    # ------------------------------------------------------------------ #

    async def handle_message(self, phone: str, message: str) -> Optional[str]:
        """Process one inbound message. Returns the reply, or None while paused."""
        set_phone(phone)
        async with self._sessions.lock(phone):
            session = await self._sessions.load(phone)

            if session.is_paused(self.calendar.now()):
                logger.debug("Session paused until %s, no reply", session.paused_until)
                return None

            text = normalize_input(message)
            if text in BACK_KEYWORDS:
                reply = _menu(messages.menu_message())
            else:
                handler = self._handlers.get(session.state, self._on_unknown_state)
                reply = await handler(phone, text, session)

            updated = Session(
                state=reply.state,
                temp_data=reply.data,
                paused_until=reply.paused_until or session.paused_until,
            )
            logger.debug("Transition %s -> %s", session.state.value, updated.state.value)
            await self._sessions.save(phone, updated)
            return reply.text

    async def get_session(self, phone: str) -> Session:
        return await self._sessions.load(phone)

    async def save_session(self, phone: str, session: Session) -> bool:
        async with self._sessions.lock(phone):
            return await self._sessions.save(phone, session)

    async def begin_reminder(
        self, phone: str, appointment_id: int, sent_at: Optional[datetime] = None
    ) -> None:
        """Switch a session to ``awaiting_reminder_response`` for an appointment."""
        set_phone(phone)
        async with self._sessions.lock(phone):
            session = await self._sessions.load(phone)
            await self._sessions.save(
                phone,
                Session(
                    state=DialogueState.AWAITING_REMINDER_RESPONSE,
                    temp_data=ReminderData(appointment_id=appointment_id, reminder_sent_at=sent_at),
                    paused_until=session.paused_until,
                ),
            )
        logger.info("Session awaiting reminder response for appointment #%d", appointment_id)

    # ------------------------------------------------------------------ #
    # Storage helpers (read failures degrade, write failures are logged)
    # ------------------------------------------------------------------ #

    async def _refresh_catalogs(self) -> None:
        try:
            self._services = await self._store.list_services()
            self._professionals = await self._store.list_professionals()
        except StorageError:
            logger.error("Error loading services/professionals, keeping cached catalog")

    async def _ensure_catalogs(self) -> None:
        if not self._services or not self._professionals:
            await self._refresh_catalogs()

    async def _find_customer(self, phone: str) -> Optional[Customer]:
        try:
            return await self._store.get_customer_by_phone(phone)
        except StorageError:
            logger.error("Error getting customer")
            return None

    async def _list_pets(self, customer_id: int) -> list[Pet]:
        try:
            return await self._store.list_pets(customer_id)
        except StorageError:
            logger.error("Error getting pets for customer %d", customer_id)
            return []

    async def _save_customer_and_pet(
        self, phone: str, data: IntakeData, pet_name: str
    ) -> Optional[int]:
        customer_id = data.customer_id
        try:
            if customer_id is None:
                customer = await self._store.create_customer(
                    phone, data.owner_name or DEFAULT_OWNER_NAME
                )
                customer_id = customer.id
            await self._store.create_pet(customer_id, pet_name)
        except StorageError:
            logger.error("Error saving customer/pet '%s'", pet_name)
        return customer_id

    # ------------------------------------------------------------------ #
    # Menu
    # ------------------------------------------------------------------ #

    async def _on_menu(self, phone: str, text: str, session: Session) -> Reply:
        if text == "1":
            await self._refresh_catalogs()
            customer = await self._find_customer(phone)
            if customer is None:
                return Reply(DialogueState.NEW_CUSTOMER, IntakeData(), messages.ASK_OWNER_NAME)

            pets = await self._list_pets(customer.id)
            data = IntakeData(
                customer_id=customer.id,
                owner_name=customer.owner_name,
                pet_names=[pet.name for pet in pets],
            )
            if pets:
                return Reply(DialogueState.SELECT_PET, data, messages.pets_message(pets))
            return Reply(DialogueState.ADD_PET, data, messages.ASK_PET_NAME_NO_PETS)

        if text == "2":
            return await self._list_for_cancellation(phone)

        if text == "3":
            paused_until = self.calendar.now() + timedelta(minutes=self.pause_minutes)
            logger.info("Human handoff requested, bot paused until %s", paused_until.isoformat())
            return Reply(
                DialogueState.MENU,
                EmptyData(),
                messages.handoff_message(self.pause_minutes),
                paused_until=paused_until,
            )

        return _stay(session, messages.menu_message())

    async def _on_unknown_state(self, phone: str, text: str, session: Session) -> Reply:
        logger.warning("No handler for state '%s', resetting to menu", session.state)
        return _menu(messages.menu_message())

    # ------------------------------------------------------------------ #
    # Owner and pet intake
    # ------------------------------------------------------------------ #

    async def _on_new_customer(self, phone: str, text: str, session: Session) -> Reply:
        if not text:
            return _stay(session, messages.ASK_NAME_AGAIN)
        data = session.temp_data.model_copy(update={"owner_name": capitalize_first_letter(text)})
        return Reply(DialogueState.ADD_PET, data, messages.ASK_FIRST_PET_NAME)

    async def _on_add_pet(self, phone: str, text: str, session: Session) -> Reply:
        if not text:
            return _stay(session, messages.ASK_NAME_AGAIN)
        data: IntakeData = session.temp_data
        pet_name = capitalize_first_letter(text)
        customer_id = await self._save_customer_and_pet(phone, data, pet_name)
        await self._ensure_catalogs()
        draft = BookingDraft(customer_id=customer_id, owner_name=data.owner_name, pet_name=pet_name)
        return Reply(DialogueState.BOOKING_SERVICE, draft, messages.services_message(self._services))

    async def _on_select_pet(self, phone: str, text: str, session: Session) -> Reply:
        data: IntakeData = session.temp_data
        option = parse_option(text)
        if option == 0:
            return Reply(DialogueState.ADD_PET, data, messages.ASK_NEW_PET_NAME)
        if option is None or not 1 <= option <= len(data.pet_names):
            return _stay(session, messages.INVALID_PET)

        await self._ensure_catalogs()
        draft = BookingDraft(
            customer_id=data.customer_id,
            owner_name=data.owner_name,
            pet_name=capitalize_first_letter(data.pet_names[option - 1]),
        )
        return Reply(DialogueState.BOOKING_SERVICE, draft, messages.services_message(self._services))

    # ------------------------------------------------------------------ #
    # Booking flow
    # ------------------------------------------------------------------ #

    async def _on_booking_service(self, phone: str, text: str, session: Session) -> Reply:
        await self._ensure_catalogs()
        option = parse_option(text)
        service = next((s for s in self._services if s.id == option), None)
        if service is None:
            return _stay(session, messages.INVALID_SERVICE)

        draft = session.temp_data.model_copy(update={"service": service.name, "price": service.price})
        if draft.pet_name:
            return Reply(
                DialogueState.BOOKING_PROFESSIONAL,
                draft,
                messages.professionals_message(self._professionals),
            )
        return Reply(DialogueState.BOOKING_PET_NAME, draft, messages.ASK_PET_NAME)

    async def _on_booking_pet_name(self, phone: str, text: str, session: Session) -> Reply:
        if not text:
            return _stay(session, messages.ASK_PET_NAME)
        await self._ensure_catalogs()
        draft = session.temp_data.model_copy(update={"pet_name": capitalize_first_letter(text)})
        return Reply(
            DialogueState.BOOKING_PROFESSIONAL,
            draft,
            messages.professionals_message(self._professionals),
        )

    async def _on_booking_professional(self, phone: str, text: str, session: Session) -> Reply:
        await self._ensure_catalogs()
        option = parse_option(text)
        professional = next((p for p in self._professionals if p.id == option), None)
        if professional is None:
            return _stay(session, messages.INVALID_PROFESSIONAL)

        draft = session.temp_data.model_copy(
            update={"professional_id": professional.id, "professional_name": professional.name}
        )
        return await self._offer_dates(draft, "")

    async def _offer_dates(self, draft: BookingDraft, prefix: str) -> Reply:
        dates = await self._engine.list_candidate_dates(draft.professional_id, draft.service)
        dates = dates[: self.manual_date_option - 1]
        draft = draft.model_copy(
            update={
                "offered_dates": dates,
                "date": None,
                "date_display": None,
                "offered_times": [],
                "time": None,
            }
        )
        return Reply(
            DialogueState.BOOKING_DATE,
            draft,
            prefix + messages.dates_message(dates, self.manual_date_option),
        )

    async def _offer_times(
        self, session: Session, day: str, display: str, prefix: str = ""
    ) -> Reply:
        draft: BookingDraft = session.temp_data
        times = await self._engine.list_free_slots(day, draft.professional_id, draft.service)
        if not times:
            return _stay(session, messages.NO_TIMES_FOR_DATE)
        draft = draft.model_copy(
            update={"date": day, "date_display": display, "offered_times": times, "time": None}
        )
        return Reply(
            DialogueState.BOOKING_TIME, draft, prefix + messages.times_message(display, times)
        )

    async def _on_booking_date(self, phone: str, text: str, session: Session) -> Reply:
        draft: BookingDraft = session.temp_data
        option = parse_option(text)
        if option == self.manual_date_option:
            return Reply(DialogueState.BOOKING_MANUAL_DATE, draft, messages.ASK_MANUAL_DATE)
        if option is None or not 1 <= option <= len(draft.offered_dates):
            return _stay(session, messages.INVALID_DATE_OPTION)

        candidate = draft.offered_dates[option - 1]
        return await self._offer_times(session, candidate.date, candidate.option_text)

    async def _on_booking_manual_date(self, phone: str, text: str, session: Session) -> Reply:
        try:
            day = await self._engine.validate_manual_date(text)
        except InvalidManualDateError as exc:
            return _stay(session, _MANUAL_DATE_ERRORS[exc.reason])
        return await self._offer_times(session, day.isoformat(), format_br_date(day))

    async def _on_booking_time(self, phone: str, text: str, session: Session) -> Reply:
        draft: BookingDraft = session.temp_data
        option = parse_option(text)
        if option is None or not 1 <= option <= len(draft.offered_times):
            return _stay(session, messages.INVALID_TIME_OPTION)

        draft = draft.model_copy(update={"time": draft.offered_times[option - 1]})
        return Reply(DialogueState.BOOKING_CONFIRM, draft, messages.confirmation_summary(draft))

    async def _on_booking_confirm(self, phone: str, text: str, session: Session) -> Reply:
        draft: BookingDraft = session.temp_data
        if text == "2":
            return _menu(messages.BOOKING_DISCARDED + " " + messages.menu_message())
        if text != "1":
            return _stay(session, messages.INVALID_CONFIRMATION)

        request = BookingRequest(
            pet_name=draft.pet_name or DEFAULT_PET_NAME,
            owner_name=draft.owner_name or DEFAULT_OWNER_NAME,
            phone=phone,
            service=draft.service,
            date=draft.date,
            time=draft.time,
            professional_id=draft.professional_id,
        )
        try:
            appointment = await self._engine.confirm_booking(request)
        except SlotUnavailableError:
            logger.info("Slot %s %s taken before confirmation", draft.date, draft.time)
            return await self._slot_taken(session)
        except StorageError:
            logger.exception("Error saving appointment")
            return _stay(session, messages.BOOKING_FAILED)

        return _menu(
            messages.booking_confirmed_message(appointment, draft)
            + "\n\n"
            + messages.menu_message()
        )

    async def _slot_taken(self, session: Session) -> Reply:
        """Offer fresh times for the same day, or fresh dates if the day is now full."""
        draft: BookingDraft = session.temp_data
        prefix = messages.SLOT_TAKEN + "\n\n"
        reply = await self._offer_times(session, draft.date, draft.date_display, prefix)
        if reply.state == DialogueState.BOOKING_TIME:
            return reply
        return await self._offer_dates(draft, prefix)

    # ------------------------------------------------------------------ #
    # Cancellation
    # ------------------------------------------------------------------ #

    async def _list_for_cancellation(self, phone: str) -> Reply:
        try:
            appointments = await self._store.list_future_appointments(
                phone, self.calendar.today().isoformat()
            )
        except StorageError:
            logger.error("Error fetching appointments for cancellation")
            return _menu(messages.APPOINTMENTS_LOOKUP_FAILED)

        if not appointments:
            return _menu(messages.NO_FUTURE_APPOINTMENTS)

        summaries = [AppointmentSummary.from_appointment(a) for a in appointments]
        return Reply(
            DialogueState.AWAITING_CANCELLATION_CHOICE,
            CancellationData(appointments=summaries),
            messages.cancellation_list_message(summaries),
        )

    async def _on_cancellation_choice(self, phone: str, text: str, session: Session) -> Reply:
        data: CancellationData = session.temp_data
        option = parse_option(text)
        if option is None or not 1 <= option <= len(data.appointments):
            return _stay(session, messages.INVALID_CANCELLATION_CHOICE)

        chosen = data.appointments[option - 1]
        return Reply(
            DialogueState.AWAITING_CANCELLATION_CONFIRMATION,
            data.model_copy(update={"appointment_id_to_cancel": chosen.id}),
            messages.cancellation_selected_message(chosen),
        )

    async def _on_cancellation_confirmation(self, phone: str, text: str, session: Session) -> Reply:
        data: CancellationData = session.temp_data
        if text != "1" or data.appointment_id_to_cancel is None:
            return _menu(messages.CANCELLATION_ABORTED)
        return _menu(await self._cancel_appointment(phone, data.appointment_id_to_cancel))

    async def _cancel_appointment(self, phone: str, appointment_id: int) -> str:
        try:
            appointment = await self._store.get_appointment(appointment_id)
            if appointment is None or appointment.phone != phone:
                return messages.APPOINTMENT_NOT_FOUND
            updated = await self._store.update_appointment_status(
                appointment_id, AppointmentStatus.CANCELED
            )
        except StorageError:
            logger.exception("Error canceling appointment #%d", appointment_id)
            return messages.CANCELLATION_FAILED

        if not updated:
            return messages.CANCELLATION_FAILED

        logger.info("Appointment #%d canceled", appointment_id)
        canceled = appointment.model_copy(update={"status": AppointmentStatus.CANCELED})
        await self._notifier.notify_cancellation(canceled)
        return messages.cancellation_done_message(appointment)

    # ------------------------------------------------------------------ #
    # Reminder reply
    # ------------------------------------------------------------------ #

    async def _on_reminder_response(self, phone: str, text: str, session: Session) -> Reply:
        data: ReminderData = session.temp_data
        if text == "1":
            return _menu(messages.REMINDER_ACKNOWLEDGED)
        if text == "2":
            return _menu(await self._cancel_appointment(phone, data.appointment_id))
        return _stay(session, messages.INVALID_REMINDER_REPLY)
