"""Tests for the booking dialogue controller."""

import asyncio
from datetime import timedelta

import pytest

from petcare.prompts import messages
from petcare.schemas.booking_schema import AppointmentStatus, AppointmentSummary, CandidateDate
from petcare.schemas.session_schema import (
    BookingDraft,
    CancellationData,
    DialogueState,
    EmptyData,
    IntakeData,
    ReminderData,
    Session,
)
from tests.conftest import (
    OTHER_PHONE,
    PHONE,
    TOMORROW,
    add_appointment,
    converse,
    fill_day,
    storage_down,
)

BOOKING_START = ["1", "Maria", "Rex", "1", "1"]


async def _state(controller, phone=PHONE) -> Session:
    return await controller.get_session(phone)


async def _register(store, owner="Maria", pets=("Rex",), phone=PHONE):
    customer = await store.create_customer(phone, owner)
    for name in pets:
        await store.create_pet(customer.id, name)
    return customer


def _full_draft(**overrides) -> BookingDraft:
    values = dict(
        customer_id=1,
        owner_name="Maria",
        pet_name="Rex",
        service="Banho",
        price=40.0,
        professional_id=1,
        professional_name="Lais",
        offered_dates=[
            CandidateDate(date=TOMORROW, day_label="Amanhã", display="20 de Outubro de 2026")
        ],
        date=TOMORROW,
        date_display="Amanhã, 20 de Outubro de 2026",
        offered_times=["09:00", "10:00"],
        time="09:00",
    )
    values.update(overrides)
    return BookingDraft(**values)


_SUMMARY = AppointmentSummary(id=1, pet_name="Rex", service="Banho", date=TOMORROW, time="09:00")

# (state, temp data, inputs outside the state's domain)
INVALID_INPUTS = [
    (DialogueState.MENU, EmptyData(), ["9", "oi", "0"]),
    (DialogueState.NEW_CUSTOMER, IntakeData(), ["   "]),
    (DialogueState.ADD_PET, IntakeData(customer_id=1, owner_name="Maria"), [""]),
    (
        DialogueState.SELECT_PET,
        IntakeData(customer_id=1, owner_name="Maria", pet_names=["Rex"]),
        ["2", "rex", "-1"],
    ),
    (DialogueState.BOOKING_SERVICE, BookingDraft(owner_name="Maria", pet_name="Rex"), ["99", "banho", "0"]),
    (DialogueState.BOOKING_PET_NAME, BookingDraft(owner_name="Maria", service="Banho"), [" "]),
    (DialogueState.BOOKING_PROFESSIONAL, _full_draft(professional_id=None, professional_name=None), ["4", "lais"]),
    (DialogueState.BOOKING_DATE, _full_draft(date=None, time=None), ["0", "2", "amanhã"]),
    (DialogueState.BOOKING_MANUAL_DATE, _full_draft(date=None, time=None), ["32/13/2026", "18/10/2026", "25/10/2026", "x"]),
    (DialogueState.BOOKING_TIME, _full_draft(time=None), ["3", "0", "9h"]),
    (DialogueState.BOOKING_CONFIRM, _full_draft(), ["3", "sim"]),
    (DialogueState.CANCEL_CODE, CancellationData(appointments=[_SUMMARY]), ["2", "abc"]),
    (DialogueState.AWAITING_CANCELLATION_CHOICE, CancellationData(appointments=[_SUMMARY]), ["0", "2"]),
    (DialogueState.AWAITING_REMINDER_RESPONSE, ReminderData(appointment_id=1), ["3", "ok"]),
]


class TestHandlerTable:
    def test_every_state_has_a_handler(self, controller):
        assert controller.handled_states == frozenset(DialogueState)

    def test_session_rejects_mismatched_data(self):
        with pytest.raises(ValueError):
            Session(state=DialogueState.BOOKING_TIME, temp_data=EmptyData())


class TestInvalidInputKeepsState:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("state,data,inputs", INVALID_INPUTS, ids=[s.value for s, _, _ in INVALID_INPUTS])
    async def test_out_of_domain_input(self, controller, sessions, state, data, inputs):
        for text in inputs:
            await sessions.save(PHONE, Session(state=state, temp_data=data))

            reply = await controller.handle_message(PHONE, text)

            session = await _state(controller)
            assert reply
            assert session.state == state
            assert session.temp_data == data


class TestMenu:
    @pytest.mark.asyncio
    async def test_first_contact_shows_menu(self, controller):
        reply = await controller.handle_message(PHONE, "Olá")
        assert reply == messages.menu_message()
        assert (await _state(controller)).state == DialogueState.MENU

    @pytest.mark.asyncio
    async def test_new_customer(self, controller):
        reply = await controller.handle_message(PHONE, "1")
        assert reply == messages.ASK_OWNER_NAME
        assert (await _state(controller)).state == DialogueState.NEW_CUSTOMER

    @pytest.mark.asyncio
    async def test_returning_customer_with_pets(self, controller, store):
        await _register(store, pets=("Rex", "Mel"))

        reply = await controller.handle_message(PHONE, "1")

        session = await _state(controller)
        assert session.state == DialogueState.SELECT_PET
        assert session.temp_data.pet_names == ["Rex", "Mel"]
        assert "*1* - Rex" in reply
        assert "*2* - Mel" in reply
        assert "*0* - Adicionar outro pet" in reply

    @pytest.mark.asyncio
    async def test_returning_customer_without_pets(self, controller, store):
        await _register(store, pets=())
        reply = await controller.handle_message(PHONE, "1")
        assert reply == messages.ASK_PET_NAME_NO_PETS
        assert (await _state(controller)).state == DialogueState.ADD_PET

    @pytest.mark.asyncio
    async def test_customer_lookup_failure_treated_as_new(self, controller, store, monkeypatch):
        monkeypatch.setattr(store, "get_customer_by_phone", storage_down)
        reply = await controller.handle_message(PHONE, "1")
        assert reply == messages.ASK_OWNER_NAME

    @pytest.mark.asyncio
    async def test_cancel_without_appointments(self, controller):
        reply = await controller.handle_message(PHONE, "2")
        assert reply == messages.NO_FUTURE_APPOINTMENTS
        assert (await _state(controller)).state == DialogueState.MENU


class TestHumanHandoff:
    @pytest.mark.asyncio
    async def test_handoff_pauses_for_sixty_minutes(self, controller, clock):
        reply = await controller.handle_message(PHONE, "3")

        session = await _state(controller)
        assert "atendente" in reply
        assert "60 minutos" in reply
        assert session.state == DialogueState.MENU
        assert session.paused_until == clock() + timedelta(minutes=60)

    @pytest.mark.asyncio
    async def test_messages_ignored_while_paused(self, controller, clock):
        await controller.handle_message(PHONE, "3")
        clock.advance(minutes=59)
        assert await controller.handle_message(PHONE, "1") is None
        assert await controller.handle_message(PHONE, "voltar") is None

        clock.advance(minutes=2)
        assert await controller.handle_message(PHONE, "1") == messages.ASK_OWNER_NAME

    @pytest.mark.asyncio
    async def test_ten_minute_pause(self, controller, sessions, clock):
        await sessions.save(PHONE, Session(paused_until=clock() + timedelta(minutes=10)))

        assert await controller.handle_message(PHONE, "1") is None
        assert (await _state(controller)).state == DialogueState.MENU

        clock.advance(minutes=11)
        assert await controller.handle_message(PHONE, "1") == messages.ASK_OWNER_NAME

    @pytest.mark.asyncio
    async def test_pause_is_per_phone(self, controller):
        await controller.handle_message(PHONE, "3")
        assert await controller.handle_message(OTHER_PHONE, "1") == messages.ASK_OWNER_NAME


class TestBackKeyword:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("keyword", ["voltar", "  VOLTAR ", "Back"])
    async def test_back_resets_to_menu(self, controller, keyword):
        await converse(controller, "1", "Maria", "Rex")
        assert (await _state(controller)).state == DialogueState.BOOKING_SERVICE

        reply = await controller.handle_message(PHONE, keyword)

        session = await _state(controller)
        assert reply == messages.menu_message()
        assert session.state == DialogueState.MENU
        assert session.temp_data == EmptyData()


class TestIntake:
    @pytest.mark.asyncio
    async def test_new_customer_and_pet_are_saved(self, controller, store):
        replies = await converse(controller, "1", "maria", "rEX")

        session = await _state(controller)
        assert replies[1] == messages.ASK_FIRST_PET_NAME
        assert "Qual serviço deseja agendar?" in replies[2]
        assert session.state == DialogueState.BOOKING_SERVICE
        assert session.temp_data.owner_name == "Maria"
        assert session.temp_data.pet_name == "Rex"
        assert store.customers[PHONE].owner_name == "Maria"
        assert [p.name for p in store.pets.values()] == ["Rex"]

    @pytest.mark.asyncio
    async def test_save_failure_does_not_block_booking(self, controller, store, monkeypatch):
        monkeypatch.setattr(store, "create_customer", storage_down)
        await converse(controller, "1", "Maria", "Rex")
        assert (await _state(controller)).state == DialogueState.BOOKING_SERVICE
        assert store.customers == {}

    @pytest.mark.asyncio
    async def test_select_existing_pet(self, controller, store):
        await _register(store, pets=("Rex", "Mel"))
        await converse(controller, "1", "2")

        session = await _state(controller)
        assert session.state == DialogueState.BOOKING_SERVICE
        assert session.temp_data.pet_name == "Mel"
        assert session.temp_data.owner_name == "Maria"

    @pytest.mark.asyncio
    async def test_add_another_pet(self, controller, store):
        customer = await _register(store)
        replies = await converse(controller, "1", "0", "Thor")

        assert replies[1] == messages.ASK_NEW_PET_NAME
        assert (await _state(controller)).temp_data.pet_name == "Thor"
        assert [p.name for p in await store.list_pets(customer.id)] == ["Rex", "Thor"]
        assert len(store.customers) == 1

    @pytest.mark.asyncio
    async def test_pet_name_asked_when_missing(self, controller, sessions):
        await sessions.save(
            PHONE,
            Session(state=DialogueState.BOOKING_SERVICE, temp_data=BookingDraft(owner_name="Maria")),
        )

        replies = await converse(controller, "5", "toby")

        session = await _state(controller)
        assert replies[0] == messages.ASK_PET_NAME
        assert session.state == DialogueState.BOOKING_PROFESSIONAL
        assert session.temp_data.service == "Corte De Unhas"
        assert session.temp_data.pet_name == "Toby"


class TestBookingFlow:
    @pytest.mark.asyncio
    async def test_round_trip_books_displayed_slot(self, controller, store):
        replies = await converse(controller, *BOOKING_START)
        assert "*1* - Amanhã\n20 de Outubro de 2026" in replies[-1]
        assert "*6* - Data específica" in replies[-1]

        times_reply = await controller.handle_message(PHONE, "1")
        assert "*1* - 09:00" in times_reply

        summary = await controller.handle_message(PHONE, "1")
        assert "DATA: 20/10/2026 às 09:00" in summary
        assert "Profissional: Lais" in summary

        confirmation = await controller.handle_message(PHONE, "1")

        confirmed = [a for a in store.appointments.values() if a.status == AppointmentStatus.CONFIRMED]
        assert len(confirmed) == 1
        appointment = confirmed[0]
        assert (appointment.date, appointment.time, appointment.professional_id) == (TOMORROW, "09:00", 1)
        assert appointment.pet_name == "Rex"
        assert appointment.phone == PHONE
        assert f"#{appointment.id}" in confirmation
        assert "R$ 40,00" in confirmation
        assert confirmation.endswith(messages.menu_message())

        session = await _state(controller)
        assert session.state == DialogueState.MENU
        assert session.temp_data == EmptyData()

    @pytest.mark.asyncio
    async def test_at_most_five_dates_offered(self, controller, store):
        store.date_settings = store.date_settings.model_copy(update={"days_to_show": 10})
        await converse(controller, *BOOKING_START)
        assert len((await _state(controller)).temp_data.offered_dates) == 5

    @pytest.mark.asyncio
    async def test_decline_at_confirmation(self, controller, store):
        replies = await converse(controller, *BOOKING_START, "1", "1", "2")
        assert replies[-1].startswith(messages.BOOKING_DISCARDED)
        assert store.appointments == {}
        assert (await _state(controller)).state == DialogueState.MENU

    @pytest.mark.asyncio
    async def test_selected_date_filled_meanwhile(self, controller, store):
        await converse(controller, *BOOKING_START)
        before = await _state(controller)
        await fill_day(store, TOMORROW)

        reply = await controller.handle_message(PHONE, "1")

        after = await _state(controller)
        assert reply == messages.NO_TIMES_FOR_DATE
        assert after.state == DialogueState.BOOKING_DATE
        assert after.temp_data == before.temp_data

    @pytest.mark.asyncio
    async def test_slot_taken_before_confirmation(self, controller, store):
        await converse(controller, *BOOKING_START, "1", "1")
        await add_appointment(store, TOMORROW, "09:00", phone=OTHER_PHONE)

        reply = await controller.handle_message(PHONE, "1")

        session = await _state(controller)
        assert reply.startswith(messages.SLOT_TAKEN)
        assert session.state == DialogueState.BOOKING_TIME
        assert "09:00" not in session.temp_data.offered_times
        assert session.temp_data.offered_times[0] == "10:00"
        assert len(store.appointments) == 1

    @pytest.mark.asyncio
    async def test_day_full_before_confirmation(self, controller, store):
        await converse(controller, *BOOKING_START, "1", "1")
        await fill_day(store, TOMORROW)

        reply = await controller.handle_message(PHONE, "1")

        session = await _state(controller)
        assert reply.startswith(messages.SLOT_TAKEN)
        assert session.state == DialogueState.BOOKING_DATE
        assert TOMORROW not in [d.date for d in session.temp_data.offered_dates]

    @pytest.mark.asyncio
    async def test_confirming_after_the_day_passed_offers_new_dates(self, controller, store, clock):
        await converse(controller, *BOOKING_START, "1", "1")
        clock.advance(days=2)

        reply = await controller.handle_message(PHONE, "1")

        session = await _state(controller)
        assert reply.startswith(messages.SLOT_TAKEN)
        assert session.state == DialogueState.BOOKING_DATE
        assert session.temp_data.offered_times == []
        assert session.temp_data.offered_dates[0].date == "2026-10-22"
        assert store.appointments == {}

    @pytest.mark.asyncio
    async def test_insert_failure_stays_in_confirm(self, controller, store, monkeypatch):
        await converse(controller, *BOOKING_START, "1", "1")
        monkeypatch.setattr(store, "insert_appointment", storage_down)

        reply = await controller.handle_message(PHONE, "1")

        assert reply == messages.BOOKING_FAILED
        assert (await _state(controller)).state == DialogueState.BOOKING_CONFIRM
        assert store.appointments == {}

    @pytest.mark.asyncio
    async def test_concurrent_customers_same_slot(self, controller, store):
        await converse(controller, *BOOKING_START, "1", "1")
        await converse(controller, *BOOKING_START, "1", "1", phone=OTHER_PHONE)

        replies = await asyncio.gather(
            controller.handle_message(PHONE, "1"),
            controller.handle_message(OTHER_PHONE, "1"),
        )

        assert len(store.appointments) == 1
        assert sum(reply.startswith(messages.SLOT_TAKEN) for reply in replies) == 1

    @pytest.mark.asyncio
    async def test_messages_for_one_phone_are_serialized(self, controller):
        await asyncio.gather(
            controller.handle_message(PHONE, "1"),
            controller.handle_message(PHONE, "Maria"),
        )
        session = await _state(controller)
        assert session.state == DialogueState.ADD_PET
        assert session.temp_data.owner_name == "Maria"


class TestManualDate:
    @pytest.mark.asyncio
    async def test_manual_date_to_times(self, controller):
        replies = await converse(controller, *BOOKING_START, "6", "27/10/2026")

        session = await _state(controller)
        assert replies[-2] == messages.ASK_MANUAL_DATE
        assert session.state == DialogueState.BOOKING_TIME
        assert session.temp_data.date == "2026-10-27"
        assert "Agendamento em: *27/10/2026*" in replies[-1]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("27-10-2026", messages.MANUAL_DATE_BAD_FORMAT),
            ("18/10/2026", messages.MANUAL_DATE_PAST),
            ("25/10/2026", messages.MANUAL_DATE_EXCLUDED),
        ],
    )
    async def test_rejected_manual_dates(self, controller, text, expected):
        await converse(controller, *BOOKING_START, "6")
        reply = await controller.handle_message(PHONE, text)
        assert reply == expected
        assert (await _state(controller)).state == DialogueState.BOOKING_MANUAL_DATE

    @pytest.mark.asyncio
    async def test_manual_date_without_times(self, controller, store):
        await fill_day(store, "2026-10-27")
        await converse(controller, *BOOKING_START, "6")
        reply = await controller.handle_message(PHONE, "27/10/2026")
        assert reply == messages.NO_TIMES_FOR_DATE
        assert (await _state(controller)).state == DialogueState.BOOKING_MANUAL_DATE

    @pytest.mark.asyncio
    async def test_manual_date_round_trip(self, controller, store):
        await converse(controller, *BOOKING_START, "6", "27/10/2026", "2", "1")
        appointment = next(iter(store.appointments.values()))
        assert (appointment.date, appointment.time) == ("2026-10-27", "10:00")


class TestCancellation:
    @pytest.mark.asyncio
    async def test_lists_only_future_active_appointments(self, controller, store):
        future = await add_appointment(store, TOMORROW, "10:00")
        await add_appointment(store, "2026-10-16", "10:00")
        await add_appointment(store, TOMORROW, "11:00", status=AppointmentStatus.CANCELED)
        await add_appointment(store, TOMORROW, "13:00", phone=OTHER_PHONE)

        reply = await controller.handle_message(PHONE, "2")

        session = await _state(controller)
        assert session.state == DialogueState.AWAITING_CANCELLATION_CHOICE
        assert [a.id for a in session.temp_data.appointments] == [future.id]
        assert "*1* - *Rex - Banho - 20/10/2026 às 10:00*" in reply

    @pytest.mark.asyncio
    async def test_cancel_appointment(self, controller, store, notifier):
        appointment = await add_appointment(store, TOMORROW, "10:00")

        replies = await converse(controller, "2", "1", "1")

        assert "Você selecionou" in replies[1]
        assert "cancelado com sucesso" in replies[2]
        assert store.appointments[appointment.id].status == AppointmentStatus.CANCELED
        assert notifier.notified == [appointment.id]
        assert (await _state(controller)).state == DialogueState.MENU

    @pytest.mark.asyncio
    async def test_choice_recorded_before_confirmation(self, controller, store):
        await add_appointment(store, TOMORROW, "10:00")
        second = await add_appointment(store, "2026-10-21", "09:00")

        await converse(controller, "2", "2")

        session = await _state(controller)
        assert session.state == DialogueState.AWAITING_CANCELLATION_CONFIRMATION
        assert session.temp_data.appointment_id_to_cancel == second.id

    @pytest.mark.asyncio
    async def test_anything_but_one_aborts(self, controller, store, notifier):
        appointment = await add_appointment(store, TOMORROW, "10:00")

        replies = await converse(controller, "2", "1", "não")

        assert replies[-1] == messages.CANCELLATION_ABORTED
        assert store.appointments[appointment.id].status == AppointmentStatus.CONFIRMED
        assert notifier.notified == []
        assert (await _state(controller)).state == DialogueState.MENU

    @pytest.mark.asyncio
    async def test_cancel_code_state_behaves_like_choice(self, controller, sessions, store):
        appointment = await add_appointment(store, TOMORROW, "10:00")
        summary = AppointmentSummary.from_appointment(appointment)
        await sessions.save(
            PHONE,
            Session(state=DialogueState.CANCEL_CODE, temp_data=CancellationData(appointments=[summary])),
        )

        await controller.handle_message(PHONE, "1")

        session = await _state(controller)
        assert session.state == DialogueState.AWAITING_CANCELLATION_CONFIRMATION
        assert session.temp_data.appointment_id_to_cancel == appointment.id

    @pytest.mark.asyncio
    async def test_cannot_cancel_someone_elses_appointment(self, controller, sessions, store):
        appointment = await add_appointment(store, TOMORROW, "10:00", phone=OTHER_PHONE)
        await sessions.save(
            PHONE,
            Session(
                state=DialogueState.AWAITING_CANCELLATION_CONFIRMATION,
                temp_data=CancellationData(appointment_id_to_cancel=appointment.id),
            ),
        )

        reply = await controller.handle_message(PHONE, "1")

        assert reply == messages.APPOINTMENT_NOT_FOUND
        assert store.appointments[appointment.id].status == AppointmentStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_lookup_failure(self, controller, store, monkeypatch):
        monkeypatch.setattr(store, "list_future_appointments", storage_down)
        reply = await controller.handle_message(PHONE, "2")
        assert reply == messages.APPOINTMENTS_LOOKUP_FAILED
        assert (await _state(controller)).state == DialogueState.MENU

    @pytest.mark.asyncio
    async def test_update_failure(self, controller, store, monkeypatch):
        await add_appointment(store, TOMORROW, "10:00")
        await converse(controller, "2", "1")
        monkeypatch.setattr(store, "update_appointment_status", storage_down)

        reply = await controller.handle_message(PHONE, "1")

        assert reply == messages.CANCELLATION_FAILED


class TestReminderResponse:
    @pytest.mark.asyncio
    async def test_begin_reminder_sets_state(self, controller, store):
        appointment = await add_appointment(store, TOMORROW, "10:00")

        await controller.begin_reminder(PHONE, appointment.id)

        session = await _state(controller)
        assert session.state == DialogueState.AWAITING_REMINDER_RESPONSE
        assert session.temp_data.appointment_id == appointment.id

    @pytest.mark.asyncio
    async def test_confirm_presence(self, controller, store):
        appointment = await add_appointment(store, TOMORROW, "10:00")
        await controller.begin_reminder(PHONE, appointment.id)

        reply = await controller.handle_message(PHONE, "1")

        assert reply == messages.REMINDER_ACKNOWLEDGED
        assert store.appointments[appointment.id].status == AppointmentStatus.CONFIRMED
        assert (await _state(controller)).state == DialogueState.MENU

    @pytest.mark.asyncio
    async def test_cancel_from_reminder(self, controller, store, notifier):
        appointment = await add_appointment(store, TOMORROW, "10:00")
        await controller.begin_reminder(PHONE, appointment.id)

        reply = await controller.handle_message(PHONE, "2")

        assert "cancelado com sucesso" in reply
        assert store.appointments[appointment.id].status == AppointmentStatus.CANCELED
        assert notifier.notified == [appointment.id]

    @pytest.mark.asyncio
    async def test_reminder_during_a_turn_is_not_lost(self, controller, store, monkeypatch):
        appointment = await add_appointment(store, TOMORROW, "10:00")
        lookup = store.get_customer_by_phone

        async def slow_lookup(phone):
            await asyncio.sleep(0.01)
            return await lookup(phone)

        monkeypatch.setattr(store, "get_customer_by_phone", slow_lookup)

        reply, _ = await asyncio.gather(
            controller.handle_message(PHONE, "1"),
            controller.begin_reminder(PHONE, appointment.id),
        )

        session = await _state(controller)
        if reply == messages.ASK_OWNER_NAME:
            # turn first, then the reminder
            assert session.state == DialogueState.AWAITING_REMINDER_RESPONSE
            assert session.temp_data.appointment_id == appointment.id
        else:
            # reminder first, then the "1" acknowledged it
            assert reply == messages.REMINDER_ACKNOWLEDGED
            assert session.state == DialogueState.MENU
        assert store.sessions[PHONE]["state"] == session.state.value


class TestSaveSession:
    @pytest.mark.asyncio
    async def test_writes_through(self, controller, store):
        session = Session(state=DialogueState.NEW_CUSTOMER, temp_data=IntakeData(owner_name="Maria"))

        assert await controller.save_session(PHONE, session)

        assert (await _state(controller)) == session
        assert store.sessions[PHONE]["temp_data"]["owner_name"] == "Maria"

    @pytest.mark.asyncio
    async def test_waits_for_the_phone_lock(self, controller, sessions):
        session = Session(state=DialogueState.NEW_CUSTOMER, temp_data=IntakeData())

        async with sessions.lock(PHONE):
            task = asyncio.create_task(controller.save_session(PHONE, session))
            await asyncio.sleep(0)
            assert not task.done()
            assert (await sessions.load(PHONE)).state == DialogueState.MENU

        assert await task
        assert (await _state(controller)).state == DialogueState.NEW_CUSTOMER
