"""Shared test fixtures and helpers.

The fixed clock starts on Monday 2026-10-19 at 10:00 in the shop's timezone.
With the default settings (weekdays 09:00-17:00, hourly, lunch 12:00-13:00,
weekends excluded, start from tomorrow) the first candidate dates are
Tue 20, Wed 21, Thu 22, Fri 23 and Mon 26 of October 2026.
"""

from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

import pytest

from petcare.business_calendar import BusinessCalendar
from petcare.conversation.session_store import SessionStore
from petcare.conversation.state_machine import DialogueController
from petcare.messaging.base import LoggingNotifier, OutboxMessenger
from petcare.schemas.booking_schema import Appointment, AppointmentStatus, BookingRequest
from petcare.storage.base import StorageError
from petcare.storage.memory_store import InMemoryBookingStore
from petcare.tools.availability import AvailabilityEngine

TZ = "America/Sao_Paulo"
PHONE = "5511999990000"
OTHER_PHONE = "5511988887777"

TODAY = "2026-10-19"
TOMORROW = "2026-10-20"
SATURDAY = "2026-10-24"
SUNDAY = "2026-10-25"

WEEKDAY_SLOTS = ["09:00", "10:00", "11:00", "13:00", "14:00", "15:00", "16:00"]


class FixedClock:
    """Callable clock whose instant only moves when a test advances it."""

    def __init__(self, instant: datetime) -> None:
        self.instant = instant

    def __call__(self) -> datetime:
        return self.instant

    def advance(self, **kwargs) -> None:
        self.instant += timedelta(**kwargs)


def local_time(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=ZoneInfo(TZ))


@pytest.fixture
def clock():
    return FixedClock(local_time(2026, 10, 19, 10, 0))


@pytest.fixture
def calendar(clock):
    return BusinessCalendar(TZ, clock)


@pytest.fixture
def store():
    return InMemoryBookingStore.with_defaults()


@pytest.fixture
def engine(store, calendar):
    return AvailabilityEngine(
        store, calendar, lead_time_minutes=30, default_duration=60, scan_horizon_days=60
    )


@pytest.fixture
def sessions(store):
    return SessionStore(store)


@pytest.fixture
def notifier():
    return LoggingNotifier()


@pytest.fixture
def controller(store, sessions, engine, notifier):
    return DialogueController(
        store, sessions, engine, notifier, pause_minutes=60, manual_date_option=6
    )


@pytest.fixture
def outbox():
    return OutboxMessenger()


async def add_appointment(
    store: InMemoryBookingStore,
    date: str,
    time: str,
    service: str = "Banho",
    professional_id: int = 1,
    status: AppointmentStatus = AppointmentStatus.CONFIRMED,
    phone: str = PHONE,
    pet_name: str = "Rex",
    owner_name: str = "Maria",
) -> Appointment:
    """Insert an appointment directly into the store."""
    request = BookingRequest(
        pet_name=pet_name,
        owner_name=owner_name,
        phone=phone,
        service=service,
        date=date,
        time=time,
        professional_id=professional_id,
    )
    return await store.insert_appointment(request, status)


async def fill_day(store: InMemoryBookingStore, date: str, professional_id: int = 1) -> None:
    """Book every default weekday slot for a professional."""
    for slot in WEEKDAY_SLOTS:
        await add_appointment(store, date, slot, professional_id=professional_id)


async def converse(controller: DialogueController, *messages: str, phone: str = PHONE) -> list[Optional[str]]:
    """Send messages in order and collect the replies."""
    return [await controller.handle_message(phone, text) for text in messages]


async def storage_down(*args, **kwargs):
    raise StorageError("storage unavailable")
