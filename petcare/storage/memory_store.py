"""
In-process booking store.

Reference implementation of the storage collaborator used by the console
demo and the test suite. In production this is backed by the shop's
database (customers, pets, appointments, settings and chat_sessions tables).
"""

import copy
import itertools
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from petcare.schemas.booking_schema import Appointment, AppointmentStatus, BookingRequest
from petcare.schemas.catalog_schema import Professional, Service
from petcare.schemas.customer_schema import Customer, Pet
from petcare.schemas.settings_schema import DateConfig, WeeklyHoursConfig
from petcare.storage.base import BookingStore
from petcare.tools.services import (
    DEFAULT_REMINDER_INTERVAL_HOURS,
    default_date_settings,
    default_professionals,
    default_services,
    default_time_settings,
)

logger = logging.getLogger(__name__)

_ACTIVE_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)


class InMemoryBookingStore(BookingStore):
    def __init__(
        self,
        services: Optional[list[Service]] = None,
        professionals: Optional[list[Professional]] = None,
        date_settings: Optional[DateConfig] = None,
        time_settings: Optional[WeeklyHoursConfig] = None,
        reminder_interval: Optional[int] = None,
    ) -> None:
        self.services: list[Service] = list(services or [])
        self.professionals: list[Professional] = list(professionals or [])
        self.date_settings = date_settings
        self.time_settings = time_settings
        self.reminder_interval = reminder_interval
        self.customers: dict[str, Customer] = {}
        self.pets: dict[int, Pet] = {}
        self.appointments: dict[int, Appointment] = {}
        self.sessions: dict[str, dict[str, Any]] = {}
        self._customer_ids = itertools.count(1)
        self._pet_ids = itertools.count(1)
        self._appointment_ids = itertools.count(1)

    @classmethod
    def with_defaults(cls) -> "InMemoryBookingStore":
        """Store seeded with the default catalog, team and settings rows."""
        return cls(
            services=default_services(),
            professionals=default_professionals(),
            date_settings=default_date_settings(),
            time_settings=default_time_settings(),
            reminder_interval=DEFAULT_REMINDER_INTERVAL_HOURS,
        )

    # --- catalog ---

    async def list_services(self) -> list[Service]:
        return list(self.services)

    async def get_service_by_name(self, name: str) -> Optional[Service]:
        return next((s for s in self.services if s.name == name), None)

    async def list_professionals(self) -> list[Professional]:
        return list(self.professionals)

    # --- customers and pets ---

    async def get_customer_by_phone(self, phone: str) -> Optional[Customer]:
        return self.customers.get(phone)

    async def create_customer(self, phone: str, owner_name: str) -> Customer:
        existing = self.customers.get(phone)
        if existing is not None:
            logger.debug("Customer %s already registered, reusing id %d", phone, existing.id)
            return existing
        customer = Customer(id=next(self._customer_ids), phone=phone, owner_name=owner_name)
        self.customers[phone] = customer
        logger.info("New customer saved: %s", owner_name)
        return customer

    async def list_pets(self, customer_id: int) -> list[Pet]:
        return [p for p in self.pets.values() if p.customer_id == customer_id]

    async def create_pet(self, customer_id: int, name: str) -> Pet:
        pet = Pet(id=next(self._pet_ids), customer_id=customer_id, name=name)
        self.pets[pet.id] = pet
        logger.info("New pet saved: %s", name)
        return pet

    # --- appointments ---

    async def list_appointments(
        self, date: str, professional_id: int, status: AppointmentStatus
    ) -> list[Appointment]:
        return sorted(
            (
                a for a in self.appointments.values()
                if a.date == date and a.professional_id == professional_id and a.status == status
            ),
            key=lambda a: a.time,
        )

    async def list_future_appointments(self, phone: str, from_date: str) -> list[Appointment]:
        return sorted(
            (
                a for a in self.appointments.values()
                if a.phone == phone and a.status in _ACTIVE_STATUSES and a.date >= from_date
            ),
            key=lambda a: (a.date, a.time),
        )

    async def list_reminder_candidates(self, from_date: str, to_date: str) -> list[Appointment]:
        return sorted(
            (
                a for a in self.appointments.values()
                if a.status == AppointmentStatus.CONFIRMED
                and not a.reminder_sent
                and from_date <= a.date <= to_date
            ),
            key=lambda a: (a.date, a.time),
        )

    async def get_appointment(self, appointment_id: int) -> Optional[Appointment]:
        return self.appointments.get(appointment_id)

    async def insert_appointment(
        self, request: BookingRequest, status: AppointmentStatus
    ) -> Appointment:
        appointment = Appointment(
            id=next(self._appointment_ids),
            status=status,
            created_at=datetime.now(timezone.utc),
            **request.model_dump(),
        )
        self.appointments[appointment.id] = appointment
        return appointment

    async def update_appointment_status(
        self, appointment_id: int, status: AppointmentStatus
    ) -> bool:
        appointment = self.appointments.get(appointment_id)
        if appointment is None:
            return False
        self.appointments[appointment_id] = appointment.model_copy(update={"status": status})
        return True

    async def mark_reminder_sent(self, appointment_id: int, sent_at: datetime) -> None:
        appointment = self.appointments.get(appointment_id)
        if appointment is not None:
            self.appointments[appointment_id] = appointment.model_copy(
                update={"reminder_sent": True, "reminder_sent_at": sent_at}
            )

    # --- settings ---

    async def get_date_settings(self) -> Optional[DateConfig]:
        return self.date_settings

    async def get_time_settings(self) -> Optional[WeeklyHoursConfig]:
        return self.time_settings

    async def get_reminder_interval(self) -> Optional[int]:
        return self.reminder_interval

    # --- chat sessions ---

    async def load_session(self, phone: str) -> Optional[dict[str, Any]]:
        record = self.sessions.get(phone)
        return copy.deepcopy(record) if record is not None else None

    async def save_session(self, phone: str, record: dict[str, Any]) -> None:
        self.sessions[phone] = copy.deepcopy(record)
