"""
Storage collaborator interface.

The booking engine never talks to a database directly; it consumes this
keyed CRUD surface. Implementations raise ``StorageError`` for transient
failures so callers can degrade or log as the error policy requires.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from petcare.schemas.booking_schema import Appointment, AppointmentStatus, BookingRequest
from petcare.schemas.catalog_schema import Professional, Service
from petcare.schemas.customer_schema import Customer, Pet
from petcare.schemas.settings_schema import DateConfig, WeeklyHoursConfig


class StorageError(Exception):
    """Raised when the storage collaborator cannot complete an operation."""


class BookingStore(ABC):
    # --- catalog ---
    @abstractmethod
    async def list_services(self) -> list[Service]:
        raise NotImplementedError

    @abstractmethod
    async def get_service_by_name(self, name: str) -> Optional[Service]:
        raise NotImplementedError

    @abstractmethod
    async def list_professionals(self) -> list[Professional]:
        raise NotImplementedError

    # --- customers and pets ---
    @abstractmethod
    async def get_customer_by_phone(self, phone: str) -> Optional[Customer]:
        raise NotImplementedError

    @abstractmethod
    async def create_customer(self, phone: str, owner_name: str) -> Customer:
        """Insert a customer; if the phone already exists, return the existing row."""
        raise NotImplementedError

    @abstractmethod
    async def list_pets(self, customer_id: int) -> list[Pet]:
        raise NotImplementedError

    @abstractmethod
    async def create_pet(self, customer_id: int, name: str) -> Pet:
        raise NotImplementedError

    # --- appointments ---
    @abstractmethod
    async def list_appointments(
        self, date: str, professional_id: int, status: AppointmentStatus
    ) -> list[Appointment]:
        raise NotImplementedError

    @abstractmethod
    async def list_future_appointments(self, phone: str, from_date: str) -> list[Appointment]:
        """Pending/confirmed appointments of a phone on or after ``from_date``, by (date, time)."""
        raise NotImplementedError

    @abstractmethod
    async def list_reminder_candidates(self, from_date: str, to_date: str) -> list[Appointment]:
        """Confirmed, not-yet-reminded appointments within [from_date, to_date], by (date, time)."""
        raise NotImplementedError

    @abstractmethod
    async def get_appointment(self, appointment_id: int) -> Optional[Appointment]:
        raise NotImplementedError

    @abstractmethod
    async def insert_appointment(
        self, request: BookingRequest, status: AppointmentStatus
    ) -> Appointment:
        raise NotImplementedError

    @abstractmethod
    async def update_appointment_status(
        self, appointment_id: int, status: AppointmentStatus
    ) -> bool:
        """Returns False when no row was updated."""
        raise NotImplementedError

    @abstractmethod
    async def mark_reminder_sent(self, appointment_id: int, sent_at: datetime) -> None:
        raise NotImplementedError

    # --- settings ---
    @abstractmethod
    async def get_date_settings(self) -> Optional[DateConfig]:
        raise NotImplementedError

    @abstractmethod
    async def get_time_settings(self) -> Optional[WeeklyHoursConfig]:
        raise NotImplementedError

    @abstractmethod
    async def get_reminder_interval(self) -> Optional[int]:
        """Hours before an appointment at which the reminder goes out."""
        raise NotImplementedError

    # --- chat sessions ---
    @abstractmethod
    async def load_session(self, phone: str) -> Optional[dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    async def save_session(self, phone: str, record: dict[str, Any]) -> None:
        """Upsert the serialized session for a phone."""
        raise NotImplementedError
