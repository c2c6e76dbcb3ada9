"""Appointment and availability data models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELED = "canceled"


class Appointment(BaseModel):
    """Stored appointment.

    Only ``confirmed`` appointments occupy a professional's time; for a given
    (professional_id, date) their [time, time + duration) intervals never overlap.
    """
    id: int
    pet_name: str
    owner_name: str
    phone: str
    service: str
    date: str = Field(pattern=DATE_PATTERN)
    time: str = Field(pattern=TIME_PATTERN)
    status: AppointmentStatus = AppointmentStatus.PENDING
    professional_id: Optional[int] = None
    reminder_sent: bool = False
    reminder_sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class BookingRequest(BaseModel):
    """Validated data for a new confirmed appointment."""
    pet_name: str
    owner_name: str
    phone: str
    service: str
    date: str = Field(pattern=DATE_PATTERN)
    time: str = Field(pattern=TIME_PATTERN)
    professional_id: int


class AppointmentSummary(BaseModel):
    """Subset of an appointment shown in the cancellation list."""
    id: int
    pet_name: str
    service: str
    date: str
    time: str

    @classmethod
    def from_appointment(cls, appointment: Appointment) -> "AppointmentSummary":
        return cls(
            id=appointment.id,
            pet_name=appointment.pet_name,
            service=appointment.service,
            date=appointment.date,
            time=appointment.time,
        )


class CandidateDate(BaseModel):
    """A bookable day offered to the customer."""
    date: str = Field(pattern=DATE_PATTERN)
    day_label: str
    display: str

    @property
    def option_text(self) -> str:
        return f"{self.day_label}, {self.display}"
