"""
Per-phone dialogue session.

The accumulator carried between turns is a tagged union: each state family
owns exactly one data shape, and ``Session`` refuses combinations where the
state and the data kind disagree.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator

from petcare.schemas.booking_schema import AppointmentSummary, CandidateDate


class DialogueState(str, Enum):
    """All states of the booking dialogue. ``menu`` is initial and terminal."""
    MENU = "menu"
    NEW_CUSTOMER = "new_customer"
    ADD_PET = "add_pet"
    SELECT_PET = "select_pet"
    BOOKING_SERVICE = "booking_service"
    BOOKING_PET_NAME = "booking_pet_name"
    BOOKING_PROFESSIONAL = "booking_professional"
    BOOKING_DATE = "booking_date"
    BOOKING_MANUAL_DATE = "booking_manual_date"
    BOOKING_TIME = "booking_time"
    BOOKING_CONFIRM = "booking_confirm"
    CANCEL_CODE = "cancel_code"
    AWAITING_CANCELLATION_CHOICE = "awaiting_cancellation_choice"
    AWAITING_CANCELLATION_CONFIRMATION = "awaiting_cancellation_confirmation"
    AWAITING_REMINDER_RESPONSE = "awaiting_reminder_response"


class EmptyData(BaseModel):
    kind: Literal["empty"] = "empty"


class IntakeData(BaseModel):
    """Identifying the owner and the pet before a booking starts."""
    kind: Literal["intake"] = "intake"
    customer_id: Optional[int] = None
    owner_name: Optional[str] = None
    pet_names: list[str] = Field(default_factory=list)


class BookingDraft(BaseModel):
    """Booking in progress."""
    kind: Literal["booking"] = "booking"
    customer_id: Optional[int] = None
    owner_name: Optional[str] = None
    pet_name: Optional[str] = None
    service: Optional[str] = None
    price: Optional[float] = None
    professional_id: Optional[int] = None
    professional_name: Optional[str] = None
    offered_dates: list[CandidateDate] = Field(default_factory=list)
    date: Optional[str] = None
    date_display: Optional[str] = None
    offered_times: list[str] = Field(default_factory=list)
    time: Optional[str] = None


class CancellationData(BaseModel):
    """Cancellation in progress: the listed appointments and the chosen one."""
    kind: Literal["cancellation"] = "cancellation"
    appointments: list[AppointmentSummary] = Field(default_factory=list)
    appointment_id_to_cancel: Optional[int] = None


class ReminderData(BaseModel):
    """Reminder sent, waiting for confirm (1) or cancel (2)."""
    kind: Literal["reminder"] = "reminder"
    appointment_id: int
    reminder_sent_at: Optional[datetime] = None


TempData = Annotated[
    Union[EmptyData, IntakeData, BookingDraft, CancellationData, ReminderData],
    Field(discriminator="kind"),
]

STATE_DATA: dict[DialogueState, type] = {
    DialogueState.MENU: EmptyData,
    DialogueState.NEW_CUSTOMER: IntakeData,
    DialogueState.ADD_PET: IntakeData,
    DialogueState.SELECT_PET: IntakeData,
    DialogueState.BOOKING_SERVICE: BookingDraft,
    DialogueState.BOOKING_PET_NAME: BookingDraft,
    DialogueState.BOOKING_PROFESSIONAL: BookingDraft,
    DialogueState.BOOKING_DATE: BookingDraft,
    DialogueState.BOOKING_MANUAL_DATE: BookingDraft,
    DialogueState.BOOKING_TIME: BookingDraft,
    DialogueState.BOOKING_CONFIRM: BookingDraft,
    DialogueState.CANCEL_CODE: CancellationData,
    DialogueState.AWAITING_CANCELLATION_CHOICE: CancellationData,
    DialogueState.AWAITING_CANCELLATION_CONFIRMATION: CancellationData,
    DialogueState.AWAITING_REMINDER_RESPONSE: ReminderData,
}


class Session(BaseModel):
    """Dialogue state, accumulator and human-handoff pause for one phone."""
    state: DialogueState = DialogueState.MENU
    temp_data: TempData = Field(default_factory=EmptyData)
    paused_until: Optional[datetime] = None

    @model_validator(mode="after")
    def _data_matches_state(self) -> "Session":
        expected = STATE_DATA[self.state]
        if not isinstance(self.temp_data, expected):
            raise ValueError(
                f"State '{self.state.value}' requires {expected.__name__}, "
                f"got {type(self.temp_data).__name__}"
            )
        return self

    def is_paused(self, now: datetime) -> bool:
        return self.paused_until is not None and self.paused_until > now
