"""
Availability engine: candidate dates and free time slots per professional.

Slots are generated from the weekly hours settings, then filtered against
the professional's confirmed appointments with half-open interval overlap,
so a slot [start, start + duration) is offered only if it intersects no
booked [appt_start, appt_start + appt_duration). Free-slot lists are always
ascending; the dialogue maps 1-based numeric replies onto them.

Degradation policy: a service lookup failure falls back to the default
duration, a missing or closed weekday yields no slots, and storage read
errors yield an empty result instead of failing the conversation.
"""

import asyncio
import logging
from datetime import date, timedelta
from typing import Optional

from petcare.business_calendar import (
    BusinessCalendar,
    format_long_date,
    parse_manual_date,
    weekday_number,
)
from petcare.config import settings
from petcare.schemas.booking_schema import (
    Appointment,
    AppointmentStatus,
    BookingRequest,
    CandidateDate,
)
from petcare.schemas.settings_schema import DateConfig, DayHours, LunchBreak
from petcare.storage.base import BookingStore, StorageError
from petcare.utils import minutes_to_time, time_to_minutes

logger = logging.getLogger(__name__)

_booking = settings.booking

BookedRange = tuple[int, int]


class SlotUnavailableError(Exception):
    """Raised when a slot is no longer free at confirmation time."""


class InvalidManualDateError(ValueError):
    """Raised when a typed date is rejected. ``reason`` is format, past or excluded_weekday."""

    def __init__(self, reason: str, text: str) -> None:
        self.reason = reason
        super().__init__(f"Manual date {text!r} rejected: {reason}")


def _in_lunch_break(slot_start: int, lunch: Optional[LunchBreak]) -> bool:
    if lunch is None:
        return False
    return time_to_minutes(lunch.start) <= slot_start < time_to_minutes(lunch.end)


def generate_time_slots(hours: DayHours) -> list[str]:
    """Raw slot grid for one day: start, start + interval, ... strictly before end_time,
    skipping slots that start inside the lunch break."""
    start = time_to_minutes(hours.start_time)
    end = time_to_minutes(hours.end_time)
    return [
        minutes_to_time(current)
        for current in range(start, end, hours.interval)
        if not _in_lunch_break(current, hours.lunch_break)
    ]


def slot_overlaps(start: int, end: int, booked_start: int, booked_end: int) -> bool:
    """Half-open interval overlap: touching intervals do not conflict."""
    return start < booked_end and end > booked_start


def filter_free_slots(
    raw_slots: list[str], duration: int, booked: list[BookedRange]
) -> list[str]:
    """Keep raw slots whose [start, start + duration) overlaps no booked range."""
    free = []
    for slot in raw_slots:
        start = time_to_minutes(slot)
        end = start + duration
        if not any(slot_overlaps(start, end, b_start, b_end) for b_start, b_end in booked):
            free.append(slot)
    return free


class AvailabilityEngine:
    """Computes bookable dates and times and performs the confirmation write.

    Listing and confirmation for the same (date, professional) pair are
    serialized by a per-pair lock, and confirmation re-validates the slot
    inside that lock before inserting. Locks are created on first use and
    dropped once their day is in the past. Past days never have free slots.
    """

    def __init__(
        self,
        store: BookingStore,
        calendar: BusinessCalendar,
        lead_time_minutes: int = _booking.lead_time_minutes,
        default_duration: int = _booking.default_service_duration,
        scan_horizon_days: int = _booking.date_scan_horizon_days,
    ) -> None:
        self._store = store
        self._calendar = calendar
        self.lead_time_minutes = lead_time_minutes
        self.default_duration = default_duration
        self.scan_horizon_days = scan_horizon_days
        self._slot_locks: dict[tuple[str, int], asyncio.Lock] = {}

    @property
    def calendar(self) -> BusinessCalendar:
        return self._calendar

    def _slot_lock(self, day: str, professional_id: int) -> asyncio.Lock:
        key = (day, professional_id)
        if key not in self._slot_locks:
            self._prune_slot_locks()
        return self._slot_locks.setdefault(key, asyncio.Lock())

    def _prune_slot_locks(self) -> None:
        """Drop idle locks for days already in the past."""
        stale = [
            key for key, lock in self._slot_locks.items()
            if not lock.locked() and self._calendar.is_past(key[0])
        ]
        for key in stale:
            del self._slot_locks[key]

    # ------------------------------------------------------------------ #
    # Settings lookups with documented fallbacks
    # ------------------------------------------------------------------ #

    async def get_service_duration(self, service_name: Optional[str]) -> int:
        """Duration in minutes; the default when the service can't be resolved."""
        if not service_name:
            return self.default_duration
        try:
            service = await self._store.get_service_by_name(service_name)
        except StorageError:
            logger.warning(
                "Service lookup failed for '%s', using %d min", service_name, self.default_duration
            )
            return self.default_duration
        if service is None:
            logger.warning(
                "Unknown service '%s', using %d min", service_name, self.default_duration
            )
            return self.default_duration
        return service.duration

    async def get_date_config(self) -> DateConfig:
        try:
            config = await self._store.get_date_settings()
        except StorageError:
            logger.error("Error loading date settings, using defaults")
            return DateConfig()
        return config or DateConfig()

    # ------------------------------------------------------------------ #
    # Free slots
    # ------------------------------------------------------------------ #

    async def _booked_ranges(self, day: str, professional_id: int) -> list[BookedRange]:
        appointments = await self._store.list_appointments(
            day, professional_id, AppointmentStatus.CONFIRMED
        )
        ranges = []
        for appointment in appointments:
            duration = await self.get_service_duration(appointment.service)
            start = time_to_minutes(appointment.time)
            ranges.append((start, start + duration))
        return ranges

    async def _compute_free_slots(self, day: str, professional_id: int, duration: int) -> list[str]:
        if self._calendar.is_past(day):
            return []
        hours_config = await self._store.get_time_settings()
        if hours_config is None:
            return []
        day_hours = hours_config.for_weekday(self._calendar.weekday_key(day))
        if day_hours is None:
            return []

        booked = await self._booked_ranges(day, professional_id)
        free = filter_free_slots(generate_time_slots(day_hours), duration, booked)

        if self._calendar.is_today(day):
            earliest = self._calendar.now() + timedelta(minutes=self.lead_time_minutes)
            free = [slot for slot in free if self._calendar.combine(day, slot) >= earliest]
        return free

    async def list_free_slots(
        self, day: str, professional_id: int, service_name: Optional[str]
    ) -> list[str]:
        """Ascending ``HH:MM`` start times bookable for the service on ``day``."""
        duration = await self.get_service_duration(service_name)
        async with self._slot_lock(day, professional_id):
            try:
                return await self._compute_free_slots(day, professional_id, duration)
            except StorageError:
                logger.error("Error computing free slots for %s / professional %s", day, professional_id)
                return []

    async def has_any_free_slot(
        self, day: str, professional_id: int, service_name: Optional[str]
    ) -> bool:
        return len(await self.list_free_slots(day, professional_id, service_name)) > 0

    # ------------------------------------------------------------------ #
    # Candidate dates
    # ------------------------------------------------------------------ #

    async def list_candidate_dates(
        self,
        professional_id: int,
        service_name: Optional[str],
        date_config: Optional[DateConfig] = None,
    ) -> list[CandidateDate]:
        """Earliest-first days passing the weekday filter that still have a free slot.

        The walk stops after ``days_to_show`` hits or ``scan_horizon_days`` days scanned.
        """
        config = date_config or await self.get_date_config()
        dates: list[CandidateDate] = []
        day_offset = 1 if config.start_from_tomorrow else 0

        for _ in range(self.scan_horizon_days):
            if len(dates) >= config.days_to_show:
                break
            day = self._calendar.offset(day_offset)
            iso = day.isoformat()
            if not config.excludes(weekday_number(day)) and await self.has_any_free_slot(
                iso, professional_id, service_name
            ):
                dates.append(
                    CandidateDate(
                        date=iso,
                        day_label=self._calendar.day_label(
                            day, day_offset, config.start_from_tomorrow
                        ),
                        display=format_long_date(day),
                    )
                )
            day_offset += 1
        return dates

    async def validate_manual_date(self, text: str) -> date:
        """Parse a typed ``DD/MM/YYYY`` date, rejecting past days and excluded weekdays."""
        day = parse_manual_date(text)
        if day is None:
            raise InvalidManualDateError("format", text)
        if self._calendar.is_past(day):
            raise InvalidManualDateError("past", text)
        config = await self.get_date_config()
        if config.excludes(weekday_number(day)):
            raise InvalidManualDateError("excluded_weekday", text)
        return day

    # ------------------------------------------------------------------ #
    # Confirmation
    # ------------------------------------------------------------------ #

    async def confirm_booking(self, request: BookingRequest) -> Appointment:
        """Re-validate the slot and insert a confirmed appointment atomically per pair.

        Raises:
            SlotUnavailableError: the slot is no longer free.
            StorageError: the availability read or the insert failed.
        """
        duration = await self.get_service_duration(request.service)
        async with self._slot_lock(request.date, request.professional_id):
            free = await self._compute_free_slots(request.date, request.professional_id, duration)
            if self._calendar.is_past(request.date) or request.time not in free:
                raise SlotUnavailableError(
                    f"{request.date} {request.time} is no longer available "
                    f"for professional {request.professional_id}"
                )
            appointment = await self._store.insert_appointment(
                request, AppointmentStatus.CONFIRMED
            )
        logger.info(
            "Appointment #%d confirmed: %s on %s at %s (professional %d)",
            appointment.id, request.service, request.date, request.time, request.professional_id,
        )
        return appointment

    # ------------------------------------------------------------------ #
    # Reminders
    # ------------------------------------------------------------------ #

    def is_reminder_due(self, appointment: Appointment, interval_hours: int) -> bool:
        """Confirmed, not yet reminded, and now is within [start - interval, start]."""
        if appointment.status != AppointmentStatus.CONFIRMED or appointment.reminder_sent:
            return False
        start = self._calendar.combine(appointment.date, appointment.time)
        now = self._calendar.now()
        return start - timedelta(hours=interval_hours) <= now <= start

    def reminder_window_end(self, interval_hours: int) -> date:
        """Last date whose appointments can already be due for a reminder."""
        return (self._calendar.now() + timedelta(hours=interval_hours)).date()
