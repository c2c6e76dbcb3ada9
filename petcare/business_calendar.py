"""
Civil-calendar utility seeded with the business timezone.

Every "what day is today" and "which weekday is this date" question in the
engine goes through ``BusinessCalendar`` so that date generation, slot
filtering, manual date entry and reminders always agree, regardless of the
machine timezone of the process.

Weekday numbers follow the stored settings convention: Sunday=0 .. Saturday=6.
"""

import re
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional, Union
from zoneinfo import ZoneInfo

WEEKDAY_KEYS: tuple[str, ...] = (
    "sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday",
)

DAY_NAMES: tuple[str, ...] = (
    "Domingo", "Segunda-feira", "Terça-feira", "Quarta-feira",
    "Quinta-feira", "Sexta-feira", "Sábado",
)

MONTH_NAMES: tuple[str, ...] = (
    "Janeiro", "Fevereiro", "Março", "Abril", "Maio", "Junho",
    "Julho", "Agosto", "Setembro", "Outubro", "Novembro", "Dezembro",
)

TODAY_LABEL = "Hoje"
TOMORROW_LABEL = "Amanhã"

MANUAL_DATE_PATTERN = re.compile(r"^\d{2}/\d{2}/\d{4}$")

DateLike = Union[date, str]


def _system_clock() -> datetime:
    return datetime.now(timezone.utc)


def weekday_number(day: date) -> int:
    """Weekday of a civil date with Sunday=0."""
    return (day.weekday() + 1) % 7


def parse_iso_date(value: DateLike) -> date:
    """Accept a ``date`` or a ``YYYY-MM-DD`` string."""
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def format_br_date(value: DateLike) -> str:
    """``2026-10-19`` -> ``19/10/2026``."""
    return parse_iso_date(value).strftime("%d/%m/%Y")


def format_long_date(value: DateLike) -> str:
    """``2026-10-19`` -> ``19 de Outubro de 2026``."""
    day = parse_iso_date(value)
    return f"{day.day:02d} de {MONTH_NAMES[day.month - 1]} de {day.year}"


def parse_manual_date(text: str) -> Optional[date]:
    """Parse a strict ``DD/MM/YYYY`` string. Returns None when malformed or not a real date."""
    text = text.strip()
    if not MANUAL_DATE_PATTERN.match(text):
        return None
    try:
        return datetime.strptime(text, "%d/%m/%Y").date()
    except ValueError:
        return None


class BusinessCalendar:
    """Local "now", "today" and weekday arithmetic in one fixed timezone.

    ``clock`` returns the current instant; tests inject a fixed one.
    """

    def __init__(
        self,
        timezone_name: str,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.tz = ZoneInfo(timezone_name)
        self._clock = clock or _system_clock

    def now(self) -> datetime:
        """Current instant as an aware datetime in the business timezone."""
        instant = self._clock()
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        return instant.astimezone(self.tz)

    def today(self) -> date:
        return self.now().date()

    def offset(self, days: int) -> date:
        return self.today() + timedelta(days=days)

    def is_today(self, value: DateLike) -> bool:
        return parse_iso_date(value) == self.today()

    def is_past(self, value: DateLike) -> bool:
        return parse_iso_date(value) < self.today()

    def weekday_key(self, value: DateLike) -> str:
        """Key into the weekly hours settings (``"monday"``...)."""
        return WEEKDAY_KEYS[weekday_number(parse_iso_date(value))]

    def day_label(self, value: DateLike, day_offset: int, start_from_tomorrow: bool) -> str:
        if day_offset == 0:
            return TODAY_LABEL
        if day_offset == 1 and start_from_tomorrow:
            return TOMORROW_LABEL
        return DAY_NAMES[weekday_number(parse_iso_date(value))]

    def combine(self, value: DateLike, hhmm: str) -> datetime:
        """Aware datetime for a local date and ``HH:MM`` time."""
        hours, minutes = (int(part) for part in hhmm.split(":"))
        day = parse_iso_date(value)
        return datetime(day.year, day.month, day.day, hours, minutes, tzinfo=self.tz)
