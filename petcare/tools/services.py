"""Default service catalog, team and availability settings for a new shop."""

from petcare.schemas.catalog_schema import Professional, Service
from petcare.schemas.settings_schema import DateConfig, WeeklyHoursConfig

SERVICE_CATALOG: list[dict] = [
    {"id": 1, "name": "Banho", "price": 40, "duration": 60},
    {"id": 2, "name": "Banho E Tosa Higiênica", "price": 60, "duration": 90},
    {"id": 3, "name": "Banho E Tosa Máquina", "price": 70, "duration": 120},
    {"id": 4, "name": "Banho E Tosa Tesoura", "price": 80, "duration": 120},
    {"id": 5, "name": "Corte De Unhas", "price": 20, "duration": 30},
    {"id": 6, "name": "Hidratação Liso Perfeito", "price": 100, "duration": 60},
    {"id": 7, "name": "Hidratação Termoprotetor", "price": 90, "duration": 60},
]

PROFESSIONALS: list[dict] = [
    {"id": 1, "name": "Lais"},
    {"id": 2, "name": "Bruno"},
    {"id": 3, "name": "Carla"},
]

DEFAULT_DATE_SETTINGS: dict = {
    "daysToShow": 5,
    "excludeWeekends": True,
    "excludedDays": [0],
    "startFromTomorrow": True,
}

_WEEKDAY_HOURS = {
    "startTime": "09:00",
    "endTime": "17:00",
    "interval": 60,
    "lunchBreak": {"start": "12:00", "end": "13:00"},
}

DEFAULT_TIME_SETTINGS: dict = {
    "monday": _WEEKDAY_HOURS,
    "tuesday": _WEEKDAY_HOURS,
    "wednesday": _WEEKDAY_HOURS,
    "thursday": _WEEKDAY_HOURS,
    "friday": _WEEKDAY_HOURS,
    "saturday": {"startTime": "09:00", "endTime": "12:00", "interval": 60, "lunchBreak": None},
    "sunday": None,
}

DEFAULT_REMINDER_INTERVAL_HOURS = 24


def default_services() -> list[Service]:
    return [Service(**row) for row in SERVICE_CATALOG]


def default_professionals() -> list[Professional]:
    return [Professional(**row) for row in PROFESSIONALS]


def default_date_settings() -> DateConfig:
    return DateConfig.model_validate(DEFAULT_DATE_SETTINGS)


def default_time_settings() -> WeeklyHoursConfig:
    return WeeklyHoursConfig.model_validate(DEFAULT_TIME_SETTINGS)
