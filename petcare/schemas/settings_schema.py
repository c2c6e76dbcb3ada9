"""Availability settings rows (``date_settings`` and ``time_settings``).

Stored as JSON with camelCase keys; models accept both the stored aliases
and the Python field names.
"""

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from petcare.schemas.booking_schema import TIME_PATTERN
from petcare.utils import time_to_minutes

Weekday = Annotated[int, Field(ge=0, le=6)]


class DateConfig(BaseModel):
    """Which calendar days are considered as booking candidates."""
    model_config = ConfigDict(populate_by_name=True)

    days_to_show: int = Field(default=5, ge=1, alias="daysToShow")
    exclude_weekends: bool = Field(default=False, alias="excludeWeekends")
    excluded_days: list[Weekday] = Field(default_factory=list, alias="excludedDays")
    start_from_tomorrow: bool = Field(default=True, alias="startFromTomorrow")

    def excludes(self, weekday: int) -> bool:
        """Whether a Sunday=0 weekday number is filtered out."""
        if self.exclude_weekends and weekday in (0, 6):
            return True
        return weekday in self.excluded_days


class LunchBreak(BaseModel):
    start: str = Field(pattern=TIME_PATTERN)
    end: str = Field(pattern=TIME_PATTERN)


class DayHours(BaseModel):
    """Opening hours for one weekday."""
    model_config = ConfigDict(populate_by_name=True)

    start_time: str = Field(default="09:00", pattern=TIME_PATTERN, alias="startTime")
    end_time: str = Field(default="18:00", pattern=TIME_PATTERN, alias="endTime")
    interval: int = Field(default=60, gt=0)
    lunch_break: Optional[LunchBreak] = Field(default=None, alias="lunchBreak")

    @model_validator(mode="after")
    def _check_order(self) -> "DayHours":
        if time_to_minutes(self.start_time) >= time_to_minutes(self.end_time):
            raise ValueError(
                f"startTime {self.start_time} must be before endTime {self.end_time}"
            )
        return self


class WeeklyHoursConfig(BaseModel):
    """Weekday name -> opening hours; ``None`` means closed."""
    sunday: Optional[DayHours] = None
    monday: Optional[DayHours] = None
    tuesday: Optional[DayHours] = None
    wednesday: Optional[DayHours] = None
    thursday: Optional[DayHours] = None
    friday: Optional[DayHours] = None
    saturday: Optional[DayHours] = None

    def for_weekday(self, key: str) -> Optional[DayHours]:
        return getattr(self, key, None)
