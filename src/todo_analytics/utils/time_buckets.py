"""Calendar arithmetic used to bucket task records.

All functions are pure. Instants keep their own timezone: a day, week or month
boundary is computed on the calendar of the instant passed in.
"""

import calendar
import math
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterator, Optional, Union

from ..record import TimeRange
from .datetime import ensure_aware


class Period(Enum):
    """Bucket sizes for time-period statistics"""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class TimeSlot(Enum):
    """Time-of-day slots"""
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"


TIME_SLOT_LABELS = {
    TimeSlot.MORNING: "Morning (06:00-12:00)",
    TimeSlot.AFTERNOON: "Afternoon (12:00-18:00)",
    TimeSlot.EVENING: "Evening (18:00-22:00)",
    TimeSlot.NIGHT: "Night (22:00-06:00)",
}

SECONDS_PER_DAY = 24 * 60 * 60


class UnsupportedPeriodError(ValueError):
    """Raised when a bucket period other than day/week/month is requested."""

    def __init__(self, period):
        self.period = period
        super().__init__(f"Unsupported period: {period!r} (expected one of day, week, month)")


def to_period(period: Union[Period, str]) -> Period:
    """Coerce a period name into a Period."""
    if isinstance(period, Period):
        return period
    try:
        return Period(period)
    except ValueError:
        raise UnsupportedPeriodError(period) from None


def start_of_day(t: datetime) -> datetime:
    return t.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(t: datetime) -> datetime:
    return t.replace(hour=23, minute=59, second=59, microsecond=999999)


def start_of_week(t: datetime) -> datetime:
    """Monday 00:00 of the week containing t."""
    return start_of_day(t - timedelta(days=t.weekday()))


def end_of_week(t: datetime) -> datetime:
    """Sunday 23:59:59.999999 of the week containing t."""
    return end_of_day(t + timedelta(days=6 - t.weekday()))


def start_of_month(t: datetime) -> datetime:
    return start_of_day(t.replace(day=1))


def end_of_month(t: datetime) -> datetime:
    last_day = calendar.monthrange(t.year, t.month)[1]
    return end_of_day(t.replace(day=last_day))


def add_months(t: datetime, months: int) -> datetime:
    """Shift t by a number of calendar months, clamping the day of month.

    Jan 31 + 1 month is Feb 28 (or 29), never Mar 2/3.
    """
    month_index = t.year * 12 + (t.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(t.day, calendar.monthrange(year, month)[1])
    return t.replace(year=year, month=month, day=day)


def days_difference(a: datetime, b: datetime) -> int:
    """Whole days between two instants, rounded up. Never negative."""
    seconds = abs((ensure_aware(b) - ensure_aware(a)).total_seconds())
    return math.ceil(seconds / SECONDS_PER_DAY)


def hours_difference(a: datetime, b: datetime) -> float:
    seconds = abs((ensure_aware(b) - ensure_aware(a)).total_seconds())
    return round(seconds / 3600, 2)


def is_weekday(t: datetime) -> bool:
    return t.weekday() < 5


def is_weekend(t: datetime) -> bool:
    return not is_weekday(t)


def time_slot(t: datetime) -> TimeSlot:
    """Classify an instant into one of the four time-of-day slots."""
    hour = t.hour
    if 6 <= hour < 12:
        return TimeSlot.MORNING
    if 12 <= hour < 18:
        return TimeSlot.AFTERNOON
    if 18 <= hour < 22:
        return TimeSlot.EVENING
    return TimeSlot.NIGHT


def time_slot_for_hour(hour: int) -> TimeSlot:
    return time_slot(datetime(2000, 1, 1, hour))


def time_slot_label(slot: Union[TimeSlot, str]) -> str:
    if not isinstance(slot, TimeSlot):
        try:
            slot = TimeSlot(slot)
        except ValueError:
            return str(slot)
    return TIME_SLOT_LABELS[slot]


def week_number(t: datetime) -> int:
    """ISO-8601 week of year (weeks start Monday, week 1 holds the first Thursday)."""
    return t.isocalendar()[1]


def format_date(t: Optional[datetime], fmt: str = "YYYY-MM-DD") -> str:
    """Format a date using the small set of display patterns the reports need."""
    if t is None:
        return ""
    patterns = {
        "YYYY-MM-DD": "%Y-%m-%d",
        "YYYY-MM-DD HH:mm": "%Y-%m-%d %H:%M",
        "YYYY-MM-DD HH:mm:ss": "%Y-%m-%d %H:%M:%S",
        "YYYY-MM": "%Y-%m",
        "MM/DD": "%m/%d",
        "MM/DD/YYYY": "%m/%d/%Y",
        "DD/MM/YYYY": "%d/%m/%Y",
        "HH:mm": "%H:%M",
    }
    if fmt not in patterns:
        return t.isoformat()
    return t.strftime(patterns[fmt])


def relative_time(t: datetime, now: datetime) -> str:
    """Describe how long ago t was, relative to now."""
    diff = (ensure_aware(now) - ensure_aware(t)).total_seconds()
    if diff < 0:
        return "in the future"

    minutes = int(diff // 60)
    hours = int(diff // 3600)
    days = int(diff // SECONDS_PER_DAY)

    if hours < 1:
        return "just now" if minutes < 1 else _ago(minutes, "minute")
    if hours < 24:
        return _ago(hours, "hour")
    if days < 7:
        return _ago(days, "day")
    if days < 30:
        return _ago(days // 7, "week")
    if days < 365:
        return _ago(days // 30, "month")
    return _ago(days // 365, "year")


def _ago(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


class DateRange:
    """Finite, lazy and restartable sequence of instants.

    Iterating yields ``start``, ``start + step``, ... up to and including
    ``end``. Month steps are always computed from ``start`` so the day of
    month does not drift after a short month.
    """

    def __init__(self, start: datetime, end: datetime, step: Union[Period, str] = Period.DAY):
        self.start = start
        self.end = end
        self.step = to_period(step)

    def _nth(self, n: int) -> datetime:
        if self.step == Period.DAY:
            return self.start + timedelta(days=n)
        if self.step == Period.WEEK:
            return self.start + timedelta(weeks=n)
        return add_months(self.start, n)

    def __iter__(self) -> Iterator[datetime]:
        n = 0
        current = self.start
        while current <= self.end:
            yield current
            n += 1
            current = self._nth(n)

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __repr__(self) -> str:
        return f"DateRange({self.start.isoformat()}, {self.end.isoformat()}, {self.step.value})"


def date_range(start: datetime, end: datetime, step: Union[Period, str] = Period.DAY) -> DateRange:
    return DateRange(start, end, step)


def day_range(now: datetime) -> TimeRange:
    return TimeRange(start_of_day(now), end_of_day(now))


def this_week_range(now: datetime) -> TimeRange:
    return TimeRange(start_of_week(now), end_of_week(now))


def this_month_range(now: datetime) -> TimeRange:
    return TimeRange(start_of_month(now), end_of_month(now))
