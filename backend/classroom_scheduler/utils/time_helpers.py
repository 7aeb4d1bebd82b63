import calendar
from datetime import date, datetime, time
from typing import Union

TimeLike = Union[time, str]


def time_to_string(t: time) -> str:
    """Always return HH:MM format"""
    return t.strftime("%H:%M")


def string_to_time(time_str: str) -> time:
    """Parse 'HH:MM' or 'HH:MM:SS' (seconds are dropped)."""
    normalized = time_str.strip()
    if len(normalized) == 5:
        normalized += ":00"
    parsed = datetime.strptime(normalized, "%H:%M:%S").time()
    return parsed.replace(second=0, microsecond=0)


def normalize_time(value: TimeLike) -> time:
    """Coerce a time or time string to minute precision."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)
    return string_to_time(value)


def add_months(day: date, months: int) -> date:
    """Shift a date by whole months, clamping to the last day of the target month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def sunday_based_weekday(day: date) -> int:
    """Return 0 for Sunday through 6 for Saturday."""
    return (day.weekday() + 1) % 7
