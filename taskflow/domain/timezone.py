"""Civil-time helpers anchored to the application timezone.

Every "now", due-date and calendar comparison goes through this module so the
host's local timezone never leaks into scheduling decisions. Naive datetimes
and ISO strings without an offset are read as wall-clock time in the anchored
zone; values carrying an offset are converted into it.
"""
from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from taskflow.config import SETTINGS

from .enums import CalendarUnit
from .errors import InvalidDateError, ValidationError

ANCHORED_TZ = ZoneInfo(SETTINGS.timezone)
ZONE_LABEL = SETTINGS.timezone_label

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def now() -> datetime:
    return datetime.now(ANCHORED_TZ)


def to_anchored(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=ANCHORED_TZ)
    return value.astimezone(ANCHORED_TZ)


def parse_datetime(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        return to_anchored(value)
    if not isinstance(value, str) or not value.strip():
        raise InvalidDateError(f"Invalid date: {value!r}")
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError as exc:
        raise InvalidDateError(f"Invalid date: {value!r}") from exc
    return to_anchored(parsed)


def format_datetime(value: str | datetime, pattern: str | None = None) -> str:
    """Render ``value`` in the anchored zone.

    Without ``pattern`` the output reads like ``Nov 15, 2025, 2:30 PM SGT``;
    otherwise ``pattern`` is an ``strftime`` format and the zone label is
    appended to it.
    """
    instant = parse_datetime(value)
    if pattern is None:
        text = f"{instant:%b} {instant.day}, {instant.year}, {_clock(instant)}"
    else:
        text = instant.strftime(pattern)
    return f"{text} {ZONE_LABEL}" if ZONE_LABEL else text


def format_short(value: str | datetime) -> str:
    instant = parse_datetime(value)
    text = f"{instant:%b} {instant.day}, {_clock(instant)}"
    return f"{text} {ZONE_LABEL}" if ZONE_LABEL else text


def _clock(instant: datetime) -> str:
    hour = instant.hour % 12 or 12
    meridiem = "AM" if instant.hour < 12 else "PM"
    return f"{hour}:{instant.minute:02d} {meridiem}"


def add_calendar_unit(instant: datetime, unit: CalendarUnit | str, amount: int) -> datetime:
    """Add ``amount`` days, weeks, months or years keeping the time of day.

    Month and year steps clamp to the last valid day of the target month:
    Jan 31 + 1 month is Feb 28 (Feb 29 in a leap year) and Feb 29 + 1 year
    is Feb 28.
    """
    try:
        unit = CalendarUnit(unit)
    except ValueError as exc:
        raise ValidationError(f"Invalid calendar unit: {unit}") from exc

    instant = to_anchored(instant)
    if unit is CalendarUnit.DAY:
        return _shift_days(instant, amount)
    if unit is CalendarUnit.WEEK:
        return _shift_days(instant, amount * 7)
    if unit is CalendarUnit.MONTH:
        return _add_months(instant, amount)
    return _add_months(instant, amount * 12)


def _shift_days(instant: datetime, days: int) -> datetime:
    # Shift the civil date so the wall-clock time survives DST changes.
    shifted = instant.date() + timedelta(days=days)
    return datetime.combine(shifted, instant.timetz())


def _add_months(base: datetime, months: int) -> datetime:
    year = base.year + (base.month - 1 + months) // 12
    month = (base.month - 1 + months) % 12 + 1
    day = min(base.day, days_in_month(year, month))
    return base.replace(year=year, month=month, day=day)


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - timedelta(days=1)).day


def start_of_day(instant: datetime) -> datetime:
    return datetime.combine(to_anchored(instant).date(), time.min, tzinfo=ANCHORED_TZ)


def end_of_day(instant: datetime) -> datetime:
    return datetime.combine(to_anchored(instant).date(), time.max, tzinfo=ANCHORED_TZ)


def start_of_week(instant: datetime) -> datetime:
    day = start_of_day(instant)
    return _shift_days(day, -day.weekday())


def end_of_week(instant: datetime) -> datetime:
    day = end_of_day(instant)
    return _shift_days(day, 6 - day.weekday())


def start_of_month(instant: datetime) -> datetime:
    return start_of_day(to_anchored(instant).replace(day=1))


def end_of_month(instant: datetime) -> datetime:
    instant = to_anchored(instant)
    last = days_in_month(instant.year, instant.month)
    return end_of_day(instant.replace(day=last))


def is_past_due(due_date: str | datetime, current: datetime | None = None) -> bool:
    current = to_anchored(current) if current else now()
    return current > parse_datetime(due_date)


def is_valid_date_format(value: str) -> bool:
    if not _DATE_ONLY.match(value or ""):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True
