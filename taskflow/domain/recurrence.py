from __future__ import annotations

import logging
from datetime import datetime

from .enums import CalendarUnit, RecurrencePattern
from .errors import InvalidPatternError, MissingDueDateError
from .timezone import add_calendar_unit, parse_datetime

logger = logging.getLogger(__name__)

_PATTERN_STEPS = {
    RecurrencePattern.DAILY: (CalendarUnit.DAY, 1),
    RecurrencePattern.WEEKLY: (CalendarUnit.WEEK, 1),
    RecurrencePattern.MONTHLY: (CalendarUnit.MONTH, 1),
    RecurrencePattern.YEARLY: (CalendarUnit.YEAR, 1),
}

_DESCRIPTIONS = {
    RecurrencePattern.DAILY: "Repeats daily",
    RecurrencePattern.WEEKLY: "Repeats weekly",
    RecurrencePattern.MONTHLY: "Repeats monthly",
    RecurrencePattern.YEARLY: "Repeats yearly",
}


def parse_pattern(value: RecurrencePattern | str | None) -> RecurrencePattern | None:
    if value is None or value == "" or value == "none":
        return None
    try:
        return RecurrencePattern(value)
    except ValueError as exc:
        raise InvalidPatternError(f"Invalid recurrence pattern: {value}") from exc


def next_due_date(current_due_date: datetime | str | None, pattern: RecurrencePattern | str) -> datetime:
    """Return the occurrence after ``current_due_date``.

    The step is always taken from the previous due date, never from the
    completion time, so finishing early or late does not shift the schedule.
    """
    if current_due_date is None:
        raise MissingDueDateError("Due date required for recurring todos")
    recurrence = parse_pattern(pattern)
    if recurrence is None:
        raise InvalidPatternError(f"Invalid recurrence pattern: {pattern}")

    current = parse_datetime(current_due_date)
    unit, amount = _PATTERN_STEPS[recurrence]
    following = add_calendar_unit(current, unit, amount)
    if following.day != current.day and unit in (CalendarUnit.MONTH, CalendarUnit.YEAR):
        logger.warning(
            "%s recurrence adjusted from day %s to %s due to month having fewer days",
            recurrence.value.capitalize(),
            current.day,
            following.day,
        )
    return following


def describe_recurrence(pattern: RecurrencePattern | str | None) -> str:
    recurrence = parse_pattern(pattern)
    if recurrence is None:
        return "Does not repeat"
    return _DESCRIPTIONS[recurrence]
