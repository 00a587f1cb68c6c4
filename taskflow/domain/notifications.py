from __future__ import annotations

from datetime import datetime, timedelta

from .timezone import format_short, now, parse_datetime, to_anchored


def notification_time(due_date: datetime | str, reminder_minutes: int) -> datetime:
    return parse_datetime(due_date) - timedelta(minutes=reminder_minutes)


def is_notification_due(
    due_date: datetime | str | None,
    reminder_minutes: int | None,
    last_sent: datetime | str | None,
    current: datetime | None = None,
) -> bool:
    """True while ``current`` sits inside ``[due - reminder, due)`` and nothing was sent.

    Overdue todos never qualify: once the due instant passes this channel
    stays quiet.
    """
    if due_date is None or reminder_minutes is None or last_sent is not None:
        return False
    current = to_anchored(current) if current else now()
    due = parse_datetime(due_date)
    return notification_time(due, reminder_minutes) <= current < due


def format_relative_due(due_date: datetime | str, current: datetime | None = None) -> str:
    current = to_anchored(current) if current else now()
    minutes = _round_half_up((parse_datetime(due_date) - current).total_seconds() / 60)
    if minutes < 60:
        return f"Due in {minutes} {_plural(minutes, 'minute')}"
    if minutes < 1440:
        hours = _round_half_up(minutes / 60)
        return f"Due in {hours} {_plural(hours, 'hour')}"
    days = _round_half_up(minutes / 1440)
    return f"Due in {days} {_plural(days, 'day')}"


def format_reminder_time(due_date: datetime | str, reminder_minutes: int) -> str:
    return format_short(notification_time(due_date, reminder_minutes))


def _round_half_up(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def _plural(count: int, unit: str) -> str:
    return unit if count == 1 else f"{unit}s"
