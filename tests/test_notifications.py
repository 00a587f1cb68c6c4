from __future__ import annotations

import pytest

from taskflow.domain.notifications import (
    format_relative_due,
    format_reminder_time,
    is_notification_due,
    notification_time,
)
from taskflow.domain.timezone import parse_datetime as sgt

NOW = sgt("2025-11-13T14:30:00+08:00")
DUE = "2025-11-13T16:00:00+08:00"


def test_not_due_before_reminder_window() -> None:
    assert not is_notification_due(DUE, 30, None, NOW)


def test_due_inside_reminder_window() -> None:
    assert is_notification_due(DUE, 120, None, NOW)


def test_window_start_is_inclusive() -> None:
    assert is_notification_due(DUE, 90, None, NOW)


def test_not_due_when_already_sent() -> None:
    assert not is_notification_due(DUE, 120, "2025-11-13T14:00:00+08:00", NOW)


def test_not_due_once_overdue() -> None:
    assert not is_notification_due("2025-11-13T12:00:00+08:00", 60, None, NOW)
    assert not is_notification_due("2025-11-13T14:30:00+08:00", 60, None, NOW)


def test_not_due_without_reminder_or_due_date() -> None:
    assert not is_notification_due(None, 60, None, NOW)
    assert not is_notification_due(DUE, None, None, NOW)


def test_notification_time_crosses_midnight() -> None:
    result = notification_time("2025-11-15T01:00:00+08:00", 120)
    assert (result.day, result.hour, result.minute) == (14, 23, 0)


def test_notification_time_keeps_precision() -> None:
    result = notification_time("2025-11-15T14:30:45.123+08:00", 15)
    assert (result.second, result.microsecond) == (45, 123000)


@pytest.mark.parametrize(
    ("due", "expected"),
    [
        ("2025-11-13T14:31", "Due in 1 minute"),
        ("2025-11-13T15:00", "Due in 30 minutes"),
        ("2025-11-13T15:30", "Due in 1 hour"),
        ("2025-11-13T16:00", "Due in 2 hours"),
        ("2025-11-14T14:30", "Due in 1 day"),
        ("2025-11-15T14:30", "Due in 2 days"),
        ("2025-11-20T14:30", "Due in 7 days"),
    ],
)
def test_format_relative_due(due, expected) -> None:
    assert format_relative_due(sgt(due), NOW) == expected


def test_format_reminder_time() -> None:
    assert format_reminder_time("2025-11-15T14:00:00+08:00", 60) == "Nov 15, 1:00 PM SGT"
