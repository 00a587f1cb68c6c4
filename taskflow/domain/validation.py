"""Boundary checks that turn free-form input into closed domain types."""
from __future__ import annotations

import re
from datetime import datetime

from .enums import Priority, RecurrencePattern, ReminderMinutes
from .errors import (
    InvalidColorError,
    InvalidPriorityError,
    InvalidReminderError,
    MissingDueDateError,
    ValidationError,
)
from .recurrence import parse_pattern
from .timezone import parse_datetime

TITLE_MAX_LENGTH = 500
SUBTASK_TITLE_MAX_LENGTH = 200
TAG_NAME_MAX_LENGTH = 50
TEMPLATE_NAME_MAX_LENGTH = 100

_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


def clean_title(value: str | None, max_length: int = TITLE_MAX_LENGTH, label: str = "Title") -> str:
    title = (value or "").strip()
    if not title:
        raise ValidationError(f"{label} is required")
    if len(title) > max_length:
        raise ValidationError(f"{label} must be between 1 and {max_length} characters")
    return title


def parse_priority(value: Priority | str | None) -> Priority:
    if value is None or value == "":
        return Priority.MEDIUM
    try:
        return Priority(value)
    except ValueError as exc:
        raise InvalidPriorityError(f"Invalid priority: {value}") from exc


def parse_reminder(value: int | str | None) -> int | None:
    if value is None or value == "":
        return None
    # Whole minutes only; 15.7 or True must not truncate into a valid value.
    whole = isinstance(value, int) and not isinstance(value, bool)
    if not whole and not (isinstance(value, str) and value.strip().isdigit()):
        raise InvalidReminderError(f"Invalid reminder value: {value}")
    try:
        return int(ReminderMinutes(int(value)))
    except (TypeError, ValueError) as exc:
        raise InvalidReminderError(f"Invalid reminder value: {value}") from exc


def parse_color(value: str | None, default: str = "#3B82F6") -> str:
    if value is None or value == "":
        return default
    if not _COLOR.match(value):
        raise InvalidColorError(f"Invalid color format: {value}")
    return value.upper()


def validate_todo_fields(data: dict, existing: dict | None = None) -> dict:
    """Normalize a create/update payload.

    ``existing`` holds the current values when updating, so the
    "recurrence needs a due date" and "reminder needs a due date" rules are
    checked against the merged result rather than the patch alone.
    """
    normalized: dict = {}
    if "title" in data or existing is None:
        normalized["title"] = clean_title(data.get("title"))
    if "priority" in data or existing is None:
        normalized["priority"] = parse_priority(data.get("priority"))
    if "recurrence_pattern" in data or existing is None:
        normalized["recurrence_pattern"] = parse_pattern(data.get("recurrence_pattern"))
    if "reminder_minutes" in data or existing is None:
        normalized["reminder_minutes"] = parse_reminder(data.get("reminder_minutes"))
    if "due_date" in data or existing is None:
        due = data.get("due_date")
        normalized["due_date"] = parse_datetime(due) if due not in (None, "") else None

    merged = dict(existing or {})
    merged.update(normalized)
    due_date: datetime | None = merged.get("due_date")
    pattern: RecurrencePattern | None = merged.get("recurrence_pattern")
    if pattern is not None and due_date is None:
        raise MissingDueDateError("Recurring todos require a due date")
    if merged.get("reminder_minutes") is not None and due_date is None:
        raise MissingDueDateError("Reminders require a due date")
    return normalized
