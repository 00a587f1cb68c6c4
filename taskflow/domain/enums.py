from __future__ import annotations

from enum import IntEnum, StrEnum


class Priority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def sort_order(self) -> int:
        return _PRIORITY_SORT[self]


_PRIORITY_SORT = {Priority.HIGH: 1, Priority.MEDIUM: 2, Priority.LOW: 3}


class RecurrencePattern(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class CalendarUnit(StrEnum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class ReminderMinutes(IntEnum):
    FIFTEEN_MINUTES = 15
    THIRTY_MINUTES = 30
    ONE_HOUR = 60
    TWO_HOURS = 120
    ONE_DAY = 1440
    TWO_DAYS = 2880
    ONE_WEEK = 10080

    @property
    def label(self) -> str:
        return _REMINDER_LABELS[self]


_REMINDER_LABELS = {
    ReminderMinutes.FIFTEEN_MINUTES: "15 minutes before",
    ReminderMinutes.THIRTY_MINUTES: "30 minutes before",
    ReminderMinutes.ONE_HOUR: "1 hour before",
    ReminderMinutes.TWO_HOURS: "2 hours before",
    ReminderMinutes.ONE_DAY: "1 day before",
    ReminderMinutes.TWO_DAYS: "2 days before",
    ReminderMinutes.ONE_WEEK: "1 week before",
}


class TodoStatusFilter(StrEnum):
    ALL = "all"
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"


class DueDateRange(StrEnum):
    ALL = "all"
    OVERDUE = "overdue"
    TODAY = "today"
    THIS_WEEK = "this-week"
    THIS_MONTH = "this-month"
    NO_DUE_DATE = "no-due-date"
