from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from .enums import Priority, RecurrencePattern


@dataclass(frozen=True)
class SubtaskEntity:
    id: int | None
    todo_id: int
    title: str
    completed: bool
    position: int
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class TagEntity:
    id: int | None
    user_id: int
    name: str
    color: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class TodoEntity:
    id: int | None
    user_id: int
    title: str
    priority: Priority
    recurrence_pattern: RecurrencePattern | None
    due_date: Optional[datetime]
    reminder_minutes: int | None
    last_notification_sent: Optional[datetime]
    completed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    subtasks: tuple[SubtaskEntity, ...] = ()
    tags: tuple[TagEntity, ...] = ()

    @property
    def completed(self) -> bool:
        return self.completed_at is not None

    @property
    def is_recurring(self) -> bool:
        return self.recurrence_pattern is not None

    @property
    def tag_ids(self) -> frozenset[int]:
        return frozenset(tag.id for tag in self.tags if tag.id is not None)

    @property
    def progress(self) -> int:
        return calculate_progress(self.subtasks)


@dataclass(frozen=True)
class TemplateSubtask:
    title: str
    position: int


@dataclass(frozen=True)
class TemplateEntity:
    id: int | None
    user_id: int
    name: str
    title: str
    category: str | None
    priority: Priority
    recurrence_pattern: RecurrencePattern | None
    reminder_minutes: int | None
    due_offset_days: int | None
    created_at: datetime
    updated_at: datetime
    subtasks: tuple[TemplateSubtask, ...] = ()
    tags: tuple[TagEntity, ...] = ()


@dataclass(frozen=True)
class HolidayEntity:
    id: int | None
    name: str
    date: date
    year: int
    recurring: bool


@dataclass(frozen=True)
class NotificationPayload:
    todo_id: int
    title: str
    message: str
    priority: Priority
    due_date: datetime


@dataclass(frozen=True)
class CompletionResult:
    completed_instance: TodoEntity
    next_instance: TodoEntity | None
    already_completed: bool = False


@dataclass(frozen=True)
class DeletionResult:
    todo_id: int
    message: str


def calculate_progress(subtasks: tuple[SubtaskEntity, ...] | list[SubtaskEntity]) -> int:
    if not subtasks:
        return 0
    done = sum(1 for subtask in subtasks if subtask.completed)
    return math.floor(100 * done / len(subtasks) + 0.5)
