from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from .entities import TodoEntity
from .enums import DueDateRange, Priority, TodoStatusFilter
from .timezone import (
    end_of_day,
    end_of_month,
    end_of_week,
    now,
    start_of_day,
    start_of_month,
    start_of_week,
)


@dataclass(frozen=True)
class TodoFilters:
    search: str = ""
    search_tags: bool = False
    status: TodoStatusFilter = TodoStatusFilter.ALL
    priorities: tuple[Priority, ...] = ()
    tag_ids: tuple[int, ...] = ()
    due_range: DueDateRange = DueDateRange.ALL


def filter_todos(
    todos: Iterable[TodoEntity],
    filters: TodoFilters,
    current: datetime | None = None,
) -> list[TodoEntity]:
    current = current or now()
    return [todo for todo in todos if _matches(todo, filters, current)]


def _matches(todo: TodoEntity, filters: TodoFilters, current: datetime) -> bool:
    if filters.search:
        term = filters.search.lower()
        in_title = term in todo.title.lower()
        in_tags = filters.search_tags and any(term in tag.name.lower() for tag in todo.tags)
        if not in_title and not in_tags:
            return False

    if filters.status is TodoStatusFilter.COMPLETED and not todo.completed:
        return False
    if filters.status is TodoStatusFilter.INCOMPLETE and todo.completed:
        return False

    if filters.priorities and todo.priority not in filters.priorities:
        return False

    if filters.tag_ids and not todo.tag_ids.intersection(filters.tag_ids):
        return False

    return _matches_due_range(todo, filters.due_range, current)


def _matches_due_range(todo: TodoEntity, due_range: DueDateRange, current: datetime) -> bool:
    due = todo.due_date
    if due_range is DueDateRange.ALL:
        return True
    if due_range is DueDateRange.NO_DUE_DATE:
        return due is None
    if due is None:
        return False
    if due_range is DueDateRange.OVERDUE:
        return not todo.completed and due < start_of_day(current)
    if due_range is DueDateRange.TODAY:
        return start_of_day(current) <= due <= end_of_day(current)
    if due_range is DueDateRange.THIS_WEEK:
        return start_of_week(current) <= due <= end_of_week(current)
    return start_of_month(current) <= due <= end_of_month(current)


def count_active_filters(filters: TodoFilters) -> int:
    count = 0
    if filters.search:
        count += 1
    if filters.status is not TodoStatusFilter.ALL:
        count += 1
    count += len(filters.priorities)
    count += len(filters.tag_ids)
    if filters.due_range is not DueDateRange.ALL:
        count += 1
    return count


def has_active_filters(filters: TodoFilters) -> bool:
    return count_active_filters(filters) > 0
