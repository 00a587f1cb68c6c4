from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime

from taskflow.domain.entities import HolidayEntity, TodoEntity
from taskflow.domain.timezone import ANCHORED_TZ, end_of_month, start_of_month
from taskflow.infra.repository import HolidayRepository, TodoRepository


def month_range(year: int, month: int) -> tuple[datetime, datetime]:
    first = datetime(year, month, 1, tzinfo=ANCHORED_TZ)
    return start_of_month(first), end_of_month(first)


class CalendarService:
    """Groups a user's todos and the holidays of a month by civil date."""

    def __init__(self, todos: TodoRepository, holidays: HolidayRepository) -> None:
        self._todos = todos
        self._holidays = holidays

    def todos_by_day(self, user_id: int, year: int, month: int) -> dict[date, list[TodoEntity]]:
        start, end = month_range(year, month)
        grouped: dict[date, list[TodoEntity]] = defaultdict(list)
        for todo in self._todos.list_todos(user_id):
            if todo.due_date is not None and start <= todo.due_date <= end:
                grouped[todo.due_date.date()].append(todo)
        return dict(grouped)

    def holidays(self, year: int, month: int) -> dict[date, HolidayEntity]:
        start, end = month_range(year, month)
        return {holiday.date: holiday for holiday in self._holidays.list_between(start.date(), end.date())}
