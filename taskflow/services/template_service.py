from __future__ import annotations

from datetime import datetime
from typing import Callable

from taskflow.domain.entities import TemplateEntity, TodoEntity
from taskflow.domain.enums import CalendarUnit
from taskflow.domain.errors import MissingDueDateError, NotFoundError, ValidationError
from taskflow.domain.recurrence import parse_pattern
from taskflow.domain.timezone import add_calendar_unit, now, start_of_day
from taskflow.domain.validation import (
    SUBTASK_TITLE_MAX_LENGTH,
    TEMPLATE_NAME_MAX_LENGTH,
    clean_title,
    parse_priority,
    parse_reminder,
)
from taskflow.infra.repository import TagRepository, TemplateRepository, TodoRepository


class TemplateService:
    def __init__(
        self,
        repo: TemplateRepository,
        todos: TodoRepository,
        tags: TagRepository,
        clock: Callable[[], datetime] = now,
    ) -> None:
        self._repo = repo
        self._todos = todos
        self._tags = tags
        self._clock = clock

    def list_templates(self, user_id: int, category: str | None = None) -> list[TemplateEntity]:
        return self._repo.list_templates(user_id, category)

    def get_template(self, user_id: int, template_id: int) -> TemplateEntity:
        template = self._repo.get_template(user_id, template_id)
        if not template:
            raise NotFoundError("template", template_id)
        return template

    def create_template(self, user_id: int, data: dict) -> TemplateEntity:
        offset = data.get("due_offset_days")
        if offset is not None:
            offset = int(offset)
            if offset < 0:
                raise ValidationError("Due date offset must be zero or more days")
        fields = {
            "name": clean_title(data.get("name"), TEMPLATE_NAME_MAX_LENGTH, label="Template name"),
            "title": clean_title(data.get("title")),
            "category": (data.get("category") or "").strip() or None,
            "priority": parse_priority(data.get("priority")),
            "recurrence_pattern": parse_pattern(data.get("recurrence_pattern")),
            "reminder_minutes": parse_reminder(data.get("reminder_minutes")),
            "due_offset_days": offset,
        }
        if offset is None and (fields["recurrence_pattern"] or fields["reminder_minutes"]):
            raise MissingDueDateError("Templates with recurrence or reminders need a due date offset")

        subtasks = [
            clean_title(title, SUBTASK_TITLE_MAX_LENGTH, label="Subtask title")
            for title in data.get("subtasks") or []
        ]
        tag_ids = sorted(self._tags.owned_tag_ids(user_id, list(data.get("tag_ids") or [])))
        return self._repo.create_template(user_id, fields, subtasks, tag_ids)

    def create_from_todo(self, user_id: int, todo_id: int, name: str, category: str | None = None) -> TemplateEntity:
        todo = self._todos.get_todo(user_id, todo_id)
        if not todo:
            raise NotFoundError("todo", todo_id)
        offset = None
        if todo.due_date is not None:
            delta = start_of_day(todo.due_date) - start_of_day(self._clock())
            offset = max(delta.days, 0)
        return self.create_template(
            user_id,
            {
                "name": name,
                "title": todo.title,
                "category": category,
                "priority": todo.priority,
                "recurrence_pattern": todo.recurrence_pattern,
                "reminder_minutes": todo.reminder_minutes,
                "due_offset_days": offset,
                "subtasks": [subtask.title for subtask in todo.subtasks],
                "tag_ids": sorted(todo.tag_ids),
            },
        )

    def instantiate(self, user_id: int, template_id: int) -> TodoEntity:
        """Create a todo from a template, due ``due_offset_days`` from now."""
        template = self.get_template(user_id, template_id)
        due_date = None
        if template.due_offset_days is not None:
            due_date = add_calendar_unit(self._clock(), CalendarUnit.DAY, template.due_offset_days)

        with self._todos.transaction() as tx:
            todo = tx.create_todo(
                user_id,
                {
                    "title": template.title,
                    "priority": template.priority,
                    "recurrence_pattern": template.recurrence_pattern,
                    "reminder_minutes": template.reminder_minutes,
                    "due_date": due_date,
                    "tag_ids": [tag.id for tag in template.tags],
                },
            )
            for subtask in template.subtasks:
                tx.add_subtask(todo.id, subtask.title, subtask.position)
            return tx.get_todo(user_id, todo.id)

    def delete_template(self, user_id: int, template_id: int) -> None:
        if not self._repo.delete_template(user_id, template_id):
            raise NotFoundError("template", template_id)
