from __future__ import annotations

from datetime import datetime
from typing import Callable

from taskflow.domain.entities import CompletionResult, DeletionResult, SubtaskEntity, TodoEntity
from taskflow.domain.errors import NotFoundError
from taskflow.domain.filters import TodoFilters, filter_todos
from taskflow.domain.timezone import now
from taskflow.domain.validation import SUBTASK_TITLE_MAX_LENGTH, clean_title, validate_todo_fields
from taskflow.infra.repository import TagRepository, TodoRepository

from .completion_service import CompletionService

RECURRING_DELETE_MESSAGE = "This only deletes this occurrence. Future recurrences are not affected."
DELETE_MESSAGE = "Todo deleted successfully"


class TodoService:
    def __init__(
        self,
        repo: TodoRepository,
        tags: TagRepository | None = None,
        completion: CompletionService | None = None,
        clock: Callable[[], datetime] = now,
    ) -> None:
        self._repo = repo
        self._tags = tags
        self._clock = clock
        self._completion = completion or CompletionService(repo, clock)

    def list_todos(self, user_id: int, filters: TodoFilters | None = None) -> list[TodoEntity]:
        todos = self._repo.list_todos(user_id)
        if filters is None:
            return todos
        return filter_todos(todos, filters, self._clock())

    def get_todo(self, user_id: int, todo_id: int) -> TodoEntity:
        todo = self._repo.get_todo(user_id, todo_id)
        if not todo:
            raise NotFoundError("todo", todo_id)
        return todo

    def create_todo(self, user_id: int, data: dict) -> TodoEntity:
        normalized = validate_todo_fields(data)
        if data.get("tag_ids"):
            normalized["tag_ids"] = self._owned_tag_ids(user_id, data["tag_ids"])
        return self._repo.create_todo(user_id, normalized)

    def update_todo(self, user_id: int, todo_id: int, data: dict) -> TodoEntity | CompletionResult:
        """Apply a partial update.

        Flipping ``completed`` from false to true on a recurring todo goes
        through the completion orchestrator and returns its
        ``CompletionResult``. That path looks only at the stored row and
        ignores the rest of the patch, so the completed occurrence and its
        successor come from the same pre-completion state. Every other
        update returns the todo.
        """
        existing = self.get_todo(user_id, todo_id)
        if data.get("completed") and not existing.completed and existing.is_recurring:
            # Decided on the stored row; other fields in the patch are not applied.
            return self._completion.complete_recurring_todo(todo_id, user_id)

        fields = {key: value for key, value in data.items() if key not in ("completed", "tag_ids")}
        if fields:
            current = {
                "due_date": existing.due_date,
                "recurrence_pattern": existing.recurrence_pattern,
                "reminder_minutes": existing.reminder_minutes,
            }
            existing = self._repo.update_todo(user_id, todo_id, validate_todo_fields(fields, current))
        if "tag_ids" in data:
            existing = self._repo.set_tags(user_id, todo_id, self._owned_tag_ids(user_id, data["tag_ids"] or []))

        if "completed" not in data:
            return existing
        if data["completed"]:
            if existing.completed:
                return existing
            return self.complete_todo(user_id, todo_id)
        return self.reopen_todo(user_id, todo_id)

    def complete_todo(self, user_id: int, todo_id: int) -> CompletionResult:
        todo = self.get_todo(user_id, todo_id)
        if todo.is_recurring:
            return self._completion.complete_recurring_todo(todo_id, user_id)
        if not self._repo.mark_completed(user_id, todo_id, self._clock()):
            return CompletionResult(completed_instance=todo, next_instance=None, already_completed=True)
        return CompletionResult(completed_instance=self.get_todo(user_id, todo_id), next_instance=None)

    def reopen_todo(self, user_id: int, todo_id: int) -> TodoEntity:
        todo = self._repo.update_todo(user_id, todo_id, {"completed_at": None})
        if not todo:
            raise NotFoundError("todo", todo_id)
        return todo

    def delete_todo(self, user_id: int, todo_id: int) -> DeletionResult:
        todo = self.get_todo(user_id, todo_id)
        if not self._repo.delete_todo(user_id, todo_id):
            raise NotFoundError("todo", todo_id)
        message = RECURRING_DELETE_MESSAGE if todo.is_recurring else DELETE_MESSAGE
        return DeletionResult(todo_id=todo_id, message=message)

    def priority_counts(self, user_id: int) -> dict[str, int]:
        return self._repo.priority_counts(user_id)

    def add_subtask(self, user_id: int, todo_id: int, title: str) -> SubtaskEntity:
        self.get_todo(user_id, todo_id)
        return self._repo.add_subtask(todo_id, clean_title(title, SUBTASK_TITLE_MAX_LENGTH))

    def update_subtask(self, user_id: int, todo_id: int, subtask_id: int, data: dict) -> SubtaskEntity:
        changes = {}
        if "title" in data:
            changes["title"] = clean_title(data["title"], SUBTASK_TITLE_MAX_LENGTH)
        if "completed" in data:
            changes["completed"] = bool(data["completed"])
        if "position" in data:
            changes["position"] = max(int(data["position"]), 0)
        subtask = self._repo.update_subtask(user_id, todo_id, subtask_id, changes)
        if not subtask:
            raise NotFoundError("subtask", subtask_id)
        return subtask

    def delete_subtask(self, user_id: int, todo_id: int, subtask_id: int) -> None:
        if not self._repo.delete_subtask(user_id, todo_id, subtask_id):
            raise NotFoundError("subtask", subtask_id)

    def progress(self, user_id: int, todo_id: int) -> int:
        return self.get_todo(user_id, todo_id).progress

    def _owned_tag_ids(self, user_id: int, tag_ids: list[int]) -> list[int]:
        if self._tags is None:
            return list(tag_ids)
        owned = self._tags.owned_tag_ids(user_id, list(tag_ids))
        return [tag_id for tag_id in tag_ids if tag_id in owned]
