from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError

from taskflow.domain.entities import CompletionResult, TodoEntity
from taskflow.domain.errors import (
    AlreadyCompletedError,
    CompletionFailedError,
    MissingDueDateError,
    NotFoundError,
    NotRecurringError,
)
from taskflow.domain.recurrence import next_due_date
from taskflow.domain.timezone import now
from taskflow.infra.repository import TodoRepository

logger = logging.getLogger(__name__)


class CompletionService:
    """Completes a recurring todo and creates its next instance in one transaction.

    The completed row and its successor are written together or not at all:
    a failure while cloning rolls the completion back and surfaces
    ``CompletionFailedError``. The completion itself is a conditional write
    on ``completed_at IS NULL``, so when two requests race only the one that
    flips the row creates a successor; the other gets a result flagged
    ``already_completed``.
    """

    def __init__(self, repo: TodoRepository, clock: Callable[[], datetime] = now) -> None:
        self._repo = repo
        self._clock = clock

    def complete_recurring_todo(self, todo_id: int, user_id: int, strict: bool = False) -> CompletionResult:
        todo = self._repo.get_todo(user_id, todo_id)
        if not todo:
            raise NotFoundError("todo", todo_id)
        if not todo.is_recurring:
            raise NotRecurringError("Todo does not repeat; update it directly instead")
        if todo.due_date is None:
            raise MissingDueDateError("Due date required for recurring todos")
        if todo.completed:
            return self._already_completed(todo, strict)

        completed_at = self._clock()
        try:
            with self._repo.transaction() as tx:
                if not tx.mark_completed(user_id, todo_id, completed_at):
                    current = tx.get_todo(user_id, todo_id) or todo
                    return self._already_completed(current, strict)

                next_instance = tx.create_todo(user_id, self._next_instance_fields(todo))
                tx.clone_tags(todo.id, next_instance.id)
                tx.clone_subtasks(todo.id, next_instance.id)

                completed = tx.get_todo(user_id, todo_id)
                next_instance = tx.get_todo(user_id, next_instance.id)
        except SQLAlchemyError as exc:
            logger.exception("Rolled back completion of recurring todo %s", todo_id)
            raise CompletionFailedError(todo_id) from exc

        logger.info(
            "Completed recurring todo %s, next instance %s due %s",
            todo_id,
            next_instance.id,
            next_instance.due_date.isoformat(),
        )
        return CompletionResult(completed_instance=completed, next_instance=next_instance)

    @staticmethod
    def _next_instance_fields(todo: TodoEntity) -> dict:
        return {
            "title": todo.title,
            "priority": todo.priority,
            "recurrence_pattern": todo.recurrence_pattern,
            "reminder_minutes": todo.reminder_minutes,
            "due_date": next_due_date(todo.due_date, todo.recurrence_pattern),
            "completed_at": None,
            "last_notification_sent": None,
        }

    @staticmethod
    def _already_completed(todo: TodoEntity, strict: bool) -> CompletionResult:
        if strict:
            raise AlreadyCompletedError("Todo is already completed")
        logger.info("Todo %s was already completed; no next instance created", todo.id)
        return CompletionResult(completed_instance=todo, next_instance=None, already_completed=True)
