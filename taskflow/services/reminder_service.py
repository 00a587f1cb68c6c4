from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from taskflow.domain.entities import NotificationPayload, TodoEntity
from taskflow.domain.notifications import format_relative_due, is_notification_due
from taskflow.domain.timezone import now
from taskflow.infra.repository import TodoRepository

logger = logging.getLogger(__name__)


class ReminderService:
    def __init__(self, repo: TodoRepository, clock: Callable[[], datetime] = now) -> None:
        self._repo = repo
        self._clock = clock

    def check_notifications(self, user_id: int) -> list[NotificationPayload]:
        """Collect the reminders that are due for ``user_id`` right now.

        Each todo is marked as notified before its payload is returned, so
        polling again does not repeat it. A todo that fails to evaluate is
        left untouched and picked up on the next poll.
        """
        current = self._clock()
        notifications: list[NotificationPayload] = []
        for todo in self._repo.list_pending_notifications(user_id):
            try:
                payload = self._evaluate(todo, current)
            except Exception:  # noqa: BLE001
                logger.exception("Skipping reminder for todo %s", todo.id)
                continue
            if payload:
                notifications.append(payload)
        if notifications:
            logger.info("Sending %s reminder(s) to user %s", len(notifications), user_id)
        return notifications

    check_due = check_notifications

    def _evaluate(self, todo: TodoEntity, current: datetime) -> NotificationPayload | None:
        if not is_notification_due(
            todo.due_date, todo.reminder_minutes, todo.last_notification_sent, current
        ):
            return None
        if not self._repo.mark_notification_sent(todo.user_id, todo.id, current):
            return None
        return NotificationPayload(
            todo_id=todo.id,
            title=todo.title or "Untitled todo",
            message=format_relative_due(todo.due_date, current),
            priority=todo.priority,
            due_date=todo.due_date,
        )
