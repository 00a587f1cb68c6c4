from __future__ import annotations

from sqlalchemy.exc import OperationalError

from taskflow.domain.enums import Priority
from taskflow.domain.timezone import parse_datetime as sgt
from taskflow.infra.repository import TodoRepository
from taskflow.services.reminder_service import ReminderService

USER_ID = 1
OTHER_USER_ID = 2


def _todo(todo_service, title, due, reminder, user_id=USER_ID, **extra):
    data = {"title": title, "due_date": due, "reminder_minutes": reminder, **extra}
    return todo_service.create_todo(user_id, data)


def test_sweep_returns_due_reminders(todo_service, reminder_service) -> None:
    todo = _todo(todo_service, "Submit report", "2025-11-13T16:00", 120, priority="high")
    _todo(todo_service, "Later today", "2025-11-13T16:00", 30)
    _todo(todo_service, "No reminder", "2025-11-13T15:00", None)

    notifications = reminder_service.check_notifications(USER_ID)

    assert len(notifications) == 1
    payload = notifications[0]
    assert payload.todo_id == todo.id
    assert payload.title == "Submit report"
    assert payload.message == "Due in 2 hours"
    assert payload.priority is Priority.HIGH
    assert payload.due_date == sgt("2025-11-13T16:00")


def test_sweep_is_at_most_once(todo_service, todo_repo, reminder_service, clock) -> None:
    todo = _todo(todo_service, "Call dentist", "2025-11-13T15:00", 60)

    assert [p.todo_id for p in reminder_service.check_notifications(USER_ID)] == [todo.id]
    assert reminder_service.check_notifications(USER_ID) == []
    assert todo_repo.get_todo(USER_ID, todo.id).last_notification_sent == clock.current


def test_reminder_fires_once_window_opens(todo_service, reminder_service, clock) -> None:
    _todo(todo_service, "Stand-up", "2025-11-13T16:00", 30)
    assert reminder_service.check_due(USER_ID) == []

    clock.advance(hours=1)

    notifications = reminder_service.check_due(USER_ID)
    assert [p.message for p in notifications] == ["Due in 30 minutes"]


def test_overdue_and_completed_todos_are_skipped(todo_service, reminder_service) -> None:
    _todo(todo_service, "Overdue", "2025-11-13T12:00", 60)
    done = _todo(todo_service, "Done already", "2025-11-13T15:00", 60)
    todo_service.complete_todo(USER_ID, done.id)

    assert reminder_service.check_notifications(USER_ID) == []


def test_sweep_is_scoped_to_user(todo_service, reminder_service) -> None:
    _todo(todo_service, "Someone else's", "2025-11-13T15:00", 60, user_id=OTHER_USER_ID)

    assert reminder_service.check_notifications(USER_ID) == []
    assert len(reminder_service.check_notifications(OTHER_USER_ID)) == 1


def test_rescheduling_rearms_the_reminder(todo_service, reminder_service) -> None:
    todo = _todo(todo_service, "Pay rent", "2025-11-13T15:00", 60)
    assert len(reminder_service.check_notifications(USER_ID)) == 1

    updated = todo_service.update_todo(USER_ID, todo.id, {"due_date": "2025-11-13T15:15"})

    assert updated.last_notification_sent is None
    assert [p.message for p in reminder_service.check_notifications(USER_ID)] == ["Due in 45 minutes"]


def test_title_only_edit_keeps_sent_marker(todo_service, reminder_service) -> None:
    todo = _todo(todo_service, "Pay rent", "2025-11-13T15:00", 60)
    reminder_service.check_notifications(USER_ID)

    updated = todo_service.update_todo(USER_ID, todo.id, {"title": "Pay the rent"})

    assert updated.last_notification_sent is not None
    assert reminder_service.check_notifications(USER_ID) == []


def test_failing_todo_is_skipped_and_retried(session_factory, todo_service, todo_repo, clock) -> None:
    broken = _todo(todo_service, "Broken", "2025-11-13T15:00", 60)
    healthy = _todo(todo_service, "Healthy", "2025-11-13T15:30", 60)

    class FlakyRepository(TodoRepository):
        def mark_notification_sent(self, user_id, todo_id, sent_at):
            if todo_id == broken.id:
                raise OperationalError("UPDATE todos", {}, Exception("database is locked"))
            return super().mark_notification_sent(user_id, todo_id, sent_at)

    flaky = ReminderService(FlakyRepository(session_factory), clock)
    assert [p.todo_id for p in flaky.check_notifications(USER_ID)] == [healthy.id]

    retry = ReminderService(todo_repo, clock)
    assert [p.todo_id for p in retry.check_notifications(USER_ID)] == [broken.id]


def test_unexpected_error_does_not_stop_sweep(session_factory, todo_service, todo_repo, clock) -> None:
    broken = _todo(todo_service, "Broken", "2025-11-13T15:00", 60)
    healthy = _todo(todo_service, "Healthy", "2025-11-13T15:30", 60)

    class BadRowRepository(TodoRepository):
        def mark_notification_sent(self, user_id, todo_id, sent_at):
            if todo_id == broken.id:
                raise ValueError("unreadable due date")
            return super().mark_notification_sent(user_id, todo_id, sent_at)

    sweep = ReminderService(BadRowRepository(session_factory), clock)
    assert [p.todo_id for p in sweep.check_notifications(USER_ID)] == [healthy.id]
    assert todo_repo.get_todo(USER_ID, broken.id).last_notification_sent is None
