from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from taskflow.domain.entities import CompletionResult
from taskflow.domain.errors import (
    AlreadyCompletedError,
    CompletionFailedError,
    MissingDueDateError,
    NotFoundError,
    NotRecurringError,
)
from taskflow.domain.timezone import parse_datetime as sgt
from taskflow.infra.repository import TodoRepository
from taskflow.services.completion_service import CompletionService
from taskflow.services.todo_service import TodoService

USER_ID = 1
OTHER_USER_ID = 2


def _recurring(todo_service, tag_ids=(), **overrides):
    data = {
        "title": "Water plants",
        "priority": "high",
        "recurrence_pattern": "daily",
        "due_date": "2025-11-13T09:00",
        "reminder_minutes": 60,
        "tag_ids": list(tag_ids),
    }
    data.update(overrides)
    return todo_service.create_todo(USER_ID, data)


def test_daily_completion_creates_next_instance(todo_service, tag_service, clock) -> None:
    home = tag_service.create_tag(USER_ID, "home", "#22C55E")
    chores = tag_service.create_tag(USER_ID, "chores", "#F97316")
    todo = _recurring(todo_service, tag_ids=[home.id, chores.id])
    first = todo_service.add_subtask(USER_ID, todo.id, "Fill can")
    todo_service.add_subtask(USER_ID, todo.id, "Check soil")
    todo_service.update_subtask(USER_ID, todo.id, first.id, {"completed": True})

    result = todo_service.update_todo(USER_ID, todo.id, {"completed": True})

    assert isinstance(result, CompletionResult)
    assert result.completed_instance.completed_at == clock.current
    following = result.next_instance
    assert following.id != todo.id
    assert following.due_date == sgt("2025-11-14T09:00")
    assert following.completed_at is None
    assert following.reminder_minutes == 60
    assert following.priority == todo.priority
    assert following.title == "Water plants"
    assert following.tag_ids == {home.id, chores.id}
    assert [(s.title, s.position, s.completed) for s in following.subtasks] == [
        ("Fill can", 0, False),
        ("Check soil", 1, False),
    ]


def test_source_subtasks_are_left_untouched(todo_service, completion_service) -> None:
    todo = _recurring(todo_service)
    first = todo_service.add_subtask(USER_ID, todo.id, "Step one")
    todo_service.update_subtask(USER_ID, todo.id, first.id, {"completed": True})

    result = completion_service.complete_recurring_todo(todo.id, USER_ID)

    assert [s.completed for s in result.completed_instance.subtasks] == [True]
    assert [s.completed for s in result.next_instance.subtasks] == [False]


def test_monthly_completion_clamps_to_february(todo_service, completion_service) -> None:
    todo = _recurring(todo_service, recurrence_pattern="monthly", due_date="2025-01-31T10:00")

    result = completion_service.complete_recurring_todo(todo.id, USER_ID)

    assert result.next_instance.due_date == sgt("2025-02-28T10:00")


@pytest.mark.parametrize("completed_on", ["2025-11-10T08:00", "2025-11-20T22:00"])
def test_weekly_schedule_does_not_drift(todo_service, completion_service, clock, completed_on) -> None:
    clock.current = sgt(completed_on)
    todo = _recurring(todo_service, recurrence_pattern="weekly", due_date="2025-11-15T17:00")

    result = completion_service.complete_recurring_todo(todo.id, USER_ID)

    assert result.next_instance.due_date == sgt("2025-11-22T17:00")
    assert result.completed_instance.completed_at == sgt(completed_on)


def test_next_instance_has_fresh_notification_state(todo_service, todo_repo, completion_service) -> None:
    todo = _recurring(todo_service)
    todo_repo.mark_notification_sent(USER_ID, todo.id, sgt("2025-11-13T08:00"))

    result = completion_service.complete_recurring_todo(todo.id, USER_ID)

    assert result.completed_instance.last_notification_sent == sgt("2025-11-13T08:00")
    assert result.next_instance.last_notification_sent is None


def test_second_completion_does_not_clone_again(todo_service, todo_repo, completion_service) -> None:
    todo = _recurring(todo_service)

    first = completion_service.complete_recurring_todo(todo.id, USER_ID)
    second = completion_service.complete_recurring_todo(todo.id, USER_ID)

    assert first.next_instance is not None
    assert second.already_completed
    assert second.next_instance is None
    assert len(todo_repo.list_todos(USER_ID)) == 2


def test_strict_mode_reports_already_completed(todo_service, completion_service) -> None:
    todo = _recurring(todo_service)
    completion_service.complete_recurring_todo(todo.id, USER_ID)

    with pytest.raises(AlreadyCompletedError):
        completion_service.complete_recurring_todo(todo.id, USER_ID, strict=True)


def test_racing_completion_loses_on_conditional_update(session_factory, todo_service, todo_repo, clock) -> None:
    todo = _recurring(todo_service)
    stale = todo_repo.get_todo(USER_ID, todo.id)

    class StaleReadRepository(TodoRepository):
        # Both requests read the row before either one wrote it.
        def get_todo(self, user_id, todo_id):
            if todo_id == stale.id:
                return stale
            return super().get_todo(user_id, todo_id)

    winner = CompletionService(todo_repo, clock).complete_recurring_todo(todo.id, USER_ID)
    loser = CompletionService(StaleReadRepository(session_factory), clock).complete_recurring_todo(todo.id, USER_ID)

    assert winner.next_instance is not None
    assert loser.already_completed
    assert loser.next_instance is None
    assert len(todo_repo.list_todos(USER_ID)) == 2


def test_storage_failure_rolls_back_whole_transition(session_factory, todo_service, todo_repo, clock) -> None:
    todo = _recurring(todo_service)
    todo_service.add_subtask(USER_ID, todo.id, "Step one")

    class FailingCloneRepository(TodoRepository):
        def clone_subtasks(self, from_todo_id, to_todo_id):
            raise OperationalError("INSERT INTO subtasks", {}, Exception("disk I/O error"))

    service = CompletionService(FailingCloneRepository(session_factory), clock)
    with pytest.raises(CompletionFailedError) as excinfo:
        service.complete_recurring_todo(todo.id, USER_ID)

    assert isinstance(excinfo.value.__cause__, OperationalError)
    todos = todo_repo.list_todos(USER_ID)
    assert [t.id for t in todos] == [todo.id]
    assert todos[0].completed_at is None


def test_failed_completion_through_update_keeps_stored_fields(session_factory, todo_service, todo_repo, clock) -> None:
    todo = _recurring(todo_service)
    todo_service.add_subtask(USER_ID, todo.id, "Step one")

    class FailingCloneRepository(TodoRepository):
        def clone_subtasks(self, from_todo_id, to_todo_id):
            raise OperationalError("INSERT INTO subtasks", {}, Exception("disk I/O error"))

    service = TodoService(FailingCloneRepository(session_factory), clock=clock)
    with pytest.raises(CompletionFailedError):
        service.update_todo(
            USER_ID, todo.id, {"completed": True, "title": "Renamed", "due_date": "2025-12-01T09:00"}
        )

    stored = todo_repo.get_todo(USER_ID, todo.id)
    assert (stored.title, stored.due_date, stored.completed_at) == (
        "Water plants",
        sgt("2025-11-13T09:00"),
        None,
    )
    assert len(todo_repo.list_todos(USER_ID)) == 1


def test_completion_uses_stored_recurrence_not_patch(todo_service, todo_repo) -> None:
    todo = _recurring(todo_service)

    result = todo_service.update_todo(USER_ID, todo.id, {"completed": True, "recurrence_pattern": None})

    assert isinstance(result, CompletionResult)
    assert result.completed_instance.recurrence_pattern == todo.recurrence_pattern
    assert result.next_instance.due_date == sgt("2025-11-14T09:00")
    assert result.next_instance.recurrence_pattern == todo.recurrence_pattern
    assert len(todo_repo.list_todos(USER_ID)) == 2


def test_unknown_or_foreign_todo_is_not_found(todo_service, completion_service) -> None:
    todo = _recurring(todo_service)

    with pytest.raises(NotFoundError):
        completion_service.complete_recurring_todo(todo.id, OTHER_USER_ID)
    with pytest.raises(NotFoundError):
        completion_service.complete_recurring_todo(9999, USER_ID)


def test_non_recurring_todo_is_rejected(todo_service, completion_service) -> None:
    todo = todo_service.create_todo(USER_ID, {"title": "One-off"})

    with pytest.raises(NotRecurringError):
        completion_service.complete_recurring_todo(todo.id, USER_ID)


def test_recurring_todo_without_due_date_is_rejected(todo_repo, completion_service) -> None:
    # Bypasses service validation to reach a row created before the rule existed.
    todo = todo_repo.create_todo(USER_ID, {"title": "Legacy", "recurrence_pattern": "daily"})

    with pytest.raises(MissingDueDateError):
        completion_service.complete_recurring_todo(todo.id, USER_ID)
    assert todo_repo.get_todo(USER_ID, todo.id).completed_at is None
