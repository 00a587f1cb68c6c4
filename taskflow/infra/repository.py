from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime
from enum import Enum
from typing import Iterator, Optional

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.orm import Session, selectinload, sessionmaker

from taskflow.domain.entities import (
    HolidayEntity,
    SubtaskEntity,
    TagEntity,
    TemplateEntity,
    TemplateSubtask,
    TodoEntity,
)
from taskflow.domain.enums import Priority, RecurrencePattern

from .db import SessionLocal
from .models import (
    HolidayModel,
    SubtaskModel,
    TagModel,
    TemplateModel,
    TemplateSubtaskModel,
    TodoModel,
    todo_tags,
    template_tags,
)


def _to_subtask(model: SubtaskModel) -> SubtaskEntity:
    return SubtaskEntity(
        id=model.id,
        todo_id=model.todo_id,
        title=model.title,
        completed=bool(model.completed),
        position=model.position,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _to_tag(model: TagModel) -> TagEntity:
    return TagEntity(
        id=model.id,
        user_id=model.user_id,
        name=model.name,
        color=model.color,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _to_entity(model: TodoModel) -> TodoEntity:
    return TodoEntity(
        id=model.id,
        user_id=model.user_id,
        title=model.title,
        priority=Priority(model.priority),
        recurrence_pattern=RecurrencePattern(model.recurrence_pattern) if model.recurrence_pattern else None,
        due_date=model.due_date,
        reminder_minutes=model.reminder_minutes,
        last_notification_sent=model.last_notification_sent,
        completed_at=model.completed_at,
        created_at=model.created_at,
        updated_at=model.updated_at,
        subtasks=tuple(_to_subtask(subtask) for subtask in model.subtasks),
        tags=tuple(_to_tag(tag) for tag in model.tags),
    )


def _to_template(model: TemplateModel) -> TemplateEntity:
    return TemplateEntity(
        id=model.id,
        user_id=model.user_id,
        name=model.name,
        title=model.title,
        category=model.category,
        priority=Priority(model.priority),
        recurrence_pattern=RecurrencePattern(model.recurrence_pattern) if model.recurrence_pattern else None,
        reminder_minutes=model.reminder_minutes,
        due_offset_days=model.due_offset_days,
        created_at=model.created_at,
        updated_at=model.updated_at,
        subtasks=tuple(TemplateSubtask(title=s.title, position=s.position) for s in model.subtasks),
        tags=tuple(_to_tag(tag) for tag in model.tags),
    )


def _to_holiday(model: HolidayModel) -> HolidayEntity:
    return HolidayEntity(
        id=model.id,
        name=model.name,
        date=model.date,
        year=model.year,
        recurring=bool(model.recurring),
    )


def _column_values(data: dict) -> dict:
    return {key: value.value if isinstance(value, Enum) else value for key, value in data.items()}


class _SessionScoped:
    """Opens a session per call, or reuses the one a transaction is bound to."""

    def __init__(self, session_factory: sessionmaker = SessionLocal, session: Session | None = None) -> None:
        self._session_factory = session_factory
        self._bound = session

    @contextmanager
    def _session(self) -> Iterator[Session]:
        if self._bound is not None:
            yield self._bound
            return
        with self._session_factory() as session:
            yield session

    def _commit(self, session: Session) -> None:
        if self._bound is None:
            session.commit()
        else:
            session.flush()


class TodoRepository(_SessionScoped):
    @contextmanager
    def transaction(self) -> Iterator["TodoRepository"]:
        """Yield a repository whose calls share one all-or-nothing transaction."""
        if self._bound is not None:
            yield self
            return
        with self._session_factory() as session:
            with session.begin():
                yield type(self)(self._session_factory, session=session)

    @staticmethod
    def _select_todos():
        return select(TodoModel).options(
            selectinload(TodoModel.subtasks),
            selectinload(TodoModel.tags),
        ).execution_options(populate_existing=True)

    def get_todo(self, user_id: int, todo_id: int) -> Optional[TodoEntity]:
        with self._session() as session:
            stmt = self._select_todos().where(TodoModel.id == todo_id, TodoModel.user_id == user_id)
            todo = session.scalars(stmt).first()
            return _to_entity(todo) if todo else None

    def list_todos(self, user_id: int) -> list[TodoEntity]:
        with self._session() as session:
            stmt = self._select_todos().where(TodoModel.user_id == user_id).order_by(
                TodoModel.completed_at.is_not(None),
                TodoModel.due_date.is_(None),
                TodoModel.due_date.asc(),
                TodoModel.created_at.desc(),
            )
            return [_to_entity(todo) for todo in session.scalars(stmt)]

    def create_todo(self, user_id: int, data: dict) -> TodoEntity:
        values = _column_values(data)
        tag_ids = values.pop("tag_ids", None) or []
        with self._session() as session:
            todo = TodoModel(user_id=user_id, **values)
            if tag_ids:
                todo.tags = list(
                    session.scalars(
                        select(TagModel).where(TagModel.id.in_(tag_ids), TagModel.user_id == user_id)
                    )
                )
            session.add(todo)
            self._commit(session)
            todo_id = todo.id
        return self.get_todo(user_id, todo_id)

    def update_todo(self, user_id: int, todo_id: int, data: dict) -> Optional[TodoEntity]:
        values = _column_values(data)
        with self._session() as session:
            todo = session.scalars(
                select(TodoModel).where(TodoModel.id == todo_id, TodoModel.user_id == user_id)
            ).first()
            if not todo:
                return None

            schedule_changed = any(
                key in values and values[key] != getattr(todo, key)
                for key in ("due_date", "reminder_minutes")
            )
            if schedule_changed and "last_notification_sent" not in values:
                values["last_notification_sent"] = None

            for key, value in values.items():
                setattr(todo, key, value)
            self._commit(session)
        return self.get_todo(user_id, todo_id)

    def delete_todo(self, user_id: int, todo_id: int) -> bool:
        with self._session() as session:
            todo = session.scalars(
                select(TodoModel).where(TodoModel.id == todo_id, TodoModel.user_id == user_id)
            ).first()
            if not todo:
                return False
            session.delete(todo)
            self._commit(session)
            return True

    def mark_completed(self, user_id: int, todo_id: int, completed_at: datetime) -> bool:
        """Set ``completed_at`` only if the row is still incomplete.

        Returns False when another caller completed it first.
        """
        with self._session() as session:
            result = session.execute(
                update(TodoModel)
                .where(
                    TodoModel.id == todo_id,
                    TodoModel.user_id == user_id,
                    TodoModel.completed_at.is_(None),
                )
                .values(completed_at=completed_at, updated_at=completed_at)
                .execution_options(synchronize_session=False)
            )
            self._commit(session)
            return result.rowcount == 1

    def clone_tags(self, from_todo_id: int, to_todo_id: int) -> None:
        with self._session() as session:
            tag_ids = session.scalars(
                select(todo_tags.c.tag_id).where(todo_tags.c.todo_id == from_todo_id)
            ).all()
            if tag_ids:
                session.execute(
                    insert(todo_tags),
                    [{"todo_id": to_todo_id, "tag_id": tag_id} for tag_id in tag_ids],
                )
            self._commit(session)

    def clone_subtasks(self, from_todo_id: int, to_todo_id: int) -> None:
        with self._session() as session:
            originals = session.scalars(
                select(SubtaskModel)
                .where(SubtaskModel.todo_id == from_todo_id)
                .order_by(SubtaskModel.position.asc(), SubtaskModel.id.asc())
            ).all()
            session.add_all(
                SubtaskModel(todo_id=to_todo_id, title=subtask.title, position=subtask.position, completed=False)
                for subtask in originals
            )
            self._commit(session)

    def set_tags(self, user_id: int, todo_id: int, tag_ids: list[int]) -> Optional[TodoEntity]:
        with self._session() as session:
            todo = session.scalars(
                select(TodoModel).where(TodoModel.id == todo_id, TodoModel.user_id == user_id)
            ).first()
            if not todo:
                return None
            todo.tags = list(
                session.scalars(select(TagModel).where(TagModel.id.in_(tag_ids), TagModel.user_id == user_id))
            )
            self._commit(session)
        return self.get_todo(user_id, todo_id)

    def list_pending_notifications(self, user_id: int) -> list[TodoEntity]:
        with self._session() as session:
            stmt = (
                self._select_todos()
                .where(
                    TodoModel.user_id == user_id,
                    TodoModel.completed_at.is_(None),
                    TodoModel.due_date.is_not(None),
                    TodoModel.reminder_minutes.is_not(None),
                    TodoModel.last_notification_sent.is_(None),
                )
                .order_by(TodoModel.due_date.asc())
            )
            return [_to_entity(todo) for todo in session.scalars(stmt)]

    def mark_notification_sent(self, user_id: int, todo_id: int, sent_at: datetime) -> bool:
        with self._session() as session:
            result = session.execute(
                update(TodoModel)
                .where(
                    TodoModel.id == todo_id,
                    TodoModel.user_id == user_id,
                    TodoModel.last_notification_sent.is_(None),
                )
                .values(last_notification_sent=sent_at)
                .execution_options(synchronize_session=False)
            )
            self._commit(session)
            return result.rowcount == 1

    def priority_counts(self, user_id: int) -> dict[str, int]:
        counts = {priority.value: 0 for priority in Priority}
        with self._session() as session:
            rows = session.execute(
                select(TodoModel.priority, func.count())
                .where(TodoModel.user_id == user_id, TodoModel.completed_at.is_(None))
                .group_by(TodoModel.priority)
            ).all()
        for priority, count in rows:
            counts[priority] = count
        return counts

    def get_subtask(self, user_id: int, todo_id: int, subtask_id: int) -> Optional[SubtaskEntity]:
        with self._session() as session:
            subtask = self._owned_subtask(session, user_id, todo_id, subtask_id)
            return _to_subtask(subtask) if subtask else None

    def add_subtask(self, todo_id: int, title: str, position: int | None = None) -> SubtaskEntity:
        with self._session() as session:
            if position is None:
                max_position = session.scalar(
                    select(func.max(SubtaskModel.position)).where(SubtaskModel.todo_id == todo_id)
                )
                position = 0 if max_position is None else max_position + 1
            subtask = SubtaskModel(todo_id=todo_id, title=title, position=position, completed=False)
            session.add(subtask)
            self._commit(session)
            session.refresh(subtask)
            return _to_subtask(subtask)

    def update_subtask(self, user_id: int, todo_id: int, subtask_id: int, data: dict) -> Optional[SubtaskEntity]:
        with self._session() as session:
            subtask = self._owned_subtask(session, user_id, todo_id, subtask_id)
            if not subtask:
                return None
            for key, value in data.items():
                setattr(subtask, key, value)
            self._commit(session)
            session.refresh(subtask)
            return _to_subtask(subtask)

    def delete_subtask(self, user_id: int, todo_id: int, subtask_id: int) -> bool:
        with self._session() as session:
            subtask = self._owned_subtask(session, user_id, todo_id, subtask_id)
            if not subtask:
                return False
            session.delete(subtask)
            self._commit(session)
            return True

    @staticmethod
    def _owned_subtask(session: Session, user_id: int, todo_id: int, subtask_id: int) -> SubtaskModel | None:
        return session.scalars(
            select(SubtaskModel)
            .join(TodoModel, TodoModel.id == SubtaskModel.todo_id)
            .where(
                SubtaskModel.id == subtask_id,
                SubtaskModel.todo_id == todo_id,
                TodoModel.user_id == user_id,
            )
        ).first()


class TagRepository(_SessionScoped):
    def list_tags(self, user_id: int) -> list[TagEntity]:
        with self._session() as session:
            stmt = select(TagModel).where(TagModel.user_id == user_id).order_by(TagModel.name.asc())
            return [_to_tag(tag) for tag in session.scalars(stmt)]

    def get_tag(self, user_id: int, tag_id: int) -> Optional[TagEntity]:
        with self._session() as session:
            tag = session.scalars(
                select(TagModel).where(TagModel.id == tag_id, TagModel.user_id == user_id)
            ).first()
            return _to_tag(tag) if tag else None

    def find_by_name(self, user_id: int, name: str) -> Optional[TagEntity]:
        with self._session() as session:
            tag = session.scalars(
                select(TagModel).where(
                    TagModel.user_id == user_id,
                    func.lower(TagModel.name) == name.lower(),
                )
            ).first()
            return _to_tag(tag) if tag else None

    def owned_tag_ids(self, user_id: int, tag_ids: list[int]) -> set[int]:
        if not tag_ids:
            return set()
        with self._session() as session:
            return set(
                session.scalars(
                    select(TagModel.id).where(TagModel.id.in_(tag_ids), TagModel.user_id == user_id)
                )
            )

    def create_tag(self, user_id: int, name: str, color: str) -> TagEntity:
        with self._session() as session:
            tag = TagModel(user_id=user_id, name=name, color=color)
            session.add(tag)
            self._commit(session)
            session.refresh(tag)
            return _to_tag(tag)

    def update_tag(self, user_id: int, tag_id: int, data: dict) -> Optional[TagEntity]:
        with self._session() as session:
            tag = session.scalars(
                select(TagModel).where(TagModel.id == tag_id, TagModel.user_id == user_id)
            ).first()
            if not tag:
                return None
            for key, value in data.items():
                setattr(tag, key, value)
            self._commit(session)
            session.refresh(tag)
            return _to_tag(tag)

    def delete_tag(self, user_id: int, tag_id: int) -> bool:
        with self._session() as session:
            tag = session.scalars(
                select(TagModel).where(TagModel.id == tag_id, TagModel.user_id == user_id)
            ).first()
            if not tag:
                return False
            session.execute(delete(todo_tags).where(todo_tags.c.tag_id == tag_id))
            session.execute(delete(template_tags).where(template_tags.c.tag_id == tag_id))
            session.delete(tag)
            self._commit(session)
            return True


class TemplateRepository(_SessionScoped):
    @staticmethod
    def _select_templates():
        return select(TemplateModel).options(
            selectinload(TemplateModel.subtasks),
            selectinload(TemplateModel.tags),
        ).execution_options(populate_existing=True)

    def list_templates(self, user_id: int, category: str | None = None) -> list[TemplateEntity]:
        with self._session() as session:
            stmt = self._select_templates().where(TemplateModel.user_id == user_id)
            if category:
                stmt = stmt.where(TemplateModel.category == category)
            stmt = stmt.order_by(TemplateModel.name.asc())
            return [_to_template(template) for template in session.scalars(stmt)]

    def get_template(self, user_id: int, template_id: int) -> Optional[TemplateEntity]:
        with self._session() as session:
            template = session.scalars(
                self._select_templates().where(
                    TemplateModel.id == template_id, TemplateModel.user_id == user_id
                )
            ).first()
            return _to_template(template) if template else None

    def create_template(
        self,
        user_id: int,
        data: dict,
        subtask_titles: list[str],
        tag_ids: list[int],
    ) -> TemplateEntity:
        with self._session() as session:
            template = TemplateModel(user_id=user_id, **_column_values(data))
            template.subtasks = [
                TemplateSubtaskModel(title=title, position=position)
                for position, title in enumerate(subtask_titles)
            ]
            if tag_ids:
                template.tags = list(
                    session.scalars(
                        select(TagModel).where(TagModel.id.in_(tag_ids), TagModel.user_id == user_id)
                    )
                )
            session.add(template)
            self._commit(session)
            template_id = template.id
        return self.get_template(user_id, template_id)

    def delete_template(self, user_id: int, template_id: int) -> bool:
        with self._session() as session:
            template = session.scalars(
                select(TemplateModel).where(
                    TemplateModel.id == template_id, TemplateModel.user_id == user_id
                )
            ).first()
            if not template:
                return False
            session.delete(template)
            self._commit(session)
            return True


class HolidayRepository(_SessionScoped):
    def list_for_year(self, year: int) -> list[HolidayEntity]:
        with self._session() as session:
            stmt = select(HolidayModel).where(HolidayModel.year == year).order_by(HolidayModel.date.asc())
            return [_to_holiday(holiday) for holiday in session.scalars(stmt)]

    def list_between(self, start: date, end: date) -> list[HolidayEntity]:
        with self._session() as session:
            stmt = (
                select(HolidayModel)
                .where(HolidayModel.date.between(start, end))
                .order_by(HolidayModel.date.asc())
            )
            return [_to_holiday(holiday) for holiday in session.scalars(stmt)]
