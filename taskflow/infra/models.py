from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    func,
)
from sqlalchemy.orm import relationship
from sqlalchemy.types import TypeDecorator

from taskflow.domain.timezone import ANCHORED_TZ

from .db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnchoredDateTime(TypeDecorator):
    """Stores naive UTC, hands back aware datetimes in the anchored zone."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=ANCHORED_TZ)
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(ANCHORED_TZ)


todo_tags = Table(
    "todo_tags",
    Base.metadata,
    Column("todo_id", Integer, ForeignKey("todos.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)

template_tags = Table(
    "template_tags",
    Base.metadata,
    Column("template_id", Integer, ForeignKey("templates.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String(100), nullable=False, unique=True)
    created_at = Column(AnchoredDateTime, nullable=False, default=utcnow)


class TodoModel(Base):
    __tablename__ = "todos"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    priority = Column(String(10), nullable=False, default="medium")
    recurrence_pattern = Column(String(10), nullable=True)
    due_date = Column(AnchoredDateTime, nullable=True, index=True)
    reminder_minutes = Column(Integer, nullable=True)
    last_notification_sent = Column(AnchoredDateTime, nullable=True)
    completed_at = Column(AnchoredDateTime, nullable=True, index=True)
    created_at = Column(AnchoredDateTime, nullable=False, default=utcnow)
    updated_at = Column(AnchoredDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    subtasks = relationship(
        "SubtaskModel",
        order_by="SubtaskModel.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    tags = relationship("TagModel", secondary=todo_tags, order_by="TagModel.name")


class SubtaskModel(Base):
    __tablename__ = "subtasks"

    id = Column(Integer, primary_key=True)
    todo_id = Column(Integer, ForeignKey("todos.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(AnchoredDateTime, nullable=False, default=utcnow)
    updated_at = Column(AnchoredDateTime, nullable=False, default=utcnow, onupdate=utcnow)


class TagModel(Base):
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    color = Column(String(7), nullable=False, default="#3B82F6")
    created_at = Column(AnchoredDateTime, nullable=False, default=utcnow)
    updated_at = Column(AnchoredDateTime, nullable=False, default=utcnow, onupdate=utcnow)


Index("ix_tags_user_name", TagModel.user_id, func.lower(TagModel.name), unique=True)


class TemplateModel(Base):
    __tablename__ = "templates"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    title = Column(String(500), nullable=False)
    category = Column(String(50), nullable=True)
    priority = Column(String(10), nullable=False, default="medium")
    recurrence_pattern = Column(String(10), nullable=True)
    reminder_minutes = Column(Integer, nullable=True)
    due_offset_days = Column(Integer, nullable=True)
    created_at = Column(AnchoredDateTime, nullable=False, default=utcnow)
    updated_at = Column(AnchoredDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    subtasks = relationship(
        "TemplateSubtaskModel",
        order_by="TemplateSubtaskModel.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    tags = relationship("TagModel", secondary=template_tags, order_by="TagModel.name")


class TemplateSubtaskModel(Base):
    __tablename__ = "template_subtasks"

    id = Column(Integer, primary_key=True)
    template_id = Column(
        Integer, ForeignKey("templates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(String(200), nullable=False)
    position = Column(Integer, nullable=False, default=0)


class HolidayModel(Base):
    __tablename__ = "holidays"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    date = Column(Date, nullable=False, index=True)
    year = Column(Integer, nullable=False, index=True)
    recurring = Column(Boolean, nullable=False, default=False)
