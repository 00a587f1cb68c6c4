from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("APP_TIMEZONE", "Asia/Singapore")
os.environ.setdefault("APP_TIMEZONE_LABEL", "SGT")

from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from taskflow.domain.timezone import parse_datetime
from taskflow.infra import models
from taskflow.infra.db import Base, enable_sqlite_foreign_keys
from taskflow.infra.repository import HolidayRepository, TagRepository, TemplateRepository, TodoRepository
from taskflow.services.completion_service import CompletionService
from taskflow.services.reminder_service import ReminderService
from taskflow.services.tag_service import TagService
from taskflow.services.template_service import TemplateService
from taskflow.services.todo_service import TodoService

USER_ID = 1
OTHER_USER_ID = 2


def sgt(text: str) -> datetime:
    return parse_datetime(text)


class FixedClock:
    def __init__(self, current: datetime) -> None:
        self.current = current

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    with factory() as session:
        session.add_all([
            models.UserModel(id=USER_ID, username="alice"),
            models.UserModel(id=OTHER_USER_ID, username="bob"),
        ])
        session.commit()
    yield factory
    engine.dispose()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(sgt("2025-11-13T14:30:00+08:00"))


@pytest.fixture
def todo_repo(session_factory) -> TodoRepository:
    return TodoRepository(session_factory)


@pytest.fixture
def tag_repo(session_factory) -> TagRepository:
    return TagRepository(session_factory)


@pytest.fixture
def holiday_repo(session_factory) -> HolidayRepository:
    return HolidayRepository(session_factory)


@pytest.fixture
def completion_service(todo_repo, clock) -> CompletionService:
    return CompletionService(todo_repo, clock)


@pytest.fixture
def todo_service(todo_repo, tag_repo, completion_service, clock) -> TodoService:
    return TodoService(todo_repo, tag_repo, completion_service, clock)


@pytest.fixture
def reminder_service(todo_repo, clock) -> ReminderService:
    return ReminderService(todo_repo, clock)


@pytest.fixture
def tag_service(tag_repo) -> TagService:
    return TagService(tag_repo)


@pytest.fixture
def template_service(session_factory, todo_repo, tag_repo, clock) -> TemplateService:
    return TemplateService(TemplateRepository(session_factory), todo_repo, tag_repo, clock)
