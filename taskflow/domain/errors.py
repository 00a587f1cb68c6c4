"""Exception hierarchy shared by the domain and service layers.

Validation and not-found errors carry a message that can be shown to the
user as-is. ``CompletionFailedError`` deliberately does not: the storage
failure behind it is chained as ``__cause__`` and logged instead.
"""
from __future__ import annotations


class TaskflowError(Exception):
    """Base class for every error raised by taskflow."""


class ValidationError(TaskflowError):
    """The caller supplied data that can never be accepted."""


class InvalidDateError(ValidationError):
    pass


class InvalidPatternError(ValidationError):
    pass


class InvalidPriorityError(ValidationError):
    pass


class InvalidReminderError(ValidationError):
    pass


class MissingDueDateError(ValidationError):
    pass


class InvalidColorError(ValidationError):
    pass


class DuplicateTagError(ValidationError):
    pass


class NotFoundError(TaskflowError):
    def __init__(self, entity: str, entity_id: int) -> None:
        super().__init__(f"{entity.capitalize()} not found")
        self.entity = entity
        self.entity_id = entity_id


class StateConflictError(TaskflowError):
    """The entity is not in a state that allows the requested transition."""


class NotRecurringError(StateConflictError):
    pass


class AlreadyCompletedError(StateConflictError):
    pass


class CompletionFailedError(TaskflowError):
    def __init__(self, todo_id: int) -> None:
        super().__init__("Failed to complete todo, please try again")
        self.todo_id = todo_id
