from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from taskflow.domain.entities import TagEntity
from taskflow.domain.errors import DuplicateTagError, NotFoundError
from taskflow.domain.validation import TAG_NAME_MAX_LENGTH, clean_title, parse_color
from taskflow.infra.repository import TagRepository


class TagService:
    def __init__(self, repo: TagRepository) -> None:
        self._repo = repo

    def list_tags(self, user_id: int) -> list[TagEntity]:
        return self._repo.list_tags(user_id)

    def create_tag(self, user_id: int, name: str, color: str | None = None) -> TagEntity:
        name = clean_title(name, TAG_NAME_MAX_LENGTH, label="Tag name")
        if self._repo.find_by_name(user_id, name):
            raise DuplicateTagError(f'Tag "{name}" already exists')
        try:
            return self._repo.create_tag(user_id, name, parse_color(color))
        except IntegrityError as exc:
            # A concurrent create won the unique (user_id, lower(name)) index.
            raise DuplicateTagError(f'Tag "{name}" already exists') from exc

    def update_tag(self, user_id: int, tag_id: int, data: dict) -> TagEntity:
        changes = {}
        if "name" in data:
            name = clean_title(data["name"], TAG_NAME_MAX_LENGTH, label="Tag name")
            duplicate = self._repo.find_by_name(user_id, name)
            if duplicate and duplicate.id != tag_id:
                raise DuplicateTagError(f'Tag "{name}" already exists')
            changes["name"] = name
        if "color" in data:
            changes["color"] = parse_color(data["color"])
        tag = self._repo.update_tag(user_id, tag_id, changes)
        if not tag:
            raise NotFoundError("tag", tag_id)
        return tag

    def delete_tag(self, user_id: int, tag_id: int) -> None:
        if not self._repo.delete_tag(user_id, tag_id):
            raise NotFoundError("tag", tag_id)
