"""Change-feed frames describing row-level mutations of the posts table."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from ..constants import POSTS_TABLE
from .posts import Post


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeEvent(BaseModel):
    """One committed change: ``new`` holds the current row, ``old`` the prior one."""

    type: ChangeType
    table: str = POSTS_TABLE
    commit_timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    new: dict[str, Any] = Field(default_factory=dict)
    old: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _require_row_id(self) -> "ChangeEvent":
        row = self.old if self.type is ChangeType.DELETE else self.new
        if "id" not in row:
            raise ValueError(f"{self.type.value} event is missing the row id")
        return self

    @classmethod
    def insert(cls, post: Post) -> "ChangeEvent":
        return cls(type=ChangeType.INSERT, new=post.model_dump(mode="json"))

    @classmethod
    def update(cls, post: Post, previous: Post | None = None) -> "ChangeEvent":
        old = previous.model_dump(mode="json") if previous is not None else {}
        return cls(type=ChangeType.UPDATE, new=post.model_dump(mode="json"), old=old)

    @classmethod
    def delete(cls, post: Post) -> "ChangeEvent":
        return cls(type=ChangeType.DELETE, old=post.model_dump(mode="json"))

    @property
    def post_id(self) -> UUID:
        row = self.old if self.type is ChangeType.DELETE else self.new
        return UUID(str(row["id"]))

    def record(self) -> Post:
        """Return the row carried by an INSERT or UPDATE frame."""

        if self.type is ChangeType.DELETE:
            raise ValueError("DELETE events carry no current row")
        return Post.model_validate(self.new)


__all__ = ["ChangeType", "ChangeEvent"]
