"""Pydantic schemas for wall posts."""
from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..constants import (
    ANONYMOUS_AUTHOR_ID,
    DEFAULT_AVATAR_URL,
    DEFAULT_DISPLAY_NAME,
    MAX_DISPLAY_NAME_LENGTH,
    MAX_MESSAGE_LENGTH,
)


class Post(BaseModel):
    """A persisted post as seen by API clients and the feed reconciler."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    author_id: str | None = None
    message: str
    display_name: str | None = None
    avatar_url: str | None = None
    image_url: str | None = None
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # SQLite and some feeds hand back naive timestamps
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def label(self) -> str:
        return self.display_name or DEFAULT_DISPLAY_NAME

    @property
    def avatar(self) -> str:
        return self.avatar_url or DEFAULT_AVATAR_URL


class PostDraft(BaseModel):
    """Payload used by clients when creating a post."""

    author_id: str = ANONYMOUS_AUTHOR_ID
    message: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)
    display_name: str | None = Field(default=None, max_length=MAX_DISPLAY_NAME_LENGTH)
    avatar_url: str | None = None
    image_url: str | None = None

    @field_validator("message", mode="before")
    @classmethod
    def _strip_message(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


class PostUpdate(BaseModel):
    """Partial update applied by moderators or other actors."""

    message: str | None = Field(default=None, min_length=1, max_length=MAX_MESSAGE_LENGTH)
    display_name: str | None = Field(default=None, max_length=MAX_DISPLAY_NAME_LENGTH)
    avatar_url: str | None = None
    image_url: str | None = None

    @field_validator("message", mode="before")
    @classmethod
    def _strip_message(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


class PostFeedResponse(BaseModel):
    """Envelope used when returning a collection of posts."""

    items: list[Post]


__all__ = ["Post", "PostDraft", "PostUpdate", "PostFeedResponse"]
