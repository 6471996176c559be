"""Business logic for working with posts stored in the wall database."""
from __future__ import annotations

import logging
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..constants import ANONYMOUS_AUTHOR_ID
from ..models import Post
from ..schemas import Post as PostSchema
from ..schemas import PostDraft, PostUpdate

logger = logging.getLogger(__name__)


def _commit(db: Session, *, detail: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Database commit failed: %s", detail)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail) from exc


def _get_post_or_404(db: Session, post_id: UUID) -> Post:
    post = db.get(Post, post_id)
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return post


def list_post_records(db: Session) -> list[PostSchema]:
    """Return every post, newest first."""

    statement = select(Post).order_by(Post.created_at.desc(), Post.id.desc())
    return [PostSchema.model_validate(post) for post in db.scalars(statement).all()]


def create_post_record(db: Session, draft: PostDraft) -> PostSchema:
    """Insert a post; the store assigns ``id`` and ``created_at``."""

    display_name = (draft.display_name or "").strip() or None
    post = Post(
        author_id=draft.author_id or ANONYMOUS_AUTHOR_ID,
        message=draft.message,
        display_name=display_name,
        avatar_url=draft.avatar_url,
        image_url=draft.image_url,
    )
    db.add(post)
    _commit(db, detail="Failed to create post")
    db.refresh(post)
    return PostSchema.model_validate(post)


def update_post_record(db: Session, *, post_id: UUID, changes: PostUpdate) -> tuple[PostSchema, PostSchema]:
    """Apply a partial update and return ``(previous, current)`` snapshots."""

    post = _get_post_or_404(db, post_id)
    previous = PostSchema.model_validate(post)

    fields = changes.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No changes detected")
    if "message" in fields and not fields["message"]:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Message cannot be empty")

    for name, value in fields.items():
        setattr(post, name, value)

    _commit(db, detail="Failed to update post")
    db.refresh(post)
    return previous, PostSchema.model_validate(post)


def delete_post_record(db: Session, *, post_id: UUID) -> PostSchema:
    """Remove a post and return the row as it was before deletion."""

    post = _get_post_or_404(db, post_id)
    previous = PostSchema.model_validate(post)
    db.delete(post)
    _commit(db, detail="Failed to delete post")
    return previous


__all__ = [
    "list_post_records",
    "create_post_record",
    "update_post_record",
    "delete_post_record",
]
