"""Post related API routes; every committed change is echoed on the change feed."""
from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..schemas import ChangeEvent, Post, PostDraft, PostFeedResponse, PostUpdate
from ..services import (
    change_feed_publisher,
    create_post_record,
    delete_post_record,
    list_post_records,
    update_post_record,
)

router = APIRouter(prefix="/posts", tags=["posts"])

logger = logging.getLogger(__name__)


async def _safe_publish(event: ChangeEvent) -> None:
    try:
        await change_feed_publisher.publish(event)
    except Exception:  # pragma: no cover - best effort logging
        logger.exception("Failed to publish %s change for post %s", event.type.value, event.post_id)


@router.get("", response_model=PostFeedResponse)
async def feed_endpoint(db: Session = Depends(get_session)) -> PostFeedResponse:
    return PostFeedResponse(items=list_post_records(db))


@router.post("", response_model=Post, status_code=status.HTTP_201_CREATED)
async def create_post_endpoint(draft: PostDraft, db: Session = Depends(get_session)) -> Post:
    """Create a post and broadcast its INSERT event to feed subscribers."""

    post = create_post_record(db, draft)
    logger.info("Post %s created", post.id)
    await _safe_publish(ChangeEvent.insert(post))
    return post


@router.patch("/{post_id}", response_model=Post)
async def update_post_endpoint(post_id: UUID, changes: PostUpdate, db: Session = Depends(get_session)) -> Post:
    previous, post = update_post_record(db, post_id=post_id, changes=changes)
    await _safe_publish(ChangeEvent.update(post, previous))
    return post


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post_endpoint(post_id: UUID, db: Session = Depends(get_session)) -> Response:
    previous = delete_post_record(db, post_id=post_id)
    logger.info("Post %s deleted", post_id)
    await _safe_publish(ChangeEvent.delete(previous))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
