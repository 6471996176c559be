"""HTTP access to the wall backend's posts collection."""
from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError as SchemaError

from ..schemas import Post, PostDraft, PostFeedResponse
from .errors import CreateError, FetchError

logger = logging.getLogger(__name__)


class PostRepository:
    """Bulk snapshot and create operations; one round-trip each, never retried."""

    def __init__(self, client: httpx.AsyncClient, *, path: str = "/posts") -> None:
        self._client = client
        self._path = path

    async def fetch_all(self) -> list[Post]:
        """Return every post, newest first."""

        try:
            response = await self._client.get(self._path)
            response.raise_for_status()
            feed = PostFeedResponse.model_validate(response.json())
        except httpx.HTTPStatusError as exc:
            logger.error("Post snapshot failed | status=%s", exc.response.status_code)
            raise FetchError(f"Could not load posts (HTTP {exc.response.status_code})") from exc
        except httpx.HTTPError as exc:
            logger.error("Post snapshot transport error | error=%s", type(exc).__name__)
            raise FetchError("Could not load posts") from exc
        except (ValueError, SchemaError) as exc:
            raise FetchError("Post snapshot was not valid") from exc

        return sorted(feed.items, key=lambda post: (post.created_at, str(post.id)), reverse=True)

    async def create(self, draft: PostDraft) -> None:
        """Insert ``draft``; the new row reaches the feed only through the change stream."""

        try:
            response = await self._client.post(self._path, json=draft.model_dump(mode="json"))
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error("Post create failed | status=%s", exc.response.status_code)
            raise CreateError(f"Could not share post (HTTP {exc.response.status_code})") from exc
        except httpx.HTTPError as exc:
            logger.error("Post create transport error | error=%s", type(exc).__name__)
            raise CreateError("Could not share post") from exc


__all__ = ["PostRepository"]
