"""Canonical in-memory feed built from a snapshot plus live change events.

The reconciler is the only writer of the feed list. Snapshot loads and change
events may arrive in either order; whatever a change event established for an
id (a newer row, or its removal) survives a later snapshot, so a slow bulk
load can never erase or resurrect what the user has already seen.
"""
from __future__ import annotations

import bisect
import logging
import threading
from typing import Callable, Iterable, Iterator
from uuid import UUID

from ..schemas import ChangeEvent, ChangeType, Post

logger = logging.getLogger(__name__)

FeedListener = Callable[[tuple[Post, ...]], None]


def _sort_key(post: Post) -> tuple:
    return (post.created_at, str(post.id))


class FeedReconciler:
    """Ordered, id-deduplicated list of posts, newest first."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        # Ascending by (created_at, id); exposed reversed.
        self._ordered: list[Post] = []
        self._by_id: dict[UUID, Post] = {}
        # Latest event outcome per id this session; None marks a delete. Holds one
        # entry per distinct id changed since the last reset(), never per event.
        self._touched: dict[UUID, Post | None] = {}
        self._loaded = False
        self._listeners: list[FeedListener] = []

    # -- reads -------------------------------------------------------------

    @property
    def posts(self) -> tuple[Post, ...]:
        with self._lock:
            return tuple(reversed(self._ordered))

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def tracked_changes(self) -> int:
        """Ids whose event outcome is re-applied over every snapshot until :meth:`reset`."""

        with self._lock:
            return len(self._touched)

    def get(self, post_id: UUID) -> Post | None:
        with self._lock:
            return self._by_id.get(post_id)

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, post_id: object) -> bool:
        return post_id in self._by_id

    def __iter__(self) -> Iterator[Post]:
        return iter(self.posts)

    def add_listener(self, listener: FeedListener) -> Callable[[], None]:
        """Register a render hook called after every mutation; returns an unsubscribe callable."""

        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    # -- writes ------------------------------------------------------------

    def load_snapshot(self, posts: Iterable[Post]) -> None:
        """Replace the list with ``posts`` merged with every change applied so far."""

        with self._lock:
            merged: dict[UUID, Post] = {post.id: post for post in posts}
            for post_id, outcome in self._touched.items():
                if outcome is None:
                    merged.pop(post_id, None)
                else:
                    merged[post_id] = outcome
            self._by_id = merged
            self._ordered = sorted(merged.values(), key=_sort_key)
            self._loaded = True
            snapshot = tuple(reversed(self._ordered))
            self._emit(snapshot)
        logger.debug("Loaded snapshot; feed now holds %d posts (%d from live events)", len(snapshot), len(self._touched))

    def apply(self, event: ChangeEvent) -> None:
        """Apply one change event; duplicates and unknown deletes are harmless."""

        with self._lock:
            if event.type is ChangeType.DELETE:
                post_id = event.post_id
                self._touched[post_id] = None
                self._remove(post_id)
            else:
                # UPDATE for an unseen id is treated as INSERT.
                post = event.record()
                self._touched[post.id] = post
                self._remove(post.id)
                self._insert(post)
            self._emit(tuple(reversed(self._ordered)))

    def reset(self) -> None:
        """Forget everything; used when a fresh session starts after a lost subscription."""

        with self._lock:
            self._ordered = []
            self._by_id = {}
            self._touched = {}
            self._loaded = False
            self._emit(())

    # -- helpers (call with the lock held) ---------------------------------

    def _insert(self, post: Post) -> None:
        bisect.insort(self._ordered, post, key=_sort_key)
        self._by_id[post.id] = post

    def _remove(self, post_id: UUID) -> None:
        existing = self._by_id.pop(post_id, None)
        if existing is None:
            return
        index = bisect.bisect_left(self._ordered, _sort_key(existing), key=_sort_key)
        if index < len(self._ordered) and self._ordered[index].id == post_id:
            del self._ordered[index]
        else:  # pragma: no cover - ordering keys are unique
            self._ordered = [post for post in self._ordered if post.id != post_id]

    def _emit(self, snapshot: tuple[Post, ...]) -> None:
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Feed listener failed")


__all__ = ["FeedReconciler", "FeedListener"]
