"""Convenience exports for schema layer."""
from .changes import ChangeEvent, ChangeType
from .posts import Post, PostDraft, PostFeedResponse, PostUpdate

__all__ = [
    "ChangeEvent",
    "ChangeType",
    "Post",
    "PostDraft",
    "PostFeedResponse",
    "PostUpdate",
]
