"""Error taxonomy of the feed synchronization client."""
from __future__ import annotations


class FeedError(RuntimeError):
    """Base class for every failure surfaced by the feed client."""


class ValidationError(FeedError):
    """Bad input rejected locally before any network call."""


class UploadError(FeedError):
    """Object storage rejected the upload or could not be reached."""


class FetchError(FeedError):
    """The initial bulk load of posts failed."""


class CreateError(FeedError):
    """The backend refused or failed to store a new post."""


class SubscriptionLost(FeedError):
    """The change feed transport ended without an explicit ``stop()``."""


__all__ = [
    "FeedError",
    "ValidationError",
    "UploadError",
    "FetchError",
    "CreateError",
    "SubscriptionLost",
]
