"""Live feed synchronization client for the wall."""
from .changes import ChangeFeedClient
from .errors import CreateError, FeedError, FetchError, SubscriptionLost, UploadError, ValidationError
from .notifications import LoggingNotifier, Notification, NotificationKind, Notifier
from .reconciler import FeedReconciler
from .repository import PostRepository
from .session import WallContext, WallSession
from .submission import ComposeForm, SubmissionCoordinator, SubmissionState, validate_message
from .uploader import MediaFile, MediaUploader, validate_image

__all__ = [
    "ChangeFeedClient",
    "ComposeForm",
    "CreateError",
    "FeedError",
    "FeedReconciler",
    "FetchError",
    "LoggingNotifier",
    "MediaFile",
    "MediaUploader",
    "Notification",
    "NotificationKind",
    "Notifier",
    "PostRepository",
    "SubmissionCoordinator",
    "SubmissionState",
    "SubscriptionLost",
    "UploadError",
    "ValidationError",
    "WallContext",
    "WallSession",
    "validate_image",
    "validate_message",
]
