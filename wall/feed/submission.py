"""Compose form state and the upload-then-create submission sequence."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from ..constants import (
    ANONYMOUS_AUTHOR_ID,
    AVATAR_URLS,
    DEFAULT_AVATAR_URL,
    DEFAULT_DISPLAY_NAME,
    MAX_DISPLAY_NAME_LENGTH,
    MAX_MESSAGE_LENGTH,
)
from ..schemas import PostDraft
from .errors import CreateError, UploadError, ValidationError
from .notifications import Notification, NotificationKind, Notifier
from .repository import PostRepository
from .uploader import MediaFile, MediaUploader

logger = logging.getLogger(__name__)


class SubmissionState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    FAILED = "failed"


@dataclass
class ComposeForm:
    """What the user has typed and picked so far."""

    message: str = ""
    image: MediaFile | None = None
    display_name: str = ""
    avatar_url: str = DEFAULT_AVATAR_URL

    @property
    def remaining(self) -> int:
        return MAX_MESSAGE_LENGTH - len(self.message.strip())


def validate_message(message: str) -> str:
    """Return the trimmed message or raise :class:`ValidationError`."""

    text = message.strip()
    if not text:
        raise ValidationError("Write something before sharing.")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Posts are limited to {MAX_MESSAGE_LENGTH} characters.")
    return text


@dataclass
class SubmissionCoordinator:
    """Runs one submission at a time: optional image upload, then post creation.

    The coordinator never touches the feed. The new post shows up when its
    INSERT event arrives on the change feed.
    """

    repository: PostRepository
    uploader: MediaUploader
    notifier: Notifier
    form: ComposeForm = field(default_factory=ComposeForm)
    state: SubmissionState = SubmissionState.IDLE
    _closed: bool = field(default=False, init=False, repr=False)

    @property
    def busy(self) -> bool:
        return self.state is SubmissionState.SUBMITTING

    @property
    def can_submit(self) -> bool:
        try:
            validate_message(self.form.message)
        except ValidationError:
            return False
        return not self.busy and not self._closed

    # -- form editing -------------------------------------------------------

    def set_display_name(self, name: str) -> bool:
        if len(name) > MAX_DISPLAY_NAME_LENGTH:
            self._notify(
                NotificationKind.INVALID_INPUT,
                f"Display names are limited to {MAX_DISPLAY_NAME_LENGTH} characters.",
            )
            return False
        self.form.display_name = name
        return True

    def choose_avatar(self, avatar_url: str) -> bool:
        if avatar_url not in AVATAR_URLS:
            self._notify(NotificationKind.INVALID_INPUT, "Pick one of the available avatars.")
            return False
        self.form.avatar_url = avatar_url
        return True

    def attach_image(self, file: MediaFile) -> bool:
        """Attach ``file`` if it is an acceptable image; otherwise keep the previous attachment."""

        try:
            self.uploader.validate(file)
        except ValidationError as exc:
            self._notify(NotificationKind.INVALID_INPUT, str(exc))
            return False
        self.form.image = file
        return True

    def remove_image(self) -> None:
        self.form.image = None

    # -- submission ----------------------------------------------------------

    async def submit(self) -> bool:
        """Share the current form; returns True when the post was stored."""

        if self._closed:
            return False
        if self.busy:
            self._notify(NotificationKind.BUSY, "Your previous post is still being shared.")
            return False
        try:
            message = validate_message(self.form.message)
            if len(self.form.display_name.strip()) > MAX_DISPLAY_NAME_LENGTH:
                raise ValidationError(f"Display names are limited to {MAX_DISPLAY_NAME_LENGTH} characters.")
            if self.form.image is not None:
                self.uploader.validate(self.form.image)
        except ValidationError as exc:
            self._notify(NotificationKind.INVALID_INPUT, str(exc))
            return False

        self.state = SubmissionState.SUBMITTING
        image = self.form.image
        try:
            image_url = await self._upload(image) if image is not None else None
            if self._closed:
                return False

            draft = PostDraft(
                author_id=ANONYMOUS_AUTHOR_ID,
                message=message,
                display_name=self.form.display_name.strip() or DEFAULT_DISPLAY_NAME,
                avatar_url=self.form.avatar_url or DEFAULT_AVATAR_URL,
                image_url=image_url,
            )
            try:
                await self.repository.create(draft)
            except CreateError as exc:
                if self._closed:
                    return False
                self.state = SubmissionState.FAILED
                logger.warning("Submission failed: %s", exc)
                self._notify(NotificationKind.CREATE_FAILED, f"Your post was not shared: {exc}")
                return False

            if self._closed:
                return False
            # Keep display name and avatar for the next post.
            self.form.message = ""
            self.form.image = None
            self._notify(NotificationKind.POSTED, "Post shared successfully!")
            return True
        finally:
            self.state = SubmissionState.IDLE

    async def _upload(self, image: MediaFile) -> str | None:
        try:
            return await self.uploader.upload(image)
        except UploadError as exc:
            if not self._closed:
                self.form.image = None
                logger.warning("Image upload failed, posting text only: %s", exc)
                self._notify(NotificationKind.UPLOAD_FAILED, f"Image upload failed: {exc}")
            return None

    def close(self) -> None:
        """Discard results of anything still in flight."""

        self._closed = True

    def _notify(self, kind: NotificationKind, message: str) -> None:
        self.notifier.notify(Notification(kind=kind, message=message))


__all__ = ["ComposeForm", "SubmissionCoordinator", "SubmissionState", "validate_message"]
