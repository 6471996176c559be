"""Image upload to object storage for post attachments."""
from __future__ import annotations

import asyncio
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path

from botocore.client import BaseClient

from ..constants import MAX_IMAGE_BYTES
from ..services.storage_service import (
    StorageConfig,
    StorageConfigurationError,
    StorageUploadError,
    build_public_url,
    create_storage_client,
    load_storage_config,
    object_key,
    put_object_exclusive,
)
from .errors import UploadError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MediaFile:
    """An image picked by the user, held in memory until submission."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: str | Path, *, content_type: str | None = None) -> "MediaFile":
        source = Path(path)
        guessed, _ = mimetypes.guess_type(source.name)
        return cls(
            filename=source.name,
            content_type=content_type or guessed or "application/octet-stream",
            data=source.read_bytes(),
        )


def validate_image(file: MediaFile) -> None:
    """Reject non-image or oversized files without touching the network."""

    content_type = (file.content_type or "").split(";", 1)[0].strip().lower()
    if not content_type.startswith("image/"):
        raise ValidationError("Only image files are allowed.")
    if file.size > MAX_IMAGE_BYTES:
        raise ValidationError(f"Image must be at most {MAX_IMAGE_BYTES // (1024 * 1024)}MB.")


class MediaUploader:
    """Stores validated images under collision-resistant keys and returns their public URL."""

    def __init__(self, *, config: StorageConfig | None = None, client: BaseClient | None = None) -> None:
        self._config = config
        self._client = client

    def validate(self, file: MediaFile) -> None:
        validate_image(file)

    def _resolve(self) -> tuple[StorageConfig, BaseClient]:
        if self._config is None:
            self._config = load_storage_config()
        if self._client is None:
            self._client = create_storage_client(self._config)
        return self._config, self._client

    async def upload(self, file: MediaFile) -> str:
        validate_image(file)

        try:
            config, client = self._resolve()
        except StorageConfigurationError as exc:
            raise UploadError(str(exc)) from exc

        key = object_key(file.filename, config.folder)
        try:
            await asyncio.to_thread(
                put_object_exclusive,
                client,
                config,
                key=key,
                body=file.data,
                content_type=file.content_type,
            )
        except StorageUploadError as exc:
            raise UploadError(str(exc)) from exc

        url = build_public_url(config, key)
        logger.info("Uploaded %s (%d bytes) to %s", file.filename, file.size, key)
        return url


__all__ = ["MediaFile", "MediaUploader", "validate_image"]
