"""S3-compatible object storage helpers used for post images."""
from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable
from urllib.parse import urlparse

from boto3.session import Session
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from ..config import Settings, get_settings

logger = logging.getLogger(__name__)

_PLACEHOLDER_VALUES = {
    "changeme",
    "change-me",
    "placeholder",
    "example",
    "sample",
    "your-key-here",
}


@dataclass(frozen=True)
class StorageConfig:
    """Runtime configuration extracted from settings."""

    access_key: str
    secret_key: str
    region: str | None
    bucket: str
    endpoint: str | None
    public_url: str
    folder: str


class StorageConfigurationError(RuntimeError):
    """Raised when required object storage settings are missing or invalid."""


class StorageUploadError(RuntimeError):
    """Raised when an upload to object storage fails."""


class StorageObjectExistsError(StorageUploadError):
    """Raised when a non-overwriting upload targets a key that already exists."""


def is_placeholder(value: str | None) -> bool:
    if not value:
        return True
    normalized = value.strip().lower()
    return not normalized or normalized in _PLACEHOLDER_VALUES


def _normalize_endpoint(raw: str, *, name: str) -> str:
    endpoint = raw.strip().rstrip("/")
    parsed = urlparse(endpoint)
    if not parsed.scheme:
        endpoint = f"https://{endpoint.lstrip(':/')}"
        parsed = urlparse(endpoint)
    if not (parsed.netloc or parsed.path):
        raise StorageConfigurationError(f"{name} must include a hostname.")
    return parsed.geturl().rstrip("/")


def load_storage_config(settings: Settings | None = None) -> StorageConfig:
    """Read and validate object storage configuration."""

    settings = settings or get_settings()
    required = {
        "STORAGE_ACCESS_KEY": settings.storage_access_key,
        "STORAGE_SECRET_KEY": settings.storage_secret_key,
        "STORAGE_BUCKET": settings.storage_bucket,
    }
    missing = [name for name, value in required.items() if is_placeholder(value)]
    if missing:
        raise StorageConfigurationError(
            "Missing required object storage configuration: " + ", ".join(sorted(missing))
        )

    bucket = settings.storage_bucket.strip()
    region = (settings.storage_region or "").strip() or None
    endpoint = None
    if settings.storage_endpoint and not is_placeholder(settings.storage_endpoint):
        endpoint = _normalize_endpoint(settings.storage_endpoint, name="STORAGE_ENDPOINT")

    if settings.storage_public_url and not is_placeholder(settings.storage_public_url):
        public_url = _normalize_endpoint(settings.storage_public_url, name="STORAGE_PUBLIC_URL")
    elif endpoint:
        public_url = f"{endpoint}/{bucket}"
    else:
        host = f"s3.{region}.amazonaws.com" if region else "s3.amazonaws.com"
        public_url = f"https://{bucket}.{host}"

    folder = "/".join(_sanitize_segments(settings.storage_folder.replace("\\", "/").split("/"))) or "uploads"

    return StorageConfig(
        access_key=str(settings.storage_access_key).strip(),
        secret_key=str(settings.storage_secret_key).strip(),
        region=region,
        bucket=bucket,
        endpoint=endpoint,
        public_url=public_url,
        folder=folder,
    )


def create_storage_client(config: StorageConfig) -> BaseClient:
    """Create a boto3 S3 client for the configured endpoint."""

    session = Session()
    try:
        return session.client(
            "s3",
            region_name=config.region,
            endpoint_url=config.endpoint,
            aws_access_key_id=config.access_key,
            aws_secret_access_key=config.secret_key,
        )
    except (BotoCoreError, ValueError) as exc:
        logger.error("Could not create storage client | region=%s endpoint=%s", config.region, config.endpoint)
        raise StorageConfigurationError(f"Object storage client could not be created: {exc}") from exc


def _sanitize_segments(parts: Iterable[str]) -> list[str]:
    """Sanitize path segments to be safe for object keys."""

    sanitized: list[str] = []
    for part in parts:
        if part in {"", ".", ".."}:
            continue
        cleaned = re.sub(r"[^A-Za-z0-9._-]", "-", part.strip())
        cleaned = re.sub(r"-+", "-", cleaned).strip("-._")
        if cleaned:
            sanitized.append(cleaned)
    return sanitized


def object_key(filename: str | None, folder: str) -> str:
    """Return ``<folder>/<128-bit random hex><original extension>``."""

    extension = Path(filename or "").suffix.lower()
    if extension and not re.fullmatch(r"\.[A-Za-z0-9]{1,10}", extension):
        extension = ""

    safe_folder = "/".join(_sanitize_segments(folder.replace("\\", "/").split("/")))
    unique_name = uuid.uuid4().hex
    key = f"{safe_folder}/{unique_name}{extension}" if safe_folder else f"{unique_name}{extension}"
    return key.lstrip("/")


def build_public_url(config: StorageConfig, key: str) -> str:
    """Build the public URL for a stored object."""

    normalized_key = key.lstrip("/")
    return f"{config.public_url}/{normalized_key}" if normalized_key else config.public_url


def put_object_exclusive(
    client: BaseClient,
    config: StorageConfig,
    *,
    key: str,
    body: bytes,
    content_type: str,
) -> None:
    """Upload ``body`` under ``key``, failing instead of replacing an existing object."""

    try:
        client.put_object(
            Bucket=config.bucket,
            Key=key,
            Body=body,
            ContentType=content_type,
            ACL="public-read",
            IfNoneMatch="*",
        )
    except ClientError as exc:
        code = str(exc.response.get("Error", {}).get("Code", ""))
        if code in {"PreconditionFailed", "412", "ConditionalRequestConflict"}:
            raise StorageObjectExistsError(f"Object {key} already exists") from exc
        logger.exception("Upload of %s to bucket %s failed", key, config.bucket)
        raise StorageUploadError(f"Upload to object storage failed: {code or exc}") from exc
    except BotoCoreError as exc:  # pragma: no cover - network errors hard to reproduce
        logger.exception("Upload of %s to bucket %s failed", key, config.bucket)
        raise StorageUploadError("Upload to object storage failed") from exc


__all__ = [
    "StorageConfig",
    "StorageConfigurationError",
    "StorageUploadError",
    "StorageObjectExistsError",
    "build_public_url",
    "create_storage_client",
    "is_placeholder",
    "load_storage_config",
    "object_key",
    "put_object_exclusive",
]
