"""Convenience exports for service layer."""
from .post_service import (
    create_post_record,
    delete_post_record,
    list_post_records,
    update_post_record,
)
from .realtime import ChangeFeedPublisher, change_feed_publisher
from .storage_service import (
    StorageConfig,
    StorageConfigurationError,
    StorageObjectExistsError,
    StorageUploadError,
    build_public_url,
    create_storage_client,
    load_storage_config,
    object_key,
    put_object_exclusive,
)

__all__ = [
    "create_post_record",
    "delete_post_record",
    "list_post_records",
    "update_post_record",
    "ChangeFeedPublisher",
    "change_feed_publisher",
    "StorageConfig",
    "StorageConfigurationError",
    "StorageObjectExistsError",
    "StorageUploadError",
    "build_public_url",
    "create_storage_client",
    "load_storage_config",
    "object_key",
    "put_object_exclusive",
]
