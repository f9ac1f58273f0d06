# app/storage/__init__.py
"""
Storage provider abstraction for archived records.

Aging records are copied out of Postgres into object storage (S3) and
tracked by key. This module provides put/get/delete/presign over that store.
"""

from app.storage.base import (
    ArchivedObject,
    StorageConfig,
    StorageProvider,
    StorageTier,
)
from app.storage.errors import (
    ObjectNotFound,
    RestoreInProgress,
    StorageError,
    StorageNotConfigured,
)
from app.storage.factory import (
    get_storage_provider,
    reset_storage_provider,
    set_storage_provider,
)
from app.storage.local_provider import LocalStorageProvider
from app.storage.s3_provider import S3StorageProvider

__all__ = [
    "StorageProvider",
    "StorageConfig",
    "StorageTier",
    "ArchivedObject",
    "StorageError",
    "StorageNotConfigured",
    "ObjectNotFound",
    "RestoreInProgress",
    "S3StorageProvider",
    "LocalStorageProvider",
    "get_storage_provider",
    "set_storage_provider",
    "reset_storage_provider",
]
