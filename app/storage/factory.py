# app/storage/factory.py
"""
Factory function for creating archive storage providers.
"""

import logging
from typing import Optional

from app.config import get_settings
from app.storage.base import StorageConfig, StorageProvider

logger = logging.getLogger(__name__)

# Global singleton instance
_storage_provider: Optional[StorageProvider] = None


def get_storage_provider(
    provider_name: Optional[str] = None,
    config: Optional[StorageConfig] = None,
) -> StorageProvider:
    """
    Get or create the storage provider instance.

    Args:
        provider_name: 's3' or 'local' (default from STORAGE_PROVIDER setting)
        config: Storage configuration (default built from settings)

    Returns:
        StorageProvider instance (singleton)
    """
    global _storage_provider

    if _storage_provider is not None:
        return _storage_provider

    settings = get_settings()
    name = (provider_name or settings.STORAGE_PROVIDER).lower().strip()
    config = config or StorageConfig.from_settings(settings)

    if name == "s3":
        from app.storage.s3_provider import S3StorageProvider
        _storage_provider = S3StorageProvider(config)
    elif name == "local":
        from app.storage.local_provider import LocalStorageProvider
        _storage_provider = LocalStorageProvider(config)
    else:
        raise ValueError(f"Unknown storage provider: {name}. Available: s3, local")

    logger.info(
        f"Storage provider initialized: {_storage_provider.name} "
        f"(enabled={_storage_provider.is_enabled()})"
    )
    return _storage_provider


def set_storage_provider(provider: StorageProvider) -> None:
    """
    Set a custom storage provider (useful for testing).
    """
    global _storage_provider
    _storage_provider = provider


def reset_storage_provider() -> None:
    """
    Reset the storage provider singleton (for testing).
    """
    global _storage_provider
    _storage_provider = None
