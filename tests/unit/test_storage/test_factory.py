"""Tests for the storage provider factory."""

import pytest

from app.storage.base import StorageConfig
from app.storage.factory import get_storage_provider, reset_storage_provider, set_storage_provider
from app.storage.local_provider import LocalStorageProvider
from app.storage.s3_provider import S3StorageProvider


@pytest.fixture(autouse=True)
def _reset():
    reset_storage_provider()
    yield
    reset_storage_provider()


def test_local(tmp_path):
    provider = get_storage_provider("local", StorageConfig(local_path=str(tmp_path)))
    assert isinstance(provider, LocalStorageProvider)
    assert provider.is_enabled()


def test_s3_without_credentials_is_disabled():
    provider = get_storage_provider("S3", StorageConfig(bucket="archive"))
    assert isinstance(provider, S3StorageProvider)
    assert provider.is_enabled() is False


def test_singleton(tmp_path):
    first = get_storage_provider("local", StorageConfig(local_path=str(tmp_path)))
    assert get_storage_provider() is first


def test_set_storage_provider(tmp_path):
    custom = LocalStorageProvider(StorageConfig(local_path=str(tmp_path)))
    set_storage_provider(custom)
    assert get_storage_provider() is custom


def test_unknown_provider():
    with pytest.raises(ValueError, match="Unknown storage provider"):
        get_storage_provider("ftp", StorageConfig())
